"""
AWS Signature Version 4
=======================

Header-based SigV4 signing for S3 requests, reproduced exactly:

1. Canonical request:
       METHOD \\n CANONICAL_URI \\n CANONICAL_QUERY \\n
       CANONICAL_HEADERS \\n SIGNED_HEADERS \\n PAYLOAD_HASH
2. hex(sha256(canonical request))
3. String to sign:
       AWS4-HMAC-SHA256 \\n TIMESTAMP \\n DATE/REGION/SERVICE/aws4_request \\n HASH
4. Signing key:
       kDate    = HMAC("AWS4" + secret, DATE)
       kRegion  = HMAC(kDate, REGION)
       kService = HMAC(kRegion, SERVICE)
       kSigning = HMAC(kService, "aws4_request")
5. Signature = hex(HMAC(kSigning, string to sign)), sent in Authorization.

The region in steps 3-4 is always SigningContext.signing_region. For
GCS-compatible endpoints that is the fixed token "auto", not the configured
region.

Complexity: O(h log h + n) where h = header count, n = canonical request size.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional

from s3ledger.core import constants as C
from s3ledger.core.errors import SigningError
from s3ledger.signing.credentials import Credentials
from s3ledger.signing.endpoint import SigningContext
from s3ledger.signing.urls import RequestTarget

# Headers rewritten by proxies or the HTTP client; never signed
_UNSIGNED_HEADERS = frozenset({"authorization", "user-agent", "expect", "x-amzn-trace-id"})


def payload_hash(body: Optional[bytes]) -> str:
    """Hex SHA-256 of the request body (empty body hashes to EMPTY_SHA256)."""
    if not body:
        return C.EMPTY_SHA256
    return hashlib.sha256(body).hexdigest()


def format_amz_date(timestamp: datetime) -> str:
    """Render a timestamp as an x-amz-date value (naive values are UTC)."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).strftime(C.SIGV4_TIMESTAMP_FORMAT)


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_access_key: str, date: str, region: str, service: str) -> bytes:
    """Four-step HMAC-SHA256 chain seeded from the secret key."""
    k_date = _hmac(("AWS4" + secret_access_key).encode("utf-8"), date)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, C.SIGV4_TERMINATOR)


def _canonical_header_value(value: str) -> str:
    return " ".join(str(value).split())


@dataclass(frozen=True, slots=True)
class SignedRequest:
    """Output of signing: headers to send plus intermediate artifacts."""
    headers: dict[str, str]
    canonical_request: str
    string_to_sign: str
    signature: str
    credential_scope: str
    signed_headers: str


def sign_request(
    method: str,
    target: RequestTarget,
    headers: Mapping[str, str],
    payload_sha256: str,
    credentials: Optional[Credentials],
    context: SigningContext,
    timestamp: datetime,
) -> SignedRequest:
    """
    Sign one request.

    Args:
        method: HTTP method.
        target: Addressed request from the URL builder; its canonical URI and
            query are used verbatim.
        headers: Extra headers to send and sign (e.g. content-type).
        payload_sha256: Hex SHA-256 of the body, or UNSIGNED_PAYLOAD.
        credentials: Credentials for this request.
        context: Store signing context.
        timestamp: Signing time.

    Returns:
        SignedRequest whose `headers` include host, x-amz-date,
        x-amz-content-sha256, x-amz-security-token (when a session token is
        present) and authorization.

    Raises:
        SigningError: If credentials are missing or incomplete.
    """
    if credentials is None or not credentials.is_complete():
        raise SigningError.missing_credentials(
            "access key id and secret access key are required"
        )

    amz_date = format_amz_date(timestamp)
    date = amz_date[:8]

    final: dict[str, str] = {}
    for name, value in headers.items():
        final[name.lower()] = str(value)
    final.setdefault("host", target.host)
    final["x-amz-date"] = amz_date
    final["x-amz-content-sha256"] = payload_sha256
    if credentials.session_token:
        final["x-amz-security-token"] = credentials.session_token
    final.pop("authorization", None)

    to_sign = sorted(name for name in final if name not in _UNSIGNED_HEADERS)
    canonical_headers = "".join(
        f"{name}:{_canonical_header_value(final[name])}\n" for name in to_sign
    )
    signed_headers = ";".join(to_sign)

    canonical_request = "\n".join([
        method.upper(),
        target.canonical_uri,
        target.canonical_query,
        canonical_headers,
        signed_headers,
        payload_sha256,
    ])

    credential_scope = "/".join([
        date, context.signing_region, context.service, C.SIGV4_TERMINATOR,
    ])
    string_to_sign = "\n".join([
        C.SIGV4_ALGORITHM,
        amz_date,
        credential_scope,
        hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
    ])

    signing_key = derive_signing_key(
        credentials.secret_access_key, date, context.signing_region, context.service,
    )
    signature = hmac.new(
        signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
    ).hexdigest()

    final["authorization"] = (
        f"{C.SIGV4_ALGORITHM} "
        f"Credential={credentials.access_key_id}/{credential_scope}, "
        f"SignedHeaders={signed_headers}, "
        f"Signature={signature}"
    )

    return SignedRequest(
        headers=final,
        canonical_request=canonical_request,
        string_to_sign=string_to_sign,
        signature=signature,
        credential_scope=credential_scope,
        signed_headers=signed_headers,
    )


class SigV4Signer:
    """
    Signer bound to one store's SigningContext.

    Stateless apart from the immutable context; safe to share across
    concurrent operations.
    """

    __slots__ = ("_context",)

    def __init__(self, context: SigningContext) -> None:
        self._context = context

    @property
    def context(self) -> SigningContext:
        return self._context

    def sign(
        self,
        method: str,
        target: RequestTarget,
        headers: Mapping[str, str],
        payload_sha256: str,
        credentials: Optional[Credentials],
        timestamp: Optional[datetime] = None,
    ) -> dict[str, str]:
        """Sign and return the headers to send."""
        return sign_request(
            method,
            target,
            headers,
            payload_sha256,
            credentials,
            self._context,
            timestamp or datetime.now(timezone.utc),
        ).headers

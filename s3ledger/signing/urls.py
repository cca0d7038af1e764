"""
URL Builder
===========

Composes request URLs for a bucket/key under a SigningContext.

The path placed in the URL is exactly the canonical URI the signer hashes:
both come from `uri_encode_path`, computed once per request. A second,
independent encoding of the same key is the classic way to end up with a
SignatureDoesNotMatch for keys containing spaces, `+`, or non-ASCII text.

Encoding rules (SigV4 for S3):
- Unreserved characters `A-Z a-z 0-9 - . _ ~` are left as-is
- Every other byte of the UTF-8 encoding becomes `%XX` (uppercase hex)
- In object paths `/` is kept literally; in query components it is encoded
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import quote

from s3ledger.signing.endpoint import SigningContext, UrlStyle, resolve_signing_context

_UNRESERVED = "-_.~"


def uri_encode(value: str) -> str:
    """Percent-encode a query component (slash encoded)."""
    return quote(value, safe=_UNRESERVED)


def uri_encode_path(key: str) -> str:
    """Percent-encode each path segment, keeping `/` separators."""
    return "/".join(uri_encode(segment) for segment in key.split("/"))


def canonical_query_string(query: Optional[Mapping[str, str]]) -> str:
    """Encode and sort query parameters by key, then value."""
    if not query:
        return ""
    pairs = sorted((uri_encode(k), uri_encode(v)) for k, v in query.items())
    return "&".join(f"{k}={v}" for k, v in pairs)


@dataclass(frozen=True, slots=True)
class RequestTarget:
    """
    Fully addressed request destination.

    Attributes:
        url: URL the transport sends the request to.
        host: Value of the Host header.
        canonical_uri: Encoded path; identical to the path in `url`.
        canonical_query: Encoded, sorted query; identical to the query in `url`.
    """
    url: str
    host: str
    canonical_uri: str
    canonical_query: str = ""


def build_target(
    bucket: str,
    key: str,
    context: SigningContext,
    query: Optional[Mapping[str, str]] = None,
) -> RequestTarget:
    """
    Build the request target for `key` in `bucket`.

    An empty key addresses the bucket itself (used by ListObjectsV2).

    Complexity: O(len(key)).
    """
    encoded_key = uri_encode_path(key) if key else ""

    if context.style is UrlStyle.VIRTUAL_HOSTED:
        host = f"{bucket}.s3.{context.region}.amazonaws.com"
        path = f"/{encoded_key}"
    else:
        host = context.endpoint_host or ""
        path = f"/{uri_encode(bucket)}/{encoded_key}" if encoded_key else f"/{uri_encode(bucket)}"

    canonical_query = canonical_query_string(query)
    url = f"{context.scheme}://{host}{path}"
    if canonical_query:
        url = f"{url}?{canonical_query}"

    return RequestTarget(
        url=url,
        host=host,
        canonical_uri=path,
        canonical_query=canonical_query,
    )


def build_url(
    bucket: str,
    region: Optional[str],
    key: str,
    endpoint: Optional[str] = None,
) -> str:
    """
    Convenience wrapper: resolve the endpoint and return the object URL.

    Example:
        >>> build_url("my-bucket", "us-east-1", "path/file.json")
        'https://my-bucket.s3.us-east-1.amazonaws.com/path/file.json'
        >>> build_url("my-bucket", "us-east-1", "path/file.json", "http://localhost:9000")
        'http://localhost:9000/my-bucket/path/file.json'

    Raises:
        ConfigurationError: If the endpoint/region pair cannot be resolved.
    """
    resolved = resolve_signing_context(endpoint, region)
    if resolved.is_err():
        raise resolved.error
    return build_target(bucket, key, resolved.unwrap()).url


__all__ = [
    "RequestTarget",
    "build_target",
    "build_url",
    "canonical_query_string",
    "uri_encode",
    "uri_encode_path",
]

"""
Signing module: endpoint resolution, URL building, SigV4, credentials.
"""

from s3ledger.signing.credentials import (
    BotocoreCredentialProvider,
    CredentialProvider,
    Credentials,
    StaticCredentialProvider,
)
from s3ledger.signing.endpoint import (
    SigningContext,
    UrlStyle,
    resolve_signing_context,
)
from s3ledger.signing.sigv4 import (
    SignedRequest,
    SigV4Signer,
    derive_signing_key,
    payload_hash,
    sign_request,
)
from s3ledger.signing.urls import (
    RequestTarget,
    build_target,
    build_url,
    uri_encode,
    uri_encode_path,
)

__all__ = [
    "BotocoreCredentialProvider",
    "CredentialProvider",
    "Credentials",
    "StaticCredentialProvider",
    "SigningContext",
    "UrlStyle",
    "resolve_signing_context",
    "SignedRequest",
    "SigV4Signer",
    "derive_signing_key",
    "payload_hash",
    "sign_request",
    "RequestTarget",
    "build_target",
    "build_url",
    "uri_encode",
    "uri_encode_path",
]

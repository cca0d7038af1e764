"""
s3ledger: Content-Addressed Ledger Storage on S3-Compatible Services

A SigV4-signing object store client for AWS S3 and S3-compatible services
(MinIO, GCS, DigitalOcean Spaces, Wasabi, Backblaze B2, LocalStack):
- Endpoint Resolver: virtual-hosted vs path-style, GCS "auto" region
- URL Builder + Request Signer: byte-identical canonical paths
- Retry Scheduler: exponential backoff with full jitter
- Object Store Client: async byte operations under a parallelism bound
- Content-Addressed Layer: SHA-256 addressed commits and index segments

Author: Planetary AI Systems
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Planetary AI Systems"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from s3ledger.core.types import Result, Ok, Err, ContentHash
from s3ledger.core.errors import (
    S3LedgerError,
    ConfigurationError,
    AuthenticationError,
    NotFoundError,
    AddressResolutionError,
    ParseError,
)
from s3ledger.core.config import StorageConfig
from s3ledger.signing import (
    BotocoreCredentialProvider,
    Credentials,
    StaticCredentialProvider,
    SigV4Signer,
    build_url,
)
from s3ledger.storage import (
    ContentAddressedStore,
    HttpxTransport,
    InMemoryS3Transport,
    LedgerLayout,
    S3ObjectStore,
)

__all__ = [
    "__version__",
    "Result",
    "Ok",
    "Err",
    "ContentHash",
    "S3LedgerError",
    "ConfigurationError",
    "AuthenticationError",
    "NotFoundError",
    "AddressResolutionError",
    "ParseError",
    "StorageConfig",
    "BotocoreCredentialProvider",
    "Credentials",
    "StaticCredentialProvider",
    "SigV4Signer",
    "build_url",
    "ContentAddressedStore",
    "HttpxTransport",
    "InMemoryS3Transport",
    "LedgerLayout",
    "S3ObjectStore",
]

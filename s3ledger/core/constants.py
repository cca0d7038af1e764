"""
System-Wide Constants for the S3 Ledger Store

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# SIZE AND TIME UNITS
# =============================================================================
KB: Final[int] = 1024
MB: Final[int] = 1024 * KB

SECOND_MS: Final[int] = 1000

# =============================================================================
# SIGNATURE V4
# =============================================================================
SIGV4_ALGORITHM: Final[str] = "AWS4-HMAC-SHA256"
SIGV4_TERMINATOR: Final[str] = "aws4_request"
SIGV4_TIMESTAMP_FORMAT: Final[str] = "%Y%m%dT%H%M%SZ"
S3_SERVICE: Final[str] = "s3"

# hex(sha256(b""))
EMPTY_SHA256: Final[str] = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
UNSIGNED_PAYLOAD: Final[str] = "UNSIGNED-PAYLOAD"

# =============================================================================
# ENDPOINTS
# =============================================================================
AWS_DOMAIN: Final[str] = "amazonaws.com"
GCS_HOST_MARKER: Final[str] = "storage.googleapis.com"
GCS_SIGNING_REGION: Final[str] = "auto"

# =============================================================================
# STORE DEFAULTS
# =============================================================================
DEFAULT_READ_TIMEOUT_MS: Final[int] = 20 * SECOND_MS
DEFAULT_WRITE_TIMEOUT_MS: Final[int] = 60 * SECOND_MS
DEFAULT_LIST_TIMEOUT_MS: Final[int] = 20 * SECOND_MS
DEFAULT_MAX_RETRIES: Final[int] = 4
DEFAULT_RETRY_BASE_DELAY_MS: Final[int] = 150
DEFAULT_RETRY_MAX_DELAY_MS: Final[int] = 2 * SECOND_MS
DEFAULT_PARALLELISM: Final[int] = 10

# ListObjectsV2 maximum page size
LIST_MAX_KEYS: Final[int] = 1000

# =============================================================================
# CONTENT ADDRESSING
# =============================================================================
ADDRESS_SCHEME: Final[str] = "fluree"
ADDRESS_METHOD: Final[str] = "s3"
JSON_CONTENT_TYPE: Final[str] = "application/json"
OCTET_STREAM: Final[str] = "application/octet-stream"

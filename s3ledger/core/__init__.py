"""
Core module: Type definitions, error taxonomy, and configuration.

This module provides the foundational abstractions for the store:
- Result/Either monads for zero-exception control flow
- Error taxonomy with retry classification
- Immutable store configuration
"""

from s3ledger.core.types import (
    Result,
    Ok,
    Err,
    ContentHash,
)
from s3ledger.core.errors import (
    ErrorCode,
    S3LedgerError,
    ValidationError,
    ConfigurationError,
    SigningError,
    AuthenticationError,
    NotFoundError,
    NetworkError,
    RequestTimeoutError,
    ThrottlingError,
    ServiceError,
    RequestError,
    AddressResolutionError,
    ParseError,
    IntegrityError,
)
from s3ledger.core.config import StorageConfig

__all__ = [
    "Result",
    "Ok",
    "Err",
    "ContentHash",
    "ErrorCode",
    "S3LedgerError",
    "ValidationError",
    "ConfigurationError",
    "SigningError",
    "AuthenticationError",
    "NotFoundError",
    "NetworkError",
    "RequestTimeoutError",
    "ThrottlingError",
    "ServiceError",
    "RequestError",
    "AddressResolutionError",
    "ParseError",
    "IntegrityError",
    "StorageConfig",
]

"""
Error Taxonomy for the S3 Ledger Store

Design Principles:
- Fallible operations return Result types; errors are values first
- Every error knows whether the retry scheduler may absorb it
- Never swallow errors or use null for absence
- Carry enough context (operation, key, status) to diagnose a failure
  without re-deriving the signed request

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause for root cause analysis
- Context dictionary (never contains credentials)

Usage:
    result = await store.read_bytes("ledger/commit/abc.json")
    match result:
        case Ok(data):
            process(data)
        case Err(NotFoundError()):
            handle_missing()
        case Err(error):
            raise error
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Configuration and validation errors
    - 2xxx: Signing and authentication errors
    - 3xxx: Transport and service errors
    - 4xxx: Content-addressing errors
    """

    # Configuration errors (1xxx)
    VALIDATION_FAILED = 1001
    CONFIGURATION_INVALID = 1002

    # Signing errors (2xxx)
    SIGNING_FAILED = 2001
    AUTHENTICATION_REJECTED = 2002

    # Transport/service errors (3xxx)
    OBJECT_NOT_FOUND = 3001
    NETWORK_FAILURE = 3002
    REQUEST_TIMEOUT = 3003
    THROTTLED = 3004
    SERVICE_UNAVAILABLE = 3005
    REQUEST_REJECTED = 3006

    # Content-addressing errors (4xxx)
    ADDRESS_UNRESOLVABLE = 4001
    PARSE_FAILED = 4002
    INTEGRITY_VIOLATION = 4003


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class S3LedgerError(Exception):
    """
    Base class for all store errors.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Cause for root cause analysis
    - Retry classification consumed by the retry scheduler
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        """Whether the retry scheduler may re-issue the failed operation."""
        return False

    @property
    def status(self) -> Optional[int]:
        """HTTP status code that produced this error, if any."""
        return self.context.get("status")

    def with_context(self, **kwargs: Any) -> S3LedgerError:
        """
        Add context to error (returns new instance of the same class).

        The error_id is preserved so log lines stay correlated.
        """
        return dataclasses.replace(self, context={**self.context, **kwargs})

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for structured logging."""
        return {
            "error_id": self.error_id,
            "kind": type(self).__name__,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"context={self.context!r})"
        )


# =============================================================================
# CONFIGURATION / VALIDATION
# =============================================================================
@dataclass
class ValidationError(S3LedgerError):
    """Caller supplied an invalid value (key, path, argument)."""

    @classmethod
    def invalid(cls, field_name: str, value: Any, reason: str) -> ValidationError:
        return cls(
            code=ErrorCode.VALIDATION_FAILED,
            message=f"Invalid {field_name}: {reason}",
            context={"field": field_name, "value": str(value)[:100]},
        )


@dataclass
class ConfigurationError(ValidationError):
    """
    Store configuration is missing or inconsistent.

    Always raised or returned before any network call is attempted.
    """

    @classmethod
    def missing(cls, setting: str) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIGURATION_INVALID,
            message=f"Required setting '{setting}' is missing",
            context={"setting": setting},
        )

    @classmethod
    def invalid_setting(cls, setting: str, value: Any, reason: str) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIGURATION_INVALID,
            message=f"Setting '{setting}' is invalid: {reason}",
            context={"setting": setting, "value": str(value)[:100]},
        )


# =============================================================================
# SIGNING / AUTHENTICATION
# =============================================================================
@dataclass
class SigningError(S3LedgerError):
    """Request could not be signed (missing or partial credentials)."""

    @classmethod
    def missing_credentials(
        cls,
        detail: str,
        cause: Optional[BaseException] = None,
    ) -> SigningError:
        return cls(
            code=ErrorCode.SIGNING_FAILED,
            message=f"Cannot sign request: {detail}",
            cause=cause,
        )


@dataclass
class AuthenticationError(S3LedgerError):
    """The service rejected the request signature or credentials."""

    @classmethod
    def rejected(
        cls,
        operation: str,
        key: str,
        status: int,
        service_code: Optional[str] = None,
        service_message: Optional[str] = None,
    ) -> AuthenticationError:
        if service_code == "SignatureDoesNotMatch":
            hint = "check the secret key and that the signing region matches the endpoint"
        elif service_code in ("InvalidAccessKeyId", "ExpiredToken", "InvalidToken"):
            hint = "refresh the credentials supplied by the credential provider"
        else:
            hint = "verify the credentials have access to the bucket"
        return cls(
            code=ErrorCode.AUTHENTICATION_REJECTED,
            message=f"{operation} '{key}' rejected with HTTP {status}: {hint}",
            context={
                "operation": operation,
                "key": key,
                "status": status,
                "service_code": service_code,
                "service_message": service_message,
                "hint": hint,
            },
        )


# =============================================================================
# SERVICE / TRANSPORT
# =============================================================================
@dataclass
class NotFoundError(S3LedgerError):
    """Object does not exist."""

    @classmethod
    def object(cls, operation: str, key: str) -> NotFoundError:
        return cls(
            code=ErrorCode.OBJECT_NOT_FOUND,
            message=f"Object '{key}' not found",
            context={"operation": operation, "key": key, "status": 404},
        )


@dataclass
class NetworkError(S3LedgerError):
    """Connection failed, was reset, or the transport raised an I/O error."""

    @property
    def retryable(self) -> bool:
        return True

    @classmethod
    def connection_failed(
        cls,
        url: str,
        cause: Optional[BaseException] = None,
    ) -> NetworkError:
        return cls(
            code=ErrorCode.NETWORK_FAILURE,
            message=f"Network failure talking to {url}: {cause}",
            cause=cause,
            context={"url": url},
        )


@dataclass
class RequestTimeoutError(S3LedgerError):
    """A read/write/list phase exceeded its configured timeout."""

    @property
    def retryable(self) -> bool:
        return True

    @classmethod
    def expired(cls, operation: str, key: str, timeout_ms: int) -> RequestTimeoutError:
        return cls(
            code=ErrorCode.REQUEST_TIMEOUT,
            message=f"{operation} '{key}' timed out after {timeout_ms}ms",
            context={"operation": operation, "key": key, "timeout_ms": timeout_ms},
        )


@dataclass
class ThrottlingError(S3LedgerError):
    """Service asked the client to slow down (HTTP 429 or 503 SlowDown)."""

    @property
    def retryable(self) -> bool:
        return True

    @classmethod
    def slow_down(
        cls,
        operation: str,
        key: str,
        status: int,
        service_code: Optional[str] = None,
    ) -> ThrottlingError:
        return cls(
            code=ErrorCode.THROTTLED,
            message=f"{operation} '{key}' throttled with HTTP {status}",
            context={
                "operation": operation,
                "key": key,
                "status": status,
                "service_code": service_code,
            },
        )


@dataclass
class ServiceError(S3LedgerError):
    """Service-side failure (HTTP 5xx)."""

    @property
    def retryable(self) -> bool:
        status = self.status
        return status is not None and status >= 500

    @classmethod
    def from_status(
        cls,
        operation: str,
        key: str,
        status: int,
        service_code: Optional[str] = None,
        service_message: Optional[str] = None,
    ) -> ServiceError:
        return cls(
            code=ErrorCode.SERVICE_UNAVAILABLE,
            message=f"{operation} '{key}' failed with HTTP {status}"
                    + (f" ({service_code})" if service_code else ""),
            context={
                "operation": operation,
                "key": key,
                "status": status,
                "service_code": service_code,
                "service_message": service_message,
            },
        )


@dataclass
class RequestError(S3LedgerError):
    """Service rejected the request as malformed (HTTP 4xx other than 429)."""

    @classmethod
    def from_status(
        cls,
        operation: str,
        key: str,
        status: int,
        service_code: Optional[str] = None,
        service_message: Optional[str] = None,
    ) -> RequestError:
        return cls(
            code=ErrorCode.REQUEST_REJECTED,
            message=f"{operation} '{key}' rejected with HTTP {status}"
                    + (f" ({service_code})" if service_code else ""),
            context={
                "operation": operation,
                "key": key,
                "status": status,
                "service_code": service_code,
                "service_message": service_message,
            },
        )


# =============================================================================
# CONTENT ADDRESSING
# =============================================================================
@dataclass
class AddressResolutionError(S3LedgerError):
    """A content address cannot be mapped to a key of this store."""

    @classmethod
    def unresolvable(cls, address: str, reason: str) -> AddressResolutionError:
        return cls(
            code=ErrorCode.ADDRESS_UNRESOLVABLE,
            message=f"Cannot resolve address '{address}': {reason}",
            context={"address": address, "reason": reason},
        )


@dataclass
class ParseError(S3LedgerError):
    """Stored bytes (or a service response) are not well-formed."""

    @classmethod
    def malformed(
        cls,
        what: str,
        source: str,
        cause: Optional[BaseException] = None,
    ) -> ParseError:
        return cls(
            code=ErrorCode.PARSE_FAILED,
            message=f"Malformed {what} in '{source}': {cause}",
            cause=cause,
            context={"source": source, "what": what},
        )


@dataclass
class IntegrityError(S3LedgerError):
    """Bytes read back do not hash to the address they were stored under."""

    @classmethod
    def hash_mismatch(cls, address: str, expected: str, actual: str) -> IntegrityError:
        return cls(
            code=ErrorCode.INTEGRITY_VIOLATION,
            message=f"Content hash mismatch for '{address}'",
            context={"address": address, "expected": expected, "actual": actual},
        )

"""
Core Type Definitions for the S3 Ledger Store

Implements Result/Either monads for zero-exception control flow and the
content hash used to address immutable ledger artifacts.

Design Principles:
- Never use null for absence (use Optional or Result)
- Fallible storage operations return Ok/Err instead of raising
- Content addresses are pure functions of the payload bytes

Complexity: O(1) for all type operations except hashing (O(n))
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    TypeVar,
    Union,
)

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD: ZERO-EXCEPTION CONTROL FLOW
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.

    Immutable container for successful computation results.
    """

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """Extract value. Safe to call after is_ok() check."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible operations."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.

    Carries the full error object so callers can branch on its kind.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.

        Raises:
            The wrapped error when it is an exception, RuntimeError otherwise.
        """
        if isinstance(self.error, BaseException):
            raise self.error
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant - propagates error unchanged."""
        return self

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        """Propagate error through monadic chain."""
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# CONTENT-ADDRESSABLE HASH
# =============================================================================
_HEX_DIGEST = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True, slots=True)
class ContentHash:
    """
    SHA-256 content hash used as the file name of immutable artifacts.

    Identical payload bytes always produce the identical hash, which is
    what lets commits and index segments be stored at most once.

    Memory: 32 bytes (SHA-256 digest)
    """

    digest: bytes

    def __post_init__(self) -> None:
        if len(self.digest) != 32:
            raise ValueError(f"SHA-256 digest must be 32 bytes, got {len(self.digest)}")

    @classmethod
    def compute(cls, data: bytes) -> ContentHash:
        """
        Compute SHA-256 hash of data.

        Complexity: O(n) where n is len(data)
        """
        return cls(digest=hashlib.sha256(data).digest())

    @classmethod
    def from_hex(cls, hex_str: str) -> Result[ContentHash, str]:
        """Parse from lowercase hexadecimal string representation."""
        if not _HEX_DIGEST.match(hex_str):
            return Err(f"Invalid content hash: {hex_str!r}")
        return Ok(cls(digest=bytes.fromhex(hex_str)))

    @staticmethod
    def looks_like_hex(value: str) -> bool:
        """True if value has the shape of a hex SHA-256 digest."""
        return bool(_HEX_DIGEST.match(value))

    def to_hex(self) -> str:
        """Convert to hexadecimal string."""
        return self.digest.hex()

    def __str__(self) -> str:
        return self.to_hex()

    def __hash__(self) -> int:
        return hash(self.digest)

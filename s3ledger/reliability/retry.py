"""
Retry Policy: Exponential Backoff with Jitter

Implements the store's retry strategy:
- Exponential backoff: base × 2^attempt, capped at max delay
- Full jitter: random(0, backoff) to prevent thundering herd
- Retryable errors (network, timeout, throttling, 5xx) are absorbed
- Fatal errors (4xx, signing, validation, parse) return immediately

Every call to `retry_with_backoff` owns a fresh RetryState; nothing is shared
between logical operations. Each attempt calls the operation factory again,
so a retry is a new request (new timestamp, new signature), never a replay
of an in-flight one.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

from s3ledger.core import constants as C
from s3ledger.core.errors import S3LedgerError
from s3ledger.core.types import Err, Result

if TYPE_CHECKING:
    from s3ledger.core.config import StorageConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration."""

    max_retries: int = C.DEFAULT_MAX_RETRIES
    base_delay_ms: int = C.DEFAULT_RETRY_BASE_DELAY_MS
    max_delay_ms: int = C.DEFAULT_RETRY_MAX_DELAY_MS
    exponential_base: float = 2.0
    jitter: bool = True  # Full jitter

    @classmethod
    def default(cls) -> RetryPolicy:
        """Default retry policy."""
        return cls()

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        """No retries."""
        return cls(max_retries=0)

    @classmethod
    def from_config(cls, config: StorageConfig) -> RetryPolicy:
        """Policy carried by a store configuration."""
        return cls(
            max_retries=config.max_retries,
            base_delay_ms=config.retry_base_delay_ms,
            max_delay_ms=config.retry_max_delay_ms,
        )


@dataclass
class RetryState:
    """Per-operation retry bookkeeping; discarded when the call returns."""
    attempt: int = 0
    last_error: Optional[S3LedgerError] = None
    next_delay_ms: float = 0.0
    total_delay_ms: float = 0.0


def calculate_backoff(
    attempt: int,
    base_delay_ms: int,
    max_delay_ms: int,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """
    Calculate backoff delay with optional jitter.

    Full jitter: random(0, min(cap, base * 2^attempt))
    """
    delay = min(max_delay_ms, base_delay_ms * (exponential_base ** attempt))

    if jitter:
        delay = random.uniform(0, delay)

    return delay


async def retry_with_backoff(
    operation: Callable[[], Awaitable[Result[T, S3LedgerError]]],
    policy: Optional[RetryPolicy] = None,
    on_retry: Optional[Callable[[RetryState], None]] = None,
) -> Result[T, S3LedgerError]:
    """
    Execute a fallible async operation with retry and exponential backoff.

    Args:
        operation: Factory returning a fresh awaitable per attempt.
        policy: Retry configuration (default if None).
        on_retry: Called with the state before each backoff sleep.

    Returns:
        The first Ok, the first fatal Err, or the last retryable Err once
        retries are exhausted (annotated with the attempt count).

    Cancellation of the awaiting task propagates immediately; no further
    attempts are scheduled.
    """
    if policy is None:
        policy = RetryPolicy.default()

    state = RetryState()

    while True:
        result = await operation()
        if result.is_ok():
            return result

        error = result.error
        state.last_error = error

        if not error.retryable:
            return result

        if state.attempt >= policy.max_retries:
            logger.warning(
                "Giving up after %d attempts: %s", state.attempt + 1, error,
            )
            return Err(error.with_context(attempts=state.attempt + 1))

        state.next_delay_ms = calculate_backoff(
            attempt=state.attempt,
            base_delay_ms=policy.base_delay_ms,
            max_delay_ms=policy.max_delay_ms,
            exponential_base=policy.exponential_base,
            jitter=policy.jitter,
        )
        state.total_delay_ms += state.next_delay_ms

        logger.debug(
            "Attempt %d failed (%s), retrying in %.1fms",
            state.attempt + 1, error, state.next_delay_ms,
        )
        if on_retry is not None:
            on_retry(state)

        await asyncio.sleep(state.next_delay_ms / 1000)
        state.attempt += 1

"""
Reliability module: retry with exponential backoff.
"""

from s3ledger.reliability.retry import (
    RetryPolicy,
    RetryState,
    calculate_backoff,
    retry_with_backoff,
)

__all__ = [
    "RetryPolicy",
    "RetryState",
    "calculate_backoff",
    "retry_with_backoff",
]

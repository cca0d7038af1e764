"""
Store Configuration
===================

Type-safe, immutable configuration for one S3-backed ledger store.

Design Principles:
------------------
1. **Immutability**: The config is frozen; it is built once when a store is
   opened and shared read-only by every concurrent operation
2. **Validation**: Invariants checked at construction time, before any
   network call is attempted
3. **Sources**: Built from a ledger configuration mapping (`s3Bucket`,
   `s3Endpoint`, ...) or from environment variables for the CLI

Author: Planetary AI Systems
License: MIT
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from s3ledger.core import constants as C
from s3ledger.core.errors import ConfigurationError
from s3ledger.core.types import Err, Ok, Result


def normalize_prefix(prefix: Optional[str]) -> Optional[str]:
    """Strip surrounding slashes; empty prefixes become None."""
    if prefix is None:
        return None
    stripped = prefix.strip().strip("/")
    return stripped or None


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """
    S3-compatible store configuration.

    Thread Safety:
    -------------
    Frozen dataclass - immutable after construction.
    Safe for concurrent access without synchronization.

    Attributes:
        bucket: Bucket name (required, non-empty).
        region: Configured region; may be None when the endpoint implies one.
        endpoint: Endpoint override URL. None means canonical AWS.
        prefix: Key prefix applied to every object of the store.
        identifier: Address identifier used to tell stores apart.
        read_timeout_ms: Timeout for GET/HEAD/DELETE requests.
        write_timeout_ms: Timeout for PUT requests.
        list_timeout_ms: Timeout for each ListObjectsV2 page.
        max_retries: Retries after the first attempt for retryable errors.
        retry_base_delay_ms: Backoff base delay.
        retry_max_delay_ms: Backoff cap.
        parallelism: Max in-flight requests per store.

    Example:
        >>> config = StorageConfig(bucket="ledgers", region="us-east-1")
        >>> config = StorageConfig.from_mapping({
        ...     "s3Bucket": "ledgers",
        ...     "s3Endpoint": "http://localhost:9000",
        ...     "s3Region": "us-east-1",
        ... }).unwrap()
    """
    bucket: str
    region: Optional[str] = None
    endpoint: Optional[str] = None
    prefix: Optional[str] = None
    identifier: Optional[str] = None

    read_timeout_ms: int = C.DEFAULT_READ_TIMEOUT_MS
    write_timeout_ms: int = C.DEFAULT_WRITE_TIMEOUT_MS
    list_timeout_ms: int = C.DEFAULT_LIST_TIMEOUT_MS
    max_retries: int = C.DEFAULT_MAX_RETRIES
    retry_base_delay_ms: int = C.DEFAULT_RETRY_BASE_DELAY_MS
    retry_max_delay_ms: int = C.DEFAULT_RETRY_MAX_DELAY_MS
    parallelism: int = C.DEFAULT_PARALLELISM

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ConfigurationError: If any invariant is violated.
        """
        if not self.bucket or not self.bucket.strip():
            raise ConfigurationError.missing("s3Bucket")
        if "/" in self.bucket:
            raise ConfigurationError.invalid_setting(
                "s3Bucket", self.bucket, "bucket names cannot contain '/'"
            )

        if self.endpoint is not None:
            parts = urlsplit(self.endpoint)
            if parts.scheme not in ("http", "https") or not parts.netloc:
                raise ConfigurationError.invalid_setting(
                    "s3Endpoint", self.endpoint, "must be an absolute http(s) URL"
                )

        for name in ("read_timeout_ms", "write_timeout_ms", "list_timeout_ms"):
            if getattr(self, name) <= 0:
                raise ConfigurationError.invalid_setting(
                    name, getattr(self, name), "must be > 0"
                )
        if self.max_retries < 0:
            raise ConfigurationError.invalid_setting(
                "max_retries", self.max_retries, "must be >= 0"
            )
        if self.retry_base_delay_ms < 0 or self.retry_max_delay_ms < 0:
            raise ConfigurationError.invalid_setting(
                "retry_base_delay_ms", self.retry_base_delay_ms, "delays must be >= 0"
            )
        if self.retry_base_delay_ms > self.retry_max_delay_ms:
            raise ConfigurationError.invalid_setting(
                "retry_base_delay_ms",
                self.retry_base_delay_ms,
                f"must not exceed retry_max_delay_ms ({self.retry_max_delay_ms})",
            )
        if self.parallelism <= 0:
            raise ConfigurationError.invalid_setting(
                "parallelism", self.parallelism, "must be > 0"
            )

        prefix = normalize_prefix(self.prefix)
        if prefix and any(s in ("", ".", "..") for s in prefix.split("/")):
            raise ConfigurationError.invalid_setting(
                "prefix", prefix, "must not contain empty, '.' or '..' segments"
            )
        object.__setattr__(self, "prefix", prefix)

    @classmethod
    def from_mapping(
        cls,
        settings: Mapping[str, Any],
    ) -> Result[StorageConfig, ConfigurationError]:
        """
        Build a config from a ledger configuration mapping.

        Recognised keys:
        - s3Bucket (required)
        - s3Endpoint (required, absolute URL)
        - s3Prefix, addressIdentifier, s3Region
        - read-timeout-ms, write-timeout-ms, list-timeout-ms
        - max-retries, retry-base-delay-ms, retry-max-delay-ms
        - parallelism

        When s3Region is absent, AWS_REGION then AWS_DEFAULT_REGION are used.

        Returns:
            Ok(StorageConfig) or Err(ConfigurationError). Never touches the
            network.
        """
        bucket = settings.get("s3Bucket")
        if not bucket:
            return Err(ConfigurationError.missing("s3Bucket"))

        endpoint = settings.get("s3Endpoint")
        if not endpoint:
            return Err(ConfigurationError.missing("s3Endpoint"))

        region = (
            settings.get("s3Region")
            or os.environ.get("AWS_REGION")
            or os.environ.get("AWS_DEFAULT_REGION")
        )

        def _int(key: str, default: int) -> int:
            value = settings.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except (TypeError, ValueError):
                raise ConfigurationError.invalid_setting(key, value, "must be an integer")

        try:
            return Ok(cls(
                bucket=str(bucket),
                region=region,
                endpoint=str(endpoint),
                prefix=settings.get("s3Prefix"),
                identifier=settings.get("addressIdentifier"),
                read_timeout_ms=_int("read-timeout-ms", C.DEFAULT_READ_TIMEOUT_MS),
                write_timeout_ms=_int("write-timeout-ms", C.DEFAULT_WRITE_TIMEOUT_MS),
                list_timeout_ms=_int("list-timeout-ms", C.DEFAULT_LIST_TIMEOUT_MS),
                max_retries=_int("max-retries", C.DEFAULT_MAX_RETRIES),
                retry_base_delay_ms=_int("retry-base-delay-ms", C.DEFAULT_RETRY_BASE_DELAY_MS),
                retry_max_delay_ms=_int("retry-max-delay-ms", C.DEFAULT_RETRY_MAX_DELAY_MS),
                parallelism=_int("parallelism", C.DEFAULT_PARALLELISM),
            ))
        except ConfigurationError as e:
            return Err(e)

    @classmethod
    def from_env(cls, prefix: str = "S3LEDGER") -> Result[StorageConfig, ConfigurationError]:
        """
        Construct configuration from environment variables.

        Environment Variables:
        - {prefix}_BUCKET: Bucket name (required)
        - {prefix}_ENDPOINT: Endpoint URL (required)
        - {prefix}_PREFIX: Key prefix
        - {prefix}_IDENTIFIER: Address identifier
        - {prefix}_REGION: Region (falls back to AWS_REGION)
        - {prefix}_READ_TIMEOUT_MS, {prefix}_WRITE_TIMEOUT_MS,
          {prefix}_LIST_TIMEOUT_MS
        - {prefix}_MAX_RETRIES, {prefix}_RETRY_BASE_DELAY_MS,
          {prefix}_RETRY_MAX_DELAY_MS
        - {prefix}_PARALLELISM
        """
        def _get(key: str) -> Optional[str]:
            return os.environ.get(f"{prefix}_{key}") or None

        mapping = {
            "s3Bucket": _get("BUCKET"),
            "s3Endpoint": _get("ENDPOINT"),
            "s3Prefix": _get("PREFIX"),
            "addressIdentifier": _get("IDENTIFIER"),
            "s3Region": _get("REGION"),
            "read-timeout-ms": _get("READ_TIMEOUT_MS"),
            "write-timeout-ms": _get("WRITE_TIMEOUT_MS"),
            "list-timeout-ms": _get("LIST_TIMEOUT_MS"),
            "max-retries": _get("MAX_RETRIES"),
            "retry-base-delay-ms": _get("RETRY_BASE_DELAY_MS"),
            "retry-max-delay-ms": _get("RETRY_MAX_DELAY_MS"),
            "parallelism": _get("PARALLELISM"),
        }
        return cls.from_mapping({k: v for k, v in mapping.items() if v is not None})

"""
S3-Compatible Object Store
==========================

Byte-level object store for AWS S3 and S3-compatible services (MinIO, GCS,
DigitalOcean Spaces, Wasabi, Backblaze B2, LocalStack), signing every
request itself with SigV4.

Design Principles:
------------------
1. **Resolve Once**: Endpoint style and signing region are derived when the
   store opens; requests only consult the immutable SigningContext
2. **Sign What Is Sent**: The URL path and the canonical URI come from the
   same RequestTarget
3. **Retry Logic**: Exponential backoff with jitter for transient failures
4. **Result Monad**: No exceptions for control flow
5. **Bounded Concurrency**: One semaphore per store caps in-flight requests

Request Pipeline:
-----------------
    object_key(path) → build_target → credentials() → sign → transport.send
                                     └─────── one attempt ────────┘
    retry_with_backoff wraps attempts; the semaphore is held only while an
    attempt is in flight, never across a backoff sleep.

Algorithmic Complexity:
-----------------------
| Operation    | Time     | Space    | Notes                      |
|--------------|----------|----------|----------------------------|
| write_bytes  | O(n)     | O(n)     | n = object size (hashing)  |
| read_bytes   | O(n)     | O(n)     | Full download to memory    |
| exists       | O(1)     | O(1)     | HEAD, metadata only        |
| delete_object| O(1)     | O(1)     | 404 counts as deleted      |
| list_keys    | O(k)     | O(page)  | k = result count, lazy     |

Thread Safety:
--------------
- StorageConfig and SigningContext are frozen and shared read-only
- Mutable state is limited to the semaphore, metrics and the transport pool

Author: Planetary AI Systems
License: MIT
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from s3ledger.core import constants as C
from s3ledger.core.config import StorageConfig
from s3ledger.core.errors import (
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    NotFoundError,
    RequestError,
    RequestTimeoutError,
    S3LedgerError,
    ServiceError,
    SigningError,
    ThrottlingError,
    ValidationError,
)
from s3ledger.core.types import Err, Ok, Result
from s3ledger.observability.logging import log_context
from s3ledger.reliability.retry import RetryPolicy, RetryState, retry_with_backoff
from s3ledger.signing.credentials import CredentialProvider
from s3ledger.signing.endpoint import SigningContext, resolve_signing_context
from s3ledger.signing.sigv4 import SigV4Signer, payload_hash
from s3ledger.signing.urls import build_target
from s3ledger.storage.listing import ListPage, parse_error_document, parse_list_objects
from s3ledger.storage.transport import HttpRequest, HttpResponse, HttpxTransport, Transport

logger = logging.getLogger(__name__)

_UNSENDABLE_SEGMENTS = frozenset({"", ".", ".."})


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

@dataclass(slots=True)
class S3Metrics:
    """
    Nanosecond-precision metrics for S3 operations.

    Tracks upload/download throughput, latency and failure counts.
    """
    # Operation counters
    put_count: int = 0
    get_count: int = 0
    head_count: int = 0
    delete_count: int = 0
    list_count: int = 0

    # Byte counters
    bytes_uploaded: int = 0
    bytes_downloaded: int = 0

    # Latency accumulators (nanoseconds)
    put_latency_sum_ns: int = 0
    get_latency_sum_ns: int = 0

    # Error counters
    connection_errors: int = 0
    timeout_errors: int = 0
    retry_count: int = 0

    def record_upload(self, size_bytes: int, latency_ns: int) -> None:
        """Record upload operation."""
        self.put_count += 1
        self.bytes_uploaded += size_bytes
        self.put_latency_sum_ns += latency_ns

    def record_download(self, size_bytes: int, latency_ns: int) -> None:
        """Record download operation."""
        self.get_count += 1
        self.bytes_downloaded += size_bytes
        self.get_latency_sum_ns += latency_ns

    def get_upload_throughput_mbps(self) -> float:
        """Calculate average upload throughput in MB/s."""
        if self.put_latency_sum_ns == 0:
            return 0.0
        seconds = self.put_latency_sum_ns / 1_000_000_000
        return (self.bytes_uploaded / 1_000_000) / seconds

    def get_download_throughput_mbps(self) -> float:
        """Calculate average download throughput in MB/s."""
        if self.get_latency_sum_ns == 0:
            return 0.0
        seconds = self.get_latency_sum_ns / 1_000_000_000
        return (self.bytes_downloaded / 1_000_000) / seconds


# =============================================================================
# RESPONSE CLASSIFICATION
# =============================================================================

def classify_response(
    operation: str,
    key: str,
    response: HttpResponse,
) -> Result[HttpResponse, S3LedgerError]:
    """
    Map an HTTP response to Ok or a typed error.

    | Status                | Error                | Retryable |
    |-----------------------|----------------------|-----------|
    | 2xx                   | -                    | -         |
    | 404                   | NotFoundError        | no        |
    | 401, 403              | AuthenticationError  | no        |
    | 429, 503 SlowDown     | ThrottlingError      | yes       |
    | other 5xx             | ServiceError         | yes       |
    | other 4xx             | RequestError         | no        |
    """
    status = response.status
    if response.ok:
        return Ok(response)

    code, message = parse_error_document(response.body)

    if status == 404:
        return Err(NotFoundError.object(operation, key).with_context(service_code=code))
    if status in (401, 403):
        return Err(AuthenticationError.rejected(operation, key, status, code, message))
    if status == 429 or (status == 503 and code == "SlowDown"):
        return Err(ThrottlingError.slow_down(operation, key, status, code))
    if status >= 500:
        return Err(ServiceError.from_status(operation, key, status, code, message))
    return Err(RequestError.from_status(operation, key, status, code, message))


# =============================================================================
# S3 OBJECT STORE
# =============================================================================

class S3ObjectStore:
    """
    S3-compatible object store bound to one bucket and key prefix.

    Every operation takes a logical path; the store prefix is applied by
    `object_key` for all operations alike. Operations are coroutines, so a
    caller can issue many at once; the store's parallelism bound queues the
    excess.

    Example:
        >>> config = StorageConfig(bucket="ledgers", region="us-east-1", prefix="prod")
        >>> store = S3ObjectStore(config, StaticCredentialProvider("AKID", "SECRET"))
        >>> result = await store.write_bytes("my-ledger.json", b'{"t": 1}')
        >>> await store.close()
    """

    __slots__ = (
        "_config",
        "_context",
        "_signer",
        "_credentials",
        "_transport",
        "_owns_transport",
        "_policy",
        "_semaphore",
        "_metrics",
    )

    def __init__(
        self,
        config: StorageConfig,
        credentials: CredentialProvider,
        transport: Optional[Transport] = None,
        context: Optional[SigningContext] = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            config: Store configuration.
            credentials: Provider consulted before each request is signed.
            transport: HTTP transport; an HttpxTransport is created (and
                owned) when omitted.
            context: Pre-resolved signing context; resolved from the config
                when omitted.

        Raises:
            ConfigurationError: If the endpoint/region cannot be resolved.
        """
        if context is None:
            resolved = resolve_signing_context(config.endpoint, config.region)
            if resolved.is_err():
                raise resolved.error
            context = resolved.unwrap()

        self._config = config
        self._context = context
        self._signer = SigV4Signer(context)
        self._credentials = credentials
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport(
            max_connections=config.parallelism
        )
        self._policy = RetryPolicy.from_config(config)
        self._semaphore = asyncio.Semaphore(config.parallelism)
        self._metrics = S3Metrics()

    @classmethod
    def open(
        cls,
        config: StorageConfig,
        credentials: CredentialProvider,
        transport: Optional[Transport] = None,
    ) -> Result[S3ObjectStore, ConfigurationError]:
        """Open a store, returning configuration problems as Err."""
        resolved = resolve_signing_context(config.endpoint, config.region)
        if resolved.is_err():
            return resolved
        return Ok(cls(config, credentials, transport, context=resolved.unwrap()))

    @classmethod
    def from_mapping(
        cls,
        settings: Mapping[str, Any],
        credentials: CredentialProvider,
        transport: Optional[Transport] = None,
    ) -> Result[S3ObjectStore, ConfigurationError]:
        """Open a store from a ledger configuration mapping (s3Bucket, s3Endpoint, ...)."""
        return StorageConfig.from_mapping(settings).flat_map(
            lambda config: cls.open(config, credentials, transport)
        )

    async def close(self) -> None:
        """
        Release the transport if the store created it.

        Safe to call multiple times.
        """
        if self._owns_transport:
            await self._transport.close()

    async def __aenter__(self) -> S3ObjectStore:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # ADDRESSING
    # -------------------------------------------------------------------------

    @property
    def config(self) -> StorageConfig:
        return self._config

    @property
    def context(self) -> SigningContext:
        return self._context

    @property
    def metrics(self) -> S3Metrics:
        """Get current metrics snapshot."""
        return self._metrics

    def object_key(self, path: str) -> str:
        """
        Physical object key for a logical path: `prefix/path`.

        HTTP clients collapse `.` and `..` segments before sending, so a key
        holding them would not be the key that was signed.

        Raises:
            ValidationError: If the path is empty or has an empty, `.` or
                `..` segment.
        """
        path = path.lstrip("/")
        if not path:
            raise ValidationError.invalid("path", path, "object paths cannot be empty")
        if any(segment in _UNSENDABLE_SEGMENTS for segment in path.split("/")):
            raise ValidationError.invalid(
                "path", path, "object paths cannot contain empty, '.' or '..' segments"
            )
        if self._config.prefix:
            return f"{self._config.prefix}/{path}"
        return path

    def logical_path(self, key: str) -> str:
        """Inverse of `object_key` for keys under this store's prefix."""
        if self._config.prefix:
            marker = f"{self._config.prefix}/"
            if key.startswith(marker):
                return key[len(marker):]
        return key

    def location(self) -> str:
        """Root URL of the store: endpoint + bucket + prefix."""
        root = f"{self._config.prefix}/" if self._config.prefix else ""
        return build_target(self._config.bucket, root, self._context).url

    def identifiers(self) -> frozenset[str]:
        """Identifiers this store answers to in content addresses."""
        if self._config.identifier:
            return frozenset({self._config.identifier})
        return frozenset()

    # -------------------------------------------------------------------------
    # CORE OPERATIONS
    # -------------------------------------------------------------------------

    async def write_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str = C.OCTET_STREAM,
    ) -> Result[None, S3LedgerError]:
        """
        Upload bytes to `path` (PUT).

        Idempotent: writing identical bytes to the same path again leaves the
        store in the same observable state.

        Returns:
            Ok(None) on success, Err otherwise.
        """
        key_result = self._key(path)
        if key_result.is_err():
            return key_result
        key = key_result.unwrap()

        start_ns = time.perf_counter_ns()
        result = await self._execute(
            "write",
            "PUT",
            key,
            body=data,
            headers={"content-type": content_type},
            timeout_ms=self._config.write_timeout_ms,
        )
        if result.is_err():
            return result

        self._metrics.record_upload(len(data), time.perf_counter_ns() - start_ns)
        return Ok(None)

    async def read_bytes(self, path: str) -> Result[bytes, S3LedgerError]:
        """
        Download the object at `path` (GET).

        Returns:
            Ok(data), Err(NotFoundError) if absent, other Err on failure.
        """
        key_result = self._key(path)
        if key_result.is_err():
            return key_result
        key = key_result.unwrap()

        start_ns = time.perf_counter_ns()
        result = await self._execute(
            "read", "GET", key, timeout_ms=self._config.read_timeout_ms,
        )
        if result.is_err():
            return result

        data = result.unwrap().body
        self._metrics.record_download(len(data), time.perf_counter_ns() - start_ns)
        return Ok(data)

    async def exists(self, path: str) -> Result[bool, S3LedgerError]:
        """Check whether `path` exists (HEAD)."""
        key_result = self._key(path)
        if key_result.is_err():
            return key_result
        key = key_result.unwrap()

        result = await self._execute(
            "exists", "HEAD", key, timeout_ms=self._config.read_timeout_ms,
        )
        self._metrics.head_count += 1
        if result.is_ok():
            return Ok(True)
        if isinstance(result.error, NotFoundError):
            return Ok(False)
        return result

    async def delete_object(self, path: str) -> Result[None, S3LedgerError]:
        """
        Delete the object at `path`.

        Idempotent: deleting an absent object is not an error.
        """
        key_result = self._key(path)
        if key_result.is_err():
            return key_result
        key = key_result.unwrap()

        result = await self._execute(
            "delete", "DELETE", key, timeout_ms=self._config.read_timeout_ms,
        )
        if result.is_err() and not isinstance(result.error, NotFoundError):
            return result

        self._metrics.delete_count += 1
        return Ok(None)

    # -------------------------------------------------------------------------
    # LIST OPERATIONS
    # -------------------------------------------------------------------------

    async def list_page(
        self,
        path_prefix: str = "",
        continuation_token: Optional[str] = None,
        max_keys: int = C.LIST_MAX_KEYS,
    ) -> Result[ListPage, S3LedgerError]:
        """
        Fetch one ListObjectsV2 page of logical paths under `path_prefix`.

        The page is its own retried operation; the continuation token is
        passed back to the service verbatim. Keys are requested URL-encoded
        since XML 1.0 cannot carry every character a key may hold.

        Returns:
            Ok(ListPage) whose keys have the store prefix stripped.
        """
        if self._config.prefix:
            physical_prefix = f"{self._config.prefix}/{path_prefix.lstrip('/')}"
        else:
            physical_prefix = path_prefix.lstrip("/")

        query: Dict[str, str] = {
            "list-type": "2",
            "encoding-type": "url",
            "max-keys": str(max(1, min(max_keys, C.LIST_MAX_KEYS))),
        }
        if physical_prefix:
            query["prefix"] = physical_prefix
        if continuation_token:
            query["continuation-token"] = continuation_token

        result = await self._execute(
            "list",
            "GET",
            "",
            query=query,
            timeout_ms=self._config.list_timeout_ms,
            log_key=physical_prefix,
        )
        if result.is_err():
            return result

        parsed = parse_list_objects(result.unwrap().body, source=physical_prefix or "/")
        if parsed.is_err():
            return parsed

        page = parsed.unwrap()
        self._metrics.list_count += 1
        return Ok(ListPage(
            keys=tuple(self.logical_path(k) for k in page.keys),
            next_token=page.next_token,
        ))

    async def list_keys(self, path_prefix: str = "") -> AsyncIterator[str]:
        """
        Iterate every logical path under `path_prefix`.

        Automatically paginates. A page that fails after retries raises its
        error from the iterator instead of ending the iteration early.

        Yields:
            Logical paths (store prefix stripped).
        """
        token: Optional[str] = None

        while True:
            result = await self.list_page(path_prefix, continuation_token=token)
            if result.is_err():
                raise result.error

            page = result.unwrap()
            for key in page.keys:
                yield key

            if page.next_token is None:
                break

            token = page.next_token

    async def list_all(self, path_prefix: str = "") -> Result[List[str], S3LedgerError]:
        """Collect `list_keys` into a list."""
        keys: List[str] = []
        try:
            async for key in self.list_keys(path_prefix):
                keys.append(key)
        except S3LedgerError as e:
            return Err(e)
        return Ok(keys)

    # -------------------------------------------------------------------------
    # REQUEST PIPELINE
    # -------------------------------------------------------------------------

    def _key(self, path: str) -> Result[str, S3LedgerError]:
        try:
            return Ok(self.object_key(path))
        except ValidationError as e:
            return Err(e)

    def _record_retry(self, state: RetryState) -> None:
        self._metrics.retry_count += 1
        if isinstance(state.last_error, RequestTimeoutError):
            self._metrics.timeout_errors += 1
        elif isinstance(state.last_error, NetworkError):
            self._metrics.connection_errors += 1

    async def _execute(
        self,
        operation: str,
        method: str,
        key: str,
        *,
        timeout_ms: int,
        body: bytes = b"",
        headers: Optional[Mapping[str, str]] = None,
        query: Optional[Mapping[str, str]] = None,
        log_key: Optional[str] = None,
    ) -> Result[HttpResponse, S3LedgerError]:
        """Run one logical operation through the retry scheduler."""
        shown_key = key if log_key is None else log_key
        body_hash = payload_hash(body)

        async def attempt() -> Result[HttpResponse, S3LedgerError]:
            return await self._attempt(
                operation, method, key, shown_key, body, body_hash,
                headers or {}, query, timeout_ms,
            )

        with log_context(operation=operation, bucket=self._config.bucket, key=shown_key):
            result = await retry_with_backoff(attempt, self._policy, self._record_retry)
            if result.is_err():
                logger.debug("%s failed: %s", operation, result.error)
            return result

    async def _attempt(
        self,
        operation: str,
        method: str,
        key: str,
        shown_key: str,
        body: bytes,
        body_hash: str,
        headers: Mapping[str, str],
        query: Optional[Mapping[str, str]],
        timeout_ms: int,
    ) -> Result[HttpResponse, S3LedgerError]:
        """One signed request. Holds a parallelism slot for its duration."""
        async with self._semaphore:
            try:
                credentials = await self._credentials.credentials()
            except S3LedgerError as e:
                return Err(e.with_context(operation=operation, key=shown_key))
            except Exception as e:
                return Err(SigningError.missing_credentials(
                    f"credential provider failed: {e}", cause=e,
                ).with_context(operation=operation, key=shown_key))

            try:
                target = build_target(self._config.bucket, key, self._context, query)
                signed_headers = self._signer.sign(
                    method, target, headers, body_hash, credentials,
                )
            except SigningError as e:
                return Err(e.with_context(operation=operation, key=shown_key))

            request = HttpRequest(
                method=method, url=target.url, headers=signed_headers, body=body,
            )
            timeout_s = timeout_ms / 1000

            try:
                response = await asyncio.wait_for(
                    self._transport.send(request, timeout_s), timeout=timeout_s,
                )
            except (asyncio.TimeoutError, TimeoutError):
                return Err(RequestTimeoutError.expired(operation, shown_key, timeout_ms))
            except NetworkError as e:
                return Err(e.with_context(operation=operation, key=shown_key))
            except OSError as e:
                return Err(NetworkError.connection_failed(target.url, cause=e).with_context(
                    operation=operation, key=shown_key,
                ))

        logger.debug("%s %s -> %d", method, target.url, response.status)
        return classify_response(operation, shown_key, response)


__all__ = [
    "S3ObjectStore",
    "S3Metrics",
    "classify_response",
]

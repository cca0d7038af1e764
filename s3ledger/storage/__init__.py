"""
Storage Module: S3-Compatible Ledger Storage
============================================

Provides:
- Transport protocol with an httpx-backed default
- S3ObjectStore: signed byte-level operations with retry and bounded
  concurrency
- ContentAddressedStore: hash-addressed commits and index segments
- InMemoryS3Transport: in-process S3 emulation for development/testing

Example:
    >>> store = S3ObjectStore.from_mapping(
    ...     {"s3Bucket": "ledgers", "s3Endpoint": "http://localhost:9000", "s3Region": "us-east-1"},
    ...     BotocoreCredentialProvider(),
    ... ).unwrap()
    >>> cas = ContentAddressedStore(store)
"""

from s3ledger.storage.content import (
    ContentAddress,
    ContentAddressedStore,
    IndexKind,
    LedgerLayout,
    address_to_path,
    canonical_json,
    path_to_address,
)
from s3ledger.storage.listing import ListPage, parse_error_document, parse_list_objects
from s3ledger.storage.memory import InMemoryS3Transport
from s3ledger.storage.s3_store import S3Metrics, S3ObjectStore, classify_response
from s3ledger.storage.transport import (
    HttpRequest,
    HttpResponse,
    HttpxTransport,
    Transport,
)

__all__ = [
    # Content addressing
    "ContentAddress",
    "ContentAddressedStore",
    "IndexKind",
    "LedgerLayout",
    "address_to_path",
    "canonical_json",
    "path_to_address",
    # Listing
    "ListPage",
    "parse_error_document",
    "parse_list_objects",
    # Store
    "S3Metrics",
    "S3ObjectStore",
    "classify_response",
    # Transport
    "HttpRequest",
    "HttpResponse",
    "HttpxTransport",
    "InMemoryS3Transport",
    "Transport",
]

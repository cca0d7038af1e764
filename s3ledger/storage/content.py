"""
Content-Addressed Ledger Storage

Stores immutable ledger artifacts (commits, index segments) under the
SHA-256 of their bytes, ensuring:
- Automatic deduplication (same content = same path = same address)
- Idempotent writes (re-uploading same content leaves the store unchanged)
- Integrity verification (hash mismatch on read = corruption)

Addresses have the form `fluree:[<identifier>:]s3://<path>`. The same pair
of pure functions (`path_to_address` / `address_to_path`) is used on the
write and read side, so a written address always resolves back to the path
it was written to.

Key layout:
    <ledger>.json                           ledger metadata (mutable)
    <ledger>/commit/<sha256>.json           commits
    <ledger>/index/<kind>/<sha256>.json     index segments (root/post/spot/tspo/opst)
"""

from __future__ import annotations

import json
import logging
import posixpath
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, FrozenSet, Optional

from s3ledger.core import constants as C
from s3ledger.core.errors import (
    AddressResolutionError,
    IntegrityError,
    ParseError,
    S3LedgerError,
)
from s3ledger.core.types import ContentHash, Err, Ok, Result
from s3ledger.storage.s3_store import S3ObjectStore

logger = logging.getLogger(__name__)

_ADDRESS_PREFIX = f"{C.ADDRESS_SCHEME}:"
_METHOD_PREFIX = f"{C.ADDRESS_METHOD}://"


# =============================================================================
# ADDRESSES
# =============================================================================

def path_to_address(path: str, identifier: Optional[str] = None) -> str:
    """
    Address for a logical path.

    Example:
        >>> path_to_address("ledger/commit/ab12.json")
        'fluree:s3://ledger/commit/ab12.json'
        >>> path_to_address("ledger/commit/ab12.json", "prod")
        'fluree:prod:s3://ledger/commit/ab12.json'
    """
    if identifier:
        return f"{_ADDRESS_PREFIX}{identifier}:{_METHOD_PREFIX}{path}"
    return f"{_ADDRESS_PREFIX}{_METHOD_PREFIX}{path}"


def address_to_path(address: str, identifiers: FrozenSet[str] = frozenset()) -> str:
    """
    Logical path named by an address.

    Args:
        address: `fluree:[<identifier>:]s3://<path>`.
        identifiers: Identifiers the resolving store answers to. An address
            without identifier resolves against any store.

    Raises:
        AddressResolutionError: Wrong scheme or method, an identifier the
            store does not own, or an empty path.
    """
    if not address.startswith(_ADDRESS_PREFIX):
        raise AddressResolutionError.unresolvable(
            address, f"expected scheme '{C.ADDRESS_SCHEME}'"
        )
    rest = address[len(_ADDRESS_PREFIX):]

    if not rest.startswith(_METHOD_PREFIX):
        identifier, _, rest = rest.partition(":")
        if not rest.startswith(_METHOD_PREFIX):
            raise AddressResolutionError.unresolvable(
                address, f"expected method '{C.ADDRESS_METHOD}'"
            )
        if identifier not in identifiers:
            raise AddressResolutionError.unresolvable(
                address, f"identifier '{identifier}' does not belong to this store"
            )

    path = rest[len(_METHOD_PREFIX):].lstrip("/")
    if not path:
        raise AddressResolutionError.unresolvable(address, "address has no path")
    return path


@dataclass(frozen=True, slots=True)
class ContentAddress:
    """Content-addressed object reference."""
    hash: ContentHash
    path: str
    address: str
    size_bytes: int

    @property
    def hash_hex(self) -> str:
        return self.hash.to_hex()


# =============================================================================
# LEDGER LAYOUT
# =============================================================================

class IndexKind(Enum):
    """Index segment families."""
    ROOT = "root"
    POST = "post"
    SPOT = "spot"
    TSPO = "tspo"
    OPST = "opst"


class LedgerLayout:
    """Logical paths of a ledger's artifacts."""

    @staticmethod
    def metadata_path(ledger: str) -> str:
        return f"{ledger}.json"

    @staticmethod
    def commit_dir(ledger: str) -> str:
        return f"{ledger}/commit"

    @staticmethod
    def index_dir(ledger: str, kind: IndexKind) -> str:
        return f"{ledger}/index/{kind.value}"


# =============================================================================
# JSON
# =============================================================================

def canonical_json(document: Any) -> bytes:
    """Deterministic JSON bytes: sorted keys, compact separators, UTF-8."""
    return json.dumps(
        document, sort_keys=True, separators=(",", ":"), ensure_ascii=False,
    ).encode("utf-8")


def convert_keys(value: Any, key_fn: Callable[[str], Any]) -> Any:
    """Apply `key_fn` to every object key, recursively."""
    if isinstance(value, dict):
        return {key_fn(k): convert_keys(v, key_fn) for k, v in value.items()}
    if isinstance(value, list):
        return [convert_keys(v, key_fn) for v in value]
    return value


# =============================================================================
# CONTENT-ADDRESSED STORE
# =============================================================================

class ContentAddressedStore:
    """
    Content-addressed layer over an S3ObjectStore.

    Usage:
        cas = ContentAddressedStore(store)

        # Store a commit
        result = await cas.content_write_json(LedgerLayout.commit_dir("books"), commit)
        ref = result.unwrap()

        # Retrieve by address
        doc = (await cas.read_json(ref.address)).unwrap()

    Args:
        store: Underlying byte store.
        skip_existing: Probe with HEAD before writing and skip the upload when
            the object is already present. Off by default since credentials
            scoped to PUT/GET may be refused HEAD.
    """

    __slots__ = ("_store", "_skip_existing")

    def __init__(self, store: S3ObjectStore, skip_existing: bool = False) -> None:
        self._store = store
        self._skip_existing = skip_existing

    @property
    def store(self) -> S3ObjectStore:
        return self._store

    def _identifier(self) -> Optional[str]:
        return self._store.config.identifier

    def address_of(self, path: str) -> str:
        """Address of a logical path in this store."""
        return path_to_address(path, self._identifier())

    def resolve(self, address: str) -> Result[str, AddressResolutionError]:
        """Logical path of an address, as a Result."""
        try:
            return Ok(address_to_path(address, self._store.identifiers()))
        except AddressResolutionError as e:
            return Err(e)

    # -------------------------------------------------------------------------
    # WRITE
    # -------------------------------------------------------------------------

    async def content_write(
        self,
        directory: str,
        payload: bytes,
        extension: str = "json",
        content_type: str = C.OCTET_STREAM,
    ) -> Result[ContentAddress, S3LedgerError]:
        """
        Store payload at `directory/<sha256>.<extension>`.

        Idempotent: re-storing the same payload yields the same address, and
        concurrent writers of one payload race harmlessly.
        """
        content_hash = ContentHash.compute(payload)
        file_name = f"{content_hash.to_hex()}.{extension}" if extension else content_hash.to_hex()
        path = posixpath.join(directory.strip("/"), file_name) if directory.strip("/") else file_name

        ref = ContentAddress(
            hash=content_hash,
            path=path,
            address=self.address_of(path),
            size_bytes=len(payload),
        )

        if self._skip_existing:
            exists = await self._store.exists(path)
            if exists.is_ok() and exists.unwrap():
                logger.debug("Skipping upload of existing %s", path)
                return Ok(ref)

        result = await self._store.write_bytes(path, payload, content_type)
        if result.is_err():
            return result
        return Ok(ref)

    async def content_write_json(
        self,
        directory: str,
        document: Any,
    ) -> Result[ContentAddress, S3LedgerError]:
        """Serialize canonically, then `content_write`."""
        return await self.content_write(
            directory, canonical_json(document), "json", C.JSON_CONTENT_TYPE,
        )

    async def write_json(self, path: str, document: Any) -> Result[str, S3LedgerError]:
        """
        Write a mutable JSON document (ledger metadata) at `path`.

        Returns:
            Ok(address) of the written path.
        """
        result = await self._store.write_bytes(
            path, canonical_json(document), C.JSON_CONTENT_TYPE,
        )
        if result.is_err():
            return result
        return Ok(self.address_of(path.lstrip("/")))

    # -------------------------------------------------------------------------
    # READ
    # -------------------------------------------------------------------------

    async def read_bytes(self, address: str) -> Result[bytes, S3LedgerError]:
        """
        Read the bytes named by an address.

        When the file name is a content hash the bytes are verified against
        it; a mismatch is an IntegrityError.
        """
        resolved = self.resolve(address)
        if resolved.is_err():
            return resolved
        path = resolved.unwrap()

        result = await self._store.read_bytes(path)
        if result.is_err():
            return result
        data = result.unwrap()

        stem = posixpath.basename(path).split(".", 1)[0]
        if ContentHash.looks_like_hex(stem):
            actual = ContentHash.compute(data).to_hex()
            if actual != stem:
                return Err(IntegrityError.hash_mismatch(address, stem, actual))

        return Ok(data)

    async def read_json(
        self,
        address: str,
        key_fn: Optional[Callable[[str], Any]] = None,
    ) -> Result[Any, S3LedgerError]:
        """
        Read and parse a JSON document.

        Args:
            address: Content or metadata address.
            key_fn: Applied to every object key (e.g. to produce symbolic
                keys); keys stay strings when omitted.
        """
        result = await self.read_bytes(address)
        if result.is_err():
            return result

        try:
            document = json.loads(result.unwrap().decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            return Err(ParseError.malformed("JSON document", address, e))

        if key_fn is not None:
            document = convert_keys(document, key_fn)
        return Ok(document)

    # -------------------------------------------------------------------------
    # MANAGEMENT
    # -------------------------------------------------------------------------

    async def exists(self, address: str) -> Result[bool, S3LedgerError]:
        """Check if content exists."""
        resolved = self.resolve(address)
        if resolved.is_err():
            return resolved
        return await self._store.exists(resolved.unwrap())

    async def delete(self, address: str) -> Result[None, S3LedgerError]:
        """Delete content by address. Absent content is not an error."""
        resolved = self.resolve(address)
        if resolved.is_err():
            return resolved
        return await self._store.delete_object(resolved.unwrap())


__all__ = [
    "ContentAddress",
    "ContentAddressedStore",
    "IndexKind",
    "LedgerLayout",
    "address_to_path",
    "canonical_json",
    "convert_keys",
    "path_to_address",
]

"""
Unit Tests: Content-Addressed Layer

Tests:
    - Address <-> path resolution (both directions together)
    - Content write/read round trip under a store prefix
    - Deduplication and concurrent writers
    - Integrity, parse and resolution failures
    - Ledger key layout
"""

import asyncio
import hashlib
import json

import pytest

from s3ledger.core.errors import AddressResolutionError, IntegrityError, ParseError
from s3ledger.storage.content import (
    ContentAddressedStore,
    IndexKind,
    LedgerLayout,
    address_to_path,
    canonical_json,
    path_to_address,
)
from s3ledger.storage.s3_store import S3ObjectStore

from s3ledger.tests.conftest import BUCKET, make_config


@pytest.fixture
def prefixed_store(credentials, transport):
    return S3ObjectStore(make_config(prefix="prod/tenant", identifier="main"), credentials, transport)


@pytest.fixture
def cas(prefixed_store):
    return ContentAddressedStore(prefixed_store)


class TestAddresses:
    """Tests for the address/path function pair."""

    @pytest.mark.parametrize("path,identifier", [
        ("books.json", None),
        ("books/commit/abc.json", None),
        ("books/index/spot/abc.json", "main"),
        ("nested/ledger/name/commit/x.json", "tenant-7"),
    ])
    def test_inverse(self, path, identifier):
        identifiers = frozenset({identifier}) if identifier else frozenset()

        address = path_to_address(path, identifier)

        assert address_to_path(address, identifiers) == path

    def test_address_format(self):
        assert path_to_address("a/b.json") == "fluree:s3://a/b.json"
        assert path_to_address("a/b.json", "main") == "fluree:main:s3://a/b.json"

    def test_unqualified_address_resolves_anywhere(self):
        assert address_to_path("fluree:s3://a.json", frozenset({"main"})) == "a.json"

    @pytest.mark.parametrize("address", [
        "s3://a.json",
        "fluree:file://a.json",
        "fluree:main:file://a.json",
        "fluree:s3://",
        "fluree:other:s3://a.json",
    ])
    def test_unresolvable(self, address):
        with pytest.raises(AddressResolutionError):
            address_to_path(address, frozenset({"main"}))


class TestLedgerLayout:
    """Tests for the ledger key layout."""

    def test_paths(self):
        assert LedgerLayout.metadata_path("books") == "books.json"
        assert LedgerLayout.commit_dir("books") == "books/commit"
        assert LedgerLayout.index_dir("books", IndexKind.TSPO) == "books/index/tspo"

    def test_index_kinds(self):
        assert [k.value for k in IndexKind] == ["root", "post", "spot", "tspo", "opst"]

    @pytest.mark.asyncio
    async def test_physical_keys_under_prefix(self, cas, transport):
        commit = await cas.content_write_json(LedgerLayout.commit_dir("books"), {"t": 1})
        index = await cas.content_write_json(
            LedgerLayout.index_dir("books", IndexKind.SPOT), {"leaf": []},
        )
        await cas.write_json(LedgerLayout.metadata_path("books"), {"head": 1})

        commit_hex = commit.unwrap().hash_hex
        index_hex = index.unwrap().hash_hex
        assert transport.keys(BUCKET) == sorted([
            "prod/tenant/books.json",
            f"prod/tenant/books/commit/{commit_hex}.json",
            f"prod/tenant/books/index/spot/{index_hex}.json",
        ])


class TestContentWrite:
    """Tests for content_write and friends."""

    @pytest.mark.asyncio
    async def test_round_trip(self, cas, prefixed_store):
        payload = b'{"@context": {}, "data": [1, 2, 3]}'

        ref = (await cas.content_write("books/commit", payload)).unwrap()
        by_path = await prefixed_store.read_bytes(address_to_path(ref.address, prefixed_store.identifiers()))
        by_address = await cas.read_bytes(ref.address)

        assert by_path.unwrap() == payload
        assert by_address.unwrap() == payload
        assert ref.hash_hex == hashlib.sha256(payload).hexdigest()
        assert ref.address == f"fluree:main:s3://books/commit/{ref.hash_hex}.json"
        assert ref.size_bytes == len(payload)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [b"x", b"\x00\xff" * 100, "ünïcödé".encode("utf-8")])
    async def test_arbitrary_payloads(self, cas, payload):
        ref = (await cas.content_write("blobs", payload, extension="bin")).unwrap()

        assert (await cas.read_bytes(ref.address)).unwrap() == payload

    @pytest.mark.asyncio
    async def test_same_payload_same_address(self, cas, transport):
        first = (await cas.content_write("books/commit", b"{}")).unwrap()
        second = (await cas.content_write("books/commit", b"{}")).unwrap()

        assert first.address == second.address
        assert len(transport.keys(BUCKET)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_writers_race_harmlessly(self, cas, transport):
        results = await asyncio.gather(*[
            cas.content_write("books/commit", b'{"same": true}') for _ in range(8)
        ])

        assert len({r.unwrap().address for r in results}) == 1
        assert len(transport.keys(BUCKET)) == 1

    @pytest.mark.asyncio
    async def test_skip_existing(self, prefixed_store, transport):
        cas = ContentAddressedStore(prefixed_store, skip_existing=True)

        await cas.content_write("books/commit", b"{}")
        await cas.content_write("books/commit", b"{}")

        methods = [r.method for r in transport.requests]
        assert methods == ["HEAD", "PUT", "HEAD"]

    @pytest.mark.asyncio
    async def test_canonical_json_is_stable(self, cas):
        a = await cas.content_write_json("books/commit", {"b": 1, "a": [1, {"d": 2, "c": 3}]})
        b = await cas.content_write_json("books/commit", {"a": [1, {"c": 3, "d": 2}], "b": 1})

        assert a.unwrap().address == b.unwrap().address

    def test_canonical_json_bytes(self):
        assert canonical_json({"b": "é", "a": 1}) == '{"a":1,"b":"é"}'.encode("utf-8")


class TestReadJson:
    """Tests for read_json."""

    @pytest.mark.asyncio
    async def test_round_trip(self, cas):
        document = {"@id": "books", "commits": [{"t": 1}, {"t": 2}]}

        ref = (await cas.content_write_json("books/commit", document)).unwrap()

        assert (await cas.read_json(ref.address)).unwrap() == document

    @pytest.mark.asyncio
    async def test_key_conversion(self, cas):
        ref = (await cas.content_write_json("books/commit", {"a": {"b": [{"c": 1}]}})).unwrap()

        result = await cas.read_json(ref.address, key_fn=str.upper)

        assert result.unwrap() == {"A": {"B": [{"C": 1}]}}

    @pytest.mark.asyncio
    async def test_metadata_document(self, cas):
        address = (await cas.write_json("books.json", {"head": "abc"})).unwrap()

        assert address == "fluree:main:s3://books.json"
        assert (await cas.read_json(address)).unwrap() == {"head": "abc"}

    @pytest.mark.asyncio
    async def test_malformed_json(self, cas):
        address = (await cas.write_json("books.json", {})).unwrap()
        await cas.store.write_bytes("books.json", b"{not json")

        result = await cas.read_json(address)

        assert isinstance(result.error, ParseError)

    @pytest.mark.asyncio
    async def test_corrupted_content(self, cas, transport):
        ref = (await cas.content_write_json("books/commit", {"t": 1})).unwrap()
        transport.put_object(BUCKET, f"prod/tenant/{ref.path}", json.dumps({"t": 2}).encode())

        result = await cas.read_json(ref.address)

        assert isinstance(result.error, IntegrityError)

    @pytest.mark.asyncio
    async def test_foreign_identifier(self, cas, transport):
        result = await cas.read_json("fluree:other:s3://books/commit/abc.json")

        assert isinstance(result.error, AddressResolutionError)
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_missing_document(self, cas):
        result = await cas.read_json("fluree:s3://books/commit/missing.json")

        assert result.is_err()
        assert result.error.status == 404


class TestManagement:
    @pytest.mark.asyncio
    async def test_exists_and_delete(self, cas):
        ref = (await cas.content_write("books/commit", b"{}")).unwrap()

        assert (await cas.exists(ref.address)).unwrap() is True
        assert (await cas.delete(ref.address)).is_ok()
        assert (await cas.exists(ref.address)).unwrap() is False
        assert (await cas.delete(ref.address)).is_ok()

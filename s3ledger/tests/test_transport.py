"""
Unit Tests: httpx Transport

Tests:
    - Signed requests are sent as built (method, encoded path, headers, body)
    - httpx failures map to the store's error kinds
    - Ownership of the underlying client
"""

import httpx
import pytest

from s3ledger.core.errors import NetworkError, RequestTimeoutError, ValidationError
from s3ledger.signing.urls import build_target
from s3ledger.storage.s3_store import S3ObjectStore
from s3ledger.storage.transport import HttpRequest, HttpxTransport

from s3ledger.tests.conftest import BUCKET, make_config


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpxTransport:
    @pytest.mark.asyncio
    async def test_request_passthrough(self):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["raw_path"] = request.url.raw_path
            captured["headers"] = dict(request.headers)
            captured["body"] = request.content
            return httpx.Response(200, headers={"ETag": '"abc"'}, content=b"ok")

        transport = HttpxTransport(client=_client(handler))
        response = await transport.send(
            HttpRequest(
                method="PUT",
                url="http://localhost:9000/ledgers/a%20b/c%2Bd.json",
                headers={"x-amz-date": "20130524T000000Z", "host": "localhost:9000"},
                body=b"payload",
            ),
            timeout_s=1.0,
        )

        assert response.status == 200
        assert response.body == b"ok"
        assert response.headers["etag"] == '"abc"'
        assert captured["method"] == "PUT"
        assert captured["raw_path"] == b"/ledgers/a%20b/c%2Bd.json"
        assert captured["headers"]["x-amz-date"] == "20130524T000000Z"
        assert captured["body"] == b"payload"

    @pytest.mark.asyncio
    async def test_connect_error_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = HttpxTransport(client=_client(handler))

        with pytest.raises(NetworkError):
            await transport.send(HttpRequest("GET", "http://localhost:9000/b/k", {}), 1.0)

    @pytest.mark.asyncio
    async def test_timeout_is_builtin_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        transport = HttpxTransport(client=_client(handler))

        with pytest.raises(TimeoutError):
            await transport.send(HttpRequest("GET", "http://localhost:9000/b/k", {}), 1.0)

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self):
        client = _client(lambda request: httpx.Response(200))
        transport = HttpxTransport(client=client)

        await transport.close()

        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        transport = HttpxTransport()

        await transport.close()

        assert transport._client.is_closed


class TestStoreOverHttpx:
    @pytest.mark.asyncio
    async def test_retries_through_httpx(self, credentials):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("reset", request=request)
            if len(calls) == 2:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, content=b"{}")

        store = S3ObjectStore(
            make_config(), credentials, HttpxTransport(client=_client(handler)),
        )

        result = await store.read_bytes("books.json")

        assert result.unwrap() == b"{}"
        assert len(calls) == 3
        assert store.metrics.connection_errors == 1
        assert store.metrics.timeout_errors == 1
        assert calls[-1].headers["authorization"].startswith("AWS4-HMAC-SHA256 ")

    @pytest.mark.asyncio
    async def test_timeouts_exhausted(self, credentials):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        store = S3ObjectStore(
            make_config(max_retries=1), credentials, HttpxTransport(client=_client(handler)),
        )

        result = await store.read_bytes("books.json")

        assert isinstance(result.error, RequestTimeoutError)
        assert result.error.context["attempts"] == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", [
        "books/commit/abc.json",
        "ledger name/ünï+code=1.json",
        "ledger/.hidden/x..json",
        "a~b/c;d,e/f@g.json",
    ])
    async def test_sent_path_is_signed_path(self, credentials, path):
        sent = []

        def handler(request):
            sent.append(request.url.raw_path)
            return httpx.Response(200)

        store = S3ObjectStore(
            make_config(prefix="prod"), credentials, HttpxTransport(client=_client(handler)),
        )

        assert (await store.write_bytes(path, b"{}")).is_ok()

        target = build_target(BUCKET, store.object_key(path), store.context)
        assert sent == [target.canonical_uri.encode("ascii")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["ledger/./x.json", "ledger/../x.json", "ledger//x.json"])
    async def test_collapsible_paths_never_sent(self, credentials, path):
        sent = []

        def handler(request):
            sent.append(request.url.raw_path)
            return httpx.Response(200)

        store = S3ObjectStore(
            make_config(), credentials, HttpxTransport(client=_client(handler)),
        )

        result = await store.write_bytes(path, b"{}")

        assert isinstance(result.error, ValidationError)
        assert sent == []

"""
In-Memory S3 Transport

A Transport that answers signed requests the way an S3 service would, from
an in-process dict. Used for development and for the test suite:

- PUT / GET / HEAD / DELETE on objects
- ListObjectsV2 (`list-type=2`) with prefix, max-keys, `encoding-type=url` and opaque
  continuation tokens
- Virtual-hosted (`{bucket}.s3.{region}.amazonaws.com`) and path-style
  (`{endpoint}/{bucket}/{key}`) URLs
- Failure injection (HTTP status, connection errors, hangs) and request
  recording for assertions

Example:
    transport = InMemoryS3Transport()
    transport.fail_next(500, times=2)
    store = S3ObjectStore(config, credentials, transport)
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import xml.etree.ElementTree as ET
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, quote_plus, unquote, urlsplit

from s3ledger.core import constants as C
from s3ledger.core.errors import NetworkError
from s3ledger.storage.transport import HttpRequest, HttpResponse

_S3_NS = "http://s3.amazonaws.com/doc/2006-03-01/"


@dataclass(frozen=True, slots=True)
class StoredObject:
    """An object held by the fake service."""
    data: bytes
    content_type: str
    etag: str
    last_modified: datetime


@dataclass(slots=True)
class _Fault:
    status: Optional[int] = None
    code: Optional[str] = None
    network: bool = False
    hang: bool = False


@dataclass
class TransportStats:
    """Concurrency observed by the fake service."""
    in_flight: int = 0
    max_in_flight: int = 0
    request_count: int = 0


class InMemoryS3Transport:
    """
    Transport emulating an S3-compatible service in memory.

    Args:
        latency_s: Delay applied to every request (for concurrency tests).
        require_auth: Reject requests without a SigV4 Authorization header
            with HTTP 403.
    """

    def __init__(self, latency_s: float = 0.0, require_auth: bool = True) -> None:
        self._buckets: Dict[str, Dict[str, StoredObject]] = {}
        self._faults: Deque[_Fault] = deque()
        self._latency_s = latency_s
        self._require_auth = require_auth
        self._closed = False
        self.requests: List[HttpRequest] = []
        self.stats = TransportStats()

    # -------------------------------------------------------------------------
    # TEST CONTROLS
    # -------------------------------------------------------------------------

    def fail_next(self, status: int, times: int = 1, code: Optional[str] = None) -> None:
        """Answer the next `times` requests with `status`."""
        for _ in range(times):
            self._faults.append(_Fault(status=status, code=code))

    def drop_next(self, times: int = 1) -> None:
        """Fail the next `times` requests with a connection error."""
        for _ in range(times):
            self._faults.append(_Fault(network=True))

    def hang_next(self, times: int = 1) -> None:
        """Never answer the next `times` requests."""
        for _ in range(times):
            self._faults.append(_Fault(hang=True))

    def put_object(self, bucket: str, key: str, data: bytes) -> None:
        """Seed an object directly, bypassing the request path."""
        self._store(bucket, key, data, C.OCTET_STREAM)

    def get_object(self, bucket: str, key: str) -> Optional[bytes]:
        obj = self._buckets.get(bucket, {}).get(key)
        return obj.data if obj else None

    def keys(self, bucket: str) -> List[str]:
        return sorted(self._buckets.get(bucket, {}))

    @property
    def closed(self) -> bool:
        return self._closed

    # -------------------------------------------------------------------------
    # TRANSPORT
    # -------------------------------------------------------------------------

    async def send(self, request: HttpRequest, timeout_s: float) -> HttpResponse:
        self.requests.append(request)
        self.stats.request_count += 1
        self.stats.in_flight += 1
        self.stats.max_in_flight = max(self.stats.max_in_flight, self.stats.in_flight)
        try:
            if self._latency_s:
                await asyncio.sleep(self._latency_s)

            if self._faults:
                fault = self._faults.popleft()
                if fault.hang:
                    await asyncio.sleep(timeout_s + 60)
                if fault.network:
                    raise NetworkError.connection_failed(
                        request.url, cause=ConnectionResetError("connection reset by peer"),
                    )
                if fault.status is not None:
                    return _error(fault.status, fault.code or "InjectedFault", "injected fault")

            return self._handle(request)
        finally:
            self.stats.in_flight -= 1

    async def close(self) -> None:
        self._closed = True

    # -------------------------------------------------------------------------
    # SERVICE EMULATION
    # -------------------------------------------------------------------------

    def _handle(self, request: HttpRequest) -> HttpResponse:
        headers = {k.lower(): v for k, v in request.headers.items()}
        if self._require_auth and not headers.get("authorization", "").startswith(C.SIGV4_ALGORITHM):
            return _error(403, "AccessDenied", "Access Denied")

        parts = urlsplit(request.url)
        bucket, key = _bucket_and_key(parts.hostname or "", parts.path)
        if not bucket:
            return _error(400, "InvalidBucketName", "The specified bucket is not valid.")

        method = request.method.upper()
        query = dict(parse_qsl(parts.query, keep_blank_values=True))

        if not key:
            if method == "GET" and query.get("list-type") == "2":
                return self._list(bucket, query)
            return _error(405, "MethodNotAllowed", "Bucket-level operation not supported")

        if method == "PUT":
            obj = self._store(
                bucket, key, request.body, headers.get("content-type", C.OCTET_STREAM),
            )
            return HttpResponse(status=200, headers={"etag": f'"{obj.etag}"'})

        obj = self._buckets.get(bucket, {}).get(key)

        if method == "DELETE":
            if obj is not None:
                del self._buckets[bucket][key]
            return HttpResponse(status=204)

        if obj is None:
            if method == "HEAD":
                return HttpResponse(status=404)
            return _error(404, "NoSuchKey", "The specified key does not exist.")

        meta = {
            "content-type": obj.content_type,
            "content-length": str(len(obj.data)),
            "etag": f'"{obj.etag}"',
        }
        if method == "HEAD":
            return HttpResponse(status=200, headers=meta)
        if method == "GET":
            return HttpResponse(status=200, headers=meta, body=obj.data)
        return _error(405, "MethodNotAllowed", f"{method} not supported")

    def _store(self, bucket: str, key: str, data: bytes, content_type: str) -> StoredObject:
        obj = StoredObject(
            data=bytes(data),
            content_type=content_type,
            etag=hashlib.md5(data).hexdigest(),
            last_modified=datetime.now(timezone.utc),
        )
        self._buckets.setdefault(bucket, {})[key] = obj
        return obj

    def _list(self, bucket: str, query: Dict[str, str]) -> HttpResponse:
        prefix = query.get("prefix", "")
        try:
            max_keys = int(query.get("max-keys", C.LIST_MAX_KEYS))
        except ValueError:
            return _error(400, "InvalidArgument", "max-keys must be an integer")

        start_after = ""
        token = query.get("continuation-token")
        if token:
            try:
                start_after = base64.b64decode(token.encode("ascii"), validate=True).decode("utf-8")
            except ValueError:
                return _error(400, "InvalidArgument", "The continuation token provided is incorrect")

        matching = [
            k for k in sorted(self._buckets.get(bucket, {}))
            if k.startswith(prefix) and k > start_after
        ]
        page, rest = matching[:max_keys], matching[max_keys:]
        url_encoded = query.get("encoding-type") == "url"

        root = ET.Element("ListBucketResult", xmlns=_S3_NS)
        ET.SubElement(root, "Name").text = bucket
        ET.SubElement(root, "Prefix").text = quote_plus(prefix, safe="/") if url_encoded else prefix
        ET.SubElement(root, "KeyCount").text = str(len(page))
        ET.SubElement(root, "MaxKeys").text = str(max_keys)
        ET.SubElement(root, "IsTruncated").text = "true" if rest else "false"
        if url_encoded:
            ET.SubElement(root, "EncodingType").text = "url"
        if token:
            ET.SubElement(root, "ContinuationToken").text = token
        if rest:
            next_token = base64.b64encode(page[-1].encode("utf-8")).decode("ascii")
            ET.SubElement(root, "NextContinuationToken").text = next_token

        objects = self._buckets.get(bucket, {})
        for key in page:
            contents = ET.SubElement(root, "Contents")
            ET.SubElement(contents, "Key").text = quote_plus(key, safe="/") if url_encoded else key
            ET.SubElement(contents, "LastModified").text = (
                objects[key].last_modified.strftime("%Y-%m-%dT%H:%M:%S.000Z")
            )
            ET.SubElement(contents, "ETag").text = f'"{objects[key].etag}"'
            ET.SubElement(contents, "Size").text = str(len(objects[key].data))

        return HttpResponse(
            status=200,
            headers={"content-type": "application/xml"},
            body=ET.tostring(root, encoding="utf-8", xml_declaration=True),
        )


def _bucket_and_key(host: str, path: str) -> Tuple[str, str]:
    """Split a request into bucket and decoded key for either URL style."""
    marker = ".s3."
    if host.endswith(f".{C.AWS_DOMAIN}") and marker in host:
        bucket = host.split(marker, 1)[0]
        return bucket, unquote(path.lstrip("/"))

    bucket, _, key = path.lstrip("/").partition("/")
    return unquote(bucket), unquote(key)


def _error(status: int, code: str, message: str) -> HttpResponse:
    root = ET.Element("Error")
    ET.SubElement(root, "Code").text = code
    ET.SubElement(root, "Message").text = message
    return HttpResponse(
        status=status,
        headers={"content-type": "application/xml"},
        body=ET.tostring(root, encoding="utf-8", xml_declaration=True),
    )


__all__ = ["InMemoryS3Transport", "StoredObject", "TransportStats"]

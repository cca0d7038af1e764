"""
HTTP Transport
==============

The store treats HTTP as a black box: send a signed request, get a status,
headers and body back, or an I/O error. Anything that implements
`Transport.send` can be injected (connection pools, proxies, test fakes).

`HttpxTransport` is the default, backed by a pooled `httpx.AsyncClient`.
It translates httpx failures into the store's error kinds:
- httpx.TimeoutException → builtin TimeoutError (the store attaches the
  operation and key and classifies it as RequestTimeoutError)
- any other httpx.TransportError → NetworkError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol, runtime_checkable

import httpx

from s3ledger.core.errors import NetworkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HttpRequest:
    """A fully signed request."""
    method: str
    url: str
    headers: Mapping[str, str]
    body: bytes = b""


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """Status, headers (lower-cased names) and body of a response."""
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@runtime_checkable
class Transport(Protocol):
    """Sends one request."""

    async def send(self, request: HttpRequest, timeout_s: float) -> HttpResponse:
        """
        Raises:
            TimeoutError: The request exceeded timeout_s.
            NetworkError: Connection failed or was reset.
        """
        ...

    async def close(self) -> None:
        ...


class HttpxTransport:
    """
    Transport over a pooled httpx.AsyncClient.

    Args:
        client: Optional pre-built client for dependency injection (testing,
            custom TLS/proxy settings). A client passed in is not closed by
            `close()`.
        max_connections: Pool size when the transport builds its own client.
        verify: TLS verification when the transport builds its own client.
    """

    __slots__ = ("_client", "_owns_client")

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        max_connections: int = 10,
        verify: bool = True,
    ) -> None:
        if client is None:
            client = httpx.AsyncClient(
                limits=httpx.Limits(max_connections=max_connections),
                verify=verify,
            )
            self._owns_client = True
        else:
            self._owns_client = False
        self._client = client

    async def send(self, request: HttpRequest, timeout_s: float) -> HttpResponse:
        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                content=request.body or None,
                timeout=timeout_s,
            )
        except httpx.TimeoutException as e:
            raise TimeoutError(f"{request.method} {request.url} timed out") from e
        except httpx.TransportError as e:
            raise NetworkError.connection_failed(request.url, cause=e) from e

        return HttpResponse(
            status=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            body=response.content,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

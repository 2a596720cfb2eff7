"""HTTP transport used by the dispatcher.

The dispatcher only depends on the Transport protocol: given a request and
a timeout, return the status code and body, or raise TransportError.
HttpxTransport is the default implementation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import httpx

from courier.exceptions import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportRequest:
    """A fully built outbound request.

    Attributes:
        method: HTTP method.
        url: Destination URL.
        headers: Request headers.
        content: Encoded body, None for GET/HEAD.
        params: Query parameters, used for GET.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes | None = None
    params: dict[str, str] | None = None


@dataclass(frozen=True)
class TransportResponse:
    """Status and body returned by the remote endpoint."""

    status_code: int
    text: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


@runtime_checkable
class Transport(Protocol):
    """Performs the network call for a delivery attempt."""

    async def send(self, request: TransportRequest, timeout: float) -> TransportResponse:
        """Send a request.

        Raises:
            TransportError: On network failure or timeout.
        """
        ...

    async def aclose(self) -> None:
        """Release any pooled connections."""
        ...


class HttpxTransport:
    """Transport backed by a shared httpx.AsyncClient.

    Args:
        client: Client to use. One is created (and owned) when omitted.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True)

    async def send(self, request: TransportRequest, timeout: float) -> TransportResponse:
        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.content,
                params=request.params,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout after {timeout:g}s") from e
        except httpx.RequestError as e:
            raise TransportError(str(e) or type(e).__name__) from e

        logger.debug(
            "%s %s -> %d", request.method, request.url, response.status_code
        )
        return TransportResponse(status_code=response.status_code, text=response.text)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

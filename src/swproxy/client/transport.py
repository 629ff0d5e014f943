"""Network transport capability.

Strategies and the retry queue only need ``send(request) -> response``;
:class:`Transport` states that contract and :class:`HttpxTransport` is the
default implementation on top of :class:`httpx.AsyncClient`.

Unlike a general-purpose API client this layer does not retry, back off,
or map HTTP status codes to exceptions. A non-2xx response is a normal
return value; only request-level failures (DNS, refused connection,
timeout, protocol error, redirect loop, undecodable body) raise
:class:`~swproxy.exceptions.TransportError`.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

from swproxy.exceptions import TransportError
from swproxy.models import TransportConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """Protocol for anything that can put a request on the wire.

    Any type with a matching ``send`` coroutine satisfies it; no
    inheritance needed.
    """

    async def send(self, request: httpx.Request) -> httpx.Response:
        """Send *request* and return the fully read response.

        Raises:
            TransportError: The request never produced a response.
        """
        ...


class HttpxTransport:
    """Transport backed by :class:`httpx.AsyncClient`.

    The client is created lazily on first use unless one is injected, which
    is how tests route traffic through :class:`httpx.MockTransport`.

    Args:
        config: Timeout, TLS and redirect settings.
        client: Pre-built client to use instead of creating one.

    Example::

        async with HttpxTransport(TransportConfig(timeout=10)) as transport:
            response = await transport.send(httpx.Request("GET", url))
    """

    def __init__(
        self,
        config: Optional[TransportConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or TransportConfig()
        self._client = client

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> HttpxTransport:
        self._ensure_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def send(self, request: httpx.Request) -> httpx.Response:
        client = self._ensure_client()
        try:
            response = await client.send(request)
        except httpx.RequestError as exc:
            logger.debug("Transport failure for %s %s: %s", request.method, request.url, exc)
            raise TransportError(f"{request.method} {request.url} failed: {exc}") from exc
        logger.debug("%s %s -> %s", request.method, request.url, response.status_code)
        return response

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout,
                verify=self._config.verify_ssl,
                follow_redirects=self._config.follow_redirects,
            )
        return self._client

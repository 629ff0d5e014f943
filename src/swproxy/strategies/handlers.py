"""The caching strategies a request can be routed to.

:class:`StrategySet` bundles the five strategies over one storage root and
one transport:

* :meth:`~StrategySet.cache_first` -- serve the static copy, fetch on miss.
* :meth:`~StrategySet.network_first` -- fetch, fall back to the static copy.
* :meth:`~StrategySet.network_first_with_api_cache` -- see
  :mod:`swproxy.strategies.api_cache`.
* :meth:`~StrategySet.network_first_with_offline_fallback` -- fetch HTML,
  fall back to the offline page.
* :meth:`~StrategySet.network_only` -- never touch a cache.

Everything lands in the static namespace under the normalised URL. Store
failures never abort a request: they are logged and treated as a miss (on
read) or skipped (on write).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Optional

import httpx

from swproxy.cache import NamedCache, Storage, cache_key
from swproxy.client.response import (
    network_error_response,
    offline_page_response,
    wants_html,
)
from swproxy.client.transport import Transport
from swproxy.exceptions import StoreError, TransportError
from swproxy.models import WorkerConfig
from swproxy.strategies.api_cache import ApiCache

logger = logging.getLogger(__name__)


class StrategySet:
    """The strategy implementations sharing one store and one transport.

    Args:
        storage: Namespace registry.
        transport: Network capability.
        config: Worker configuration (namespace names, offline URL, volatile
            parameters).
        clock: Returns the current epoch time; forwarded to the API cache.
    """

    def __init__(
        self,
        storage: Storage,
        transport: Transport,
        config: WorkerConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._transport = transport
        self._config = config
        self.api_cache = ApiCache(storage, transport, config, clock=clock)

    # ------------------------------------------------------------------ #
    # Strategies
    # ------------------------------------------------------------------ #

    async def cache_first(self, request: httpx.Request) -> httpx.Response:
        """Serve from the static namespace; fetch and store only on a miss."""
        key = self._key(request)
        cached = self._match(key, request)
        if cached is not None:
            logger.debug("Cache first: serving from cache: %s", request.url)
            return cached

        try:
            logger.debug("Cache first: fetching from network: %s", request.url)
            response = await self._transport.send(request)
        except TransportError as exc:
            logger.error("Cache first failed for %s: %s", request.url, exc)
            if wants_html(request):
                offline = self._offline_page()
                if offline is not None:
                    return offline
            return network_error_response(request)

        if response.is_success:
            self._put(key, response)
        return response

    async def network_first(self, request: httpx.Request) -> httpx.Response:
        """Fetch first and refresh the static copy; fall back to it on failure.

        Raises:
            TransportError: The network failed and neither a cached copy nor
                (for HTML requests) an offline page exists.
        """
        key = self._key(request)
        try:
            logger.debug("Network first: attempting network: %s", request.url)
            response = await self._transport.send(request)
        except TransportError:
            logger.info("Network first: network failed, trying cache: %s", request.url)
            cached = self._match(key, request)
            if cached is not None:
                return cached
            if wants_html(request):
                offline = self._offline_page()
                if offline is not None:
                    return offline
            raise

        self._put(key, response)
        return response

    async def network_first_with_api_cache(self, request: httpx.Request) -> httpx.Response:
        return await self.api_cache.fetch(request)

    async def network_first_with_offline_fallback(self, request: httpx.Request) -> httpx.Response:
        """Fetch same-origin HTML; serve the offline page when the network fails."""
        try:
            response = await self._transport.send(request)
        except TransportError:
            logger.info("Serving offline page for %s", request.url)
            offline = self._offline_page()
            if offline is not None:
                return offline
            return offline_page_response(request)

        self._put(self._key(request), response)
        return response

    async def network_only(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self._transport.send(request)
        except TransportError as exc:
            logger.error("Network only failed for %s: %s", request.url, exc)
            return network_error_response(request)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _key(self, request: httpx.Request) -> str:
        return cache_key(request, self._config.api_cache.volatile_params)

    def _static(self) -> NamedCache:
        return self._storage.open(self._config.caches.static)

    def _match(self, key: str, request: Optional[httpx.Request] = None) -> Optional[httpx.Response]:
        try:
            return self._static().match(key, request)
        except StoreError as exc:
            logger.error("Cannot read %s from the static cache: %s", key, exc)
            return None

    def _put(self, key: str, response: httpx.Response) -> None:
        try:
            self._static().put(key, response)
        except StoreError as exc:
            logger.error("Cannot cache %s: %s", key, exc)

    def _offline_page(self) -> Optional[httpx.Response]:
        url = self._config.resolve_url(self._config.offline_url)
        return self._match(cache_key(httpx.Request("GET", url)))

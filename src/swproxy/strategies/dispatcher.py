"""Request classification and routing.

:class:`Dispatcher` maps every request onto exactly one
:class:`~swproxy.models.Strategy`, evaluating the rules top to bottom and
stopping at the first match:

1. non-GET method or browser-internal scheme -> passthrough
2. mapping API -> network-first
3. sign-in API -> network-only
4. backend automation endpoint -> network-first with API cache
5. icon-font host -> cache-first
6. same-origin HTML -> network-first with offline fallback
7. same-origin, anything else -> cache-first
8. everything else -> network-first

Host and path rules are substring matches on the full URL, taken from
:class:`~swproxy.models.RouteRulesConfig`.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from swproxy.client.response import wants_html
from swproxy.models import Strategy, WorkerConfig
from swproxy.strategies.handlers import StrategySet

logger = logging.getLogger(__name__)


class Dispatcher:
    """Classifies requests and hands them to the matching strategy.

    Args:
        strategies: The strategy implementations.
        config: Worker configuration (origin and route rules).

    Example::

        dispatcher = Dispatcher(StrategySet(storage, transport, config), config)
        dispatcher.classify(httpx.Request("GET", "https://accounts.google.com/gsi/client"))
        # Strategy.NETWORK_ONLY
    """

    def __init__(self, strategies: StrategySet, config: WorkerConfig) -> None:
        self._strategies = strategies
        self._config = config
        origin = httpx.URL(config.origin)
        self._origin = (origin.scheme, origin.host, origin.port)

    def classify(self, request: httpx.Request) -> Strategy:
        """Return the strategy *request* is routed to."""
        rules = self._config.routes
        url = request.url
        href = str(url)

        if request.method.upper() != "GET" or url.scheme in rules.passthrough_schemes:
            return Strategy.PASSTHROUGH
        if _contains_any(href, rules.network_first):
            return Strategy.NETWORK_FIRST
        if _contains_any(href, rules.network_only):
            return Strategy.NETWORK_ONLY
        if _contains_any(href, rules.api_cache):
            return Strategy.NETWORK_FIRST_API_CACHE
        if _contains_any(href, rules.cache_first):
            return Strategy.CACHE_FIRST
        if self.is_same_origin(url):
            if wants_html(request):
                return Strategy.NETWORK_FIRST_OFFLINE
            return Strategy.CACHE_FIRST
        return Strategy.NETWORK_FIRST

    def is_same_origin(self, url: httpx.URL) -> bool:
        return (url.scheme, url.host, url.port) == self._origin

    async def route(self, request: httpx.Request) -> Optional[httpx.Response]:
        """Handle *request* with its strategy.

        Returns:
            The response, or ``None`` for passthrough requests, which the
            host performs itself without any caching.

        Raises:
            TransportError: Only from network-first, when the network failed
                and no fallback exists.
        """
        strategy = self.classify(request)
        logger.debug("Routing %s %s via %s", request.method, request.url, strategy.value)

        if strategy is Strategy.PASSTHROUGH:
            return None
        if strategy is Strategy.NETWORK_ONLY:
            return await self._strategies.network_only(request)
        if strategy is Strategy.NETWORK_FIRST_API_CACHE:
            return await self._strategies.network_first_with_api_cache(request)
        if strategy is Strategy.CACHE_FIRST:
            return await self._strategies.cache_first(request)
        if strategy is Strategy.NETWORK_FIRST_OFFLINE:
            return await self._strategies.network_first_with_offline_fallback(request)
        return await self._strategies.network_first(request)


def _contains_any(href: str, patterns: list[str]) -> bool:
    return any(pattern in href for pattern in patterns)

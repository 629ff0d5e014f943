"""Tests for the cache-first, network-first and network-only strategies."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from swproxy.cache import Storage, cache_key
from swproxy.client.response import NETWORK_ERROR_STATUS
from swproxy.exceptions import TransportError
from swproxy.models import WorkerConfig
from swproxy.strategies import StrategySet

ORIGIN = "http://localhost:8000"
HTML = {"Accept": "text/html"}


def _offline(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Network is unreachable", request=request)


def _redirect_loop(request: httpx.Request) -> httpx.Response:
    return httpx.Response(302, headers={"Location": str(request.url)})


def _garbled_gzip(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200, headers={"Content-Encoding": "gzip"}, stream=httpx.ByteStream(b"not gzip at all")
    )


BROKEN_RESPONSES = pytest.mark.parametrize("handler", [_redirect_loop, _garbled_gzip])


def _static(storage: Storage, config: WorkerConfig):
    return storage.open(config.caches.static)


def _seed_offline_page(storage: Storage, config: WorkerConfig) -> None:
    url = config.resolve_url(config.offline_url)
    _static(storage, config).put(
        cache_key(httpx.Request("GET", url)),
        httpx.Response(200, text="<h1>stored offline page</h1>", headers={"Content-Type": "text/html"}),
    )


# ------------------------------------------------------------------ #
# Cache first
# ------------------------------------------------------------------ #


class TestCacheFirst:
    def test_hit_never_touches_network(self, storage, make_transport, worker_config) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, text="fresh")

        url = "https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.4.0/css/all.min.css"
        _static(storage, worker_config).put(url, httpx.Response(200, text="cached"))
        strategies = StrategySet(storage, make_transport(handler), worker_config)

        response = asyncio.run(strategies.cache_first(httpx.Request("GET", url)))

        assert response.text == "cached"
        assert calls == []

    def test_miss_fetches_and_stores_success(self, storage, make_transport, worker_config) -> None:
        strategies = StrategySet(
            storage, make_transport(lambda r: httpx.Response(200, text="fresh")), worker_config
        )
        request = httpx.Request("GET", f"{ORIGIN}/delivery/app.js?_=123")

        response = asyncio.run(strategies.cache_first(request))

        assert response.text == "fresh"
        stored = _static(storage, worker_config).match(f"{ORIGIN}/delivery/app.js")
        assert stored is not None
        assert stored.text == "fresh"

    def test_non_success_is_returned_but_not_stored(
        self, storage, make_transport, worker_config
    ) -> None:
        strategies = StrategySet(
            storage, make_transport(lambda r: httpx.Response(404, text="nope")), worker_config
        )
        request = httpx.Request("GET", f"{ORIGIN}/delivery/missing.js")

        response = asyncio.run(strategies.cache_first(request))

        assert response.status_code == 404
        assert len(_static(storage, worker_config)) == 0

    def test_failure_without_cache_is_408(self, storage, make_transport, worker_config) -> None:
        strategies = StrategySet(storage, make_transport(_offline), worker_config)
        response = asyncio.run(
            strategies.cache_first(httpx.Request("GET", f"{ORIGIN}/delivery/app.js"))
        )
        assert response.status_code == NETWORK_ERROR_STATUS
        assert response.reason_phrase == "Network error"

    def test_html_failure_serves_stored_offline_page(
        self, storage, make_transport, worker_config
    ) -> None:
        _seed_offline_page(storage, worker_config)
        strategies = StrategySet(storage, make_transport(_offline), worker_config)

        response = asyncio.run(
            strategies.cache_first(httpx.Request("GET", f"{ORIGIN}/delivery/page", headers=HTML))
        )

        assert response.status_code == 200
        assert "stored offline page" in response.text


# ------------------------------------------------------------------ #
# Network first
# ------------------------------------------------------------------ #


class TestNetworkFirst:
    def test_success_refreshes_cache(self, storage, make_transport, worker_config) -> None:
        url = "https://maps.googleapis.com/maps/api/js?key=k"
        _static(storage, worker_config).put(url, httpx.Response(200, text="old"))
        strategies = StrategySet(
            storage, make_transport(lambda r: httpx.Response(200, text="new")), worker_config
        )

        response = asyncio.run(strategies.network_first(httpx.Request("GET", url)))

        assert response.text == "new"
        assert _static(storage, worker_config).match(url).text == "new"

    def test_failure_falls_back_to_cache(self, storage, make_transport, worker_config) -> None:
        url = "https://example.org/data.json"
        _static(storage, worker_config).put(url, httpx.Response(200, json={"v": 1}))
        strategies = StrategySet(storage, make_transport(_offline), worker_config)

        response = asyncio.run(strategies.network_first(httpx.Request("GET", url)))

        assert response.json() == {"v": 1}

    def test_html_failure_without_cache_serves_offline_page(
        self, storage, make_transport, worker_config
    ) -> None:
        _seed_offline_page(storage, worker_config)
        strategies = StrategySet(storage, make_transport(_offline), worker_config)

        response = asyncio.run(
            strategies.network_first(httpx.Request("GET", "https://example.org/", headers=HTML))
        )

        assert "stored offline page" in response.text

    def test_failure_without_any_fallback_raises(
        self, storage, make_transport, worker_config
    ) -> None:
        strategies = StrategySet(storage, make_transport(_offline), worker_config)
        with pytest.raises(TransportError):
            asyncio.run(strategies.network_first(httpx.Request("GET", "https://example.org/x")))


# ------------------------------------------------------------------ #
# Network first with offline fallback
# ------------------------------------------------------------------ #


class TestNetworkFirstWithOfflineFallback:
    def test_success_is_returned_and_stored(self, storage, make_transport, worker_config) -> None:
        strategies = StrategySet(
            storage, make_transport(lambda r: httpx.Response(200, text="<p>home</p>")), worker_config
        )
        request = httpx.Request("GET", f"{ORIGIN}/delivery/", headers=HTML)

        response = asyncio.run(strategies.network_first_with_offline_fallback(request))

        assert response.text == "<p>home</p>"
        assert _static(storage, worker_config).match(f"{ORIGIN}/delivery/") is not None

    def test_failure_serves_stored_offline_page(
        self, storage, make_transport, worker_config
    ) -> None:
        _seed_offline_page(storage, worker_config)
        strategies = StrategySet(storage, make_transport(_offline), worker_config)
        request = httpx.Request("GET", f"{ORIGIN}/delivery/orders", headers=HTML)

        response = asyncio.run(strategies.network_first_with_offline_fallback(request))

        assert "stored offline page" in response.text

    def test_failure_without_stored_page_serves_inline_page(
        self, storage, make_transport, worker_config
    ) -> None:
        strategies = StrategySet(storage, make_transport(_offline), worker_config)
        request = httpx.Request("GET", f"{ORIGIN}/delivery/orders", headers=HTML)

        response = asyncio.run(strategies.network_first_with_offline_fallback(request))

        assert response.status_code == 200
        assert "You're Offline" in response.text
        assert response.headers["content-type"] == "text/html"


# ------------------------------------------------------------------ #
# Network only
# ------------------------------------------------------------------ #


class TestNetworkOnly:
    def test_success_is_not_cached(self, storage, make_transport, worker_config) -> None:
        strategies = StrategySet(
            storage, make_transport(lambda r: httpx.Response(200, text="token")), worker_config
        )
        url = "https://accounts.google.com/gsi/client"

        response = asyncio.run(strategies.network_only(httpx.Request("GET", url)))

        assert response.text == "token"
        assert len(_static(storage, worker_config)) == 0

    def test_failure_is_408(self, storage, make_transport, worker_config) -> None:
        strategies = StrategySet(storage, make_transport(_offline), worker_config)
        response = asyncio.run(
            strategies.network_only(httpx.Request("GET", "https://accounts.google.com/gsi/client"))
        )
        assert response.status_code == 408
        assert response.text == "Network error"


# ------------------------------------------------------------------ #
# Redirect loops and undecodable bodies
# ------------------------------------------------------------------ #


class TestBrokenResponses:
    """A response that never arrives intact counts as a network failure."""

    @staticmethod
    def _strategies(storage, make_transport, worker_config, handler) -> StrategySet:
        return StrategySet(
            storage, make_transport(handler, follow_redirects=True), worker_config
        )

    @BROKEN_RESPONSES
    def test_cache_first_is_408(self, storage, make_transport, worker_config, handler) -> None:
        strategies = self._strategies(storage, make_transport, worker_config, handler)
        response = asyncio.run(
            strategies.cache_first(httpx.Request("GET", f"{ORIGIN}/delivery/app.js"))
        )
        assert response.status_code == NETWORK_ERROR_STATUS

    @BROKEN_RESPONSES
    def test_network_only_is_408(self, storage, make_transport, worker_config, handler) -> None:
        strategies = self._strategies(storage, make_transport, worker_config, handler)
        response = asyncio.run(
            strategies.network_only(httpx.Request("GET", "https://accounts.google.com/gsi/client"))
        )
        assert response.status_code == NETWORK_ERROR_STATUS

    @BROKEN_RESPONSES
    def test_network_first_falls_back_to_cache(
        self, storage, make_transport, worker_config, handler
    ) -> None:
        url = "https://example.org/data.json"
        _static(storage, worker_config).put(url, httpx.Response(200, json={"v": 1}))
        strategies = self._strategies(storage, make_transport, worker_config, handler)

        response = asyncio.run(strategies.network_first(httpx.Request("GET", url)))

        assert response.json() == {"v": 1}

    @BROKEN_RESPONSES
    def test_network_first_without_fallback_raises_transport_error(
        self, storage, make_transport, worker_config, handler
    ) -> None:
        strategies = self._strategies(storage, make_transport, worker_config, handler)
        with pytest.raises(TransportError):
            asyncio.run(strategies.network_first(httpx.Request("GET", "https://example.org/x")))

    @BROKEN_RESPONSES
    def test_navigation_serves_offline_page(
        self, storage, make_transport, worker_config, handler
    ) -> None:
        strategies = self._strategies(storage, make_transport, worker_config, handler)
        request = httpx.Request("GET", f"{ORIGIN}/delivery/orders", headers=HTML)

        response = asyncio.run(strategies.network_first_with_offline_fallback(request))

        assert response.status_code == 200
        assert "You're Offline" in response.text

"""Tests for request classification and routing."""

from __future__ import annotations

import asyncio
import itertools

import httpx
import pytest

from swproxy.exceptions import TransportError
from swproxy.models import Strategy, WorkerConfig
from swproxy.strategies import Dispatcher, StrategySet

ORIGIN = "http://localhost:8000"
HTML = {"Accept": "text/html,application/xhtml+xml"}


@pytest.fixture
def dispatcher(storage, make_transport, worker_config: WorkerConfig) -> Dispatcher:
    transport = make_transport(lambda request: httpx.Response(200, text="ok"))
    return Dispatcher(StrategySet(storage, transport, worker_config), worker_config)


def _get(url: str, headers: dict[str, str] | None = None) -> httpx.Request:
    return httpx.Request("GET", url, headers=headers)


# base URL -> (strategy for plain GETs, strategy for HTML navigations)
_BRANCHES: dict[str, tuple[Strategy, Strategy]] = {
    "https://maps.googleapis.com/maps/api/": (Strategy.NETWORK_FIRST, Strategy.NETWORK_FIRST),
    "https://accounts.google.com/gsi/": (Strategy.NETWORK_ONLY, Strategy.NETWORK_ONLY),
    "https://script.google.com/macros/s/": (
        Strategy.NETWORK_FIRST_API_CACHE,
        Strategy.NETWORK_FIRST_API_CACHE,
    ),
    "https://cdnjs.cloudflare.com/ajax/libs/font-awesome/": (
        Strategy.CACHE_FIRST,
        Strategy.CACHE_FIRST,
    ),
    f"{ORIGIN}/delivery/": (Strategy.CACHE_FIRST, Strategy.NETWORK_FIRST_OFFLINE),
    "https://example.org/": (Strategy.NETWORK_FIRST, Strategy.NETWORK_FIRST),
    "http://localhost:9000/": (Strategy.NETWORK_FIRST, Strategy.NETWORK_FIRST),
    "https://localhost:8000/": (Strategy.NETWORK_FIRST, Strategy.NETWORK_FIRST),
}
_PATHS = ["", "app.js", "v2/data.json?_=1", "index.html?timestamp=9&page=2"]
_ACCEPTS = [None, "application/json", "text/html", "text/html,application/xhtml+xml;q=0.9"]
_MUTATING = ["POST", "PUT", "PATCH", "DELETE", "HEAD"]
_EXTENSION_SCHEMES = ["chrome-extension", "moz-extension", "safari-extension"]


def _generated_requests() -> list[tuple[str, str, dict[str, str], Strategy]]:
    cases = []
    for (base, (plain, html)), path, accept in itertools.product(
        _BRANCHES.items(), _PATHS, _ACCEPTS
    ):
        headers = {"Accept": accept} if accept else {}
        expected = html if accept and "text/html" in accept else plain
        cases.append(("GET", base + path, headers, expected))
    for base, method, path in itertools.product(_BRANCHES, _MUTATING, _PATHS[:1]):
        cases.append((method, base + path, {}, Strategy.PASSTHROUGH))
    for scheme, path, accept in itertools.product(_EXTENSION_SCHEMES, _PATHS, _ACCEPTS[:3:2]):
        headers = {"Accept": accept} if accept else {}
        cases.append(("GET", f"{scheme}://abcdef/{path}", headers, Strategy.PASSTHROUGH))
    return cases


class TestClassify:
    @pytest.mark.parametrize(
        ("method", "url", "headers", "expected"),
        [
            ("POST", f"{ORIGIN}/api/deliveries", None, Strategy.PASSTHROUGH),
            ("PUT", "https://maps.googleapis.com/maps/api/geocode/json", None, Strategy.PASSTHROUGH),
            ("GET", "chrome-extension://abcdef/content.js", None, Strategy.PASSTHROUGH),
            (
                "GET",
                "https://maps.googleapis.com/maps/api/js?key=k",
                None,
                Strategy.NETWORK_FIRST,
            ),
            ("GET", "https://accounts.google.com/gsi/client", None, Strategy.NETWORK_ONLY),
            (
                "GET",
                "https://script.google.com/macros/s/abc/exec?action=list",
                None,
                Strategy.NETWORK_FIRST_API_CACHE,
            ),
            (
                "GET",
                "https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.4.0/css/all.min.css",
                None,
                Strategy.CACHE_FIRST,
            ),
            ("GET", f"{ORIGIN}/delivery/", HTML, Strategy.NETWORK_FIRST_OFFLINE),
            ("GET", f"{ORIGIN}/delivery/app.js", None, Strategy.CACHE_FIRST),
            ("GET", "https://example.org/data.json", None, Strategy.NETWORK_FIRST),
            ("GET", "https://example.org/page", HTML, Strategy.NETWORK_FIRST),
        ],
    )
    def test_every_request_gets_exactly_one_strategy(
        self,
        dispatcher: Dispatcher,
        method: str,
        url: str,
        headers: dict[str, str] | None,
        expected: Strategy,
    ) -> None:
        request = httpx.Request(method, url, headers=headers)
        assert dispatcher.classify(request) is expected

    @pytest.mark.parametrize(("method", "url", "headers", "expected"), _generated_requests())
    def test_generated_requests_cover_every_branch(
        self,
        dispatcher: Dispatcher,
        method: str,
        url: str,
        headers: dict[str, str],
        expected: Strategy,
    ) -> None:
        request = httpx.Request(method, url, headers=headers)
        assert dispatcher.classify(request) is expected

    def test_generated_requests_reach_every_strategy(self) -> None:
        cases = _generated_requests()
        assert len(cases) >= 100
        assert {expected for *_, expected in cases} == set(Strategy)

    def test_first_matching_rule_wins(self, dispatcher: Dispatcher) -> None:
        # Matches both the mapping rule and (textually) the icon-font rule.
        url = "https://maps.googleapis.com/maps/api/js?x=cdnjs.cloudflare.com/ajax/libs/font-awesome"
        assert dispatcher.classify(_get(url)) is Strategy.NETWORK_FIRST

    def test_same_origin_requires_matching_port(self, dispatcher: Dispatcher) -> None:
        assert dispatcher.classify(_get("http://localhost:9000/app.js")) is Strategy.NETWORK_FIRST

    def test_custom_rules(self, storage, make_transport) -> None:
        config = WorkerConfig(origin=ORIGIN)
        config.routes.network_only.append("api.example.com/auth")
        transport = make_transport(lambda request: httpx.Response(200))
        dispatcher = Dispatcher(StrategySet(storage, transport, config), config)
        assert dispatcher.classify(_get("https://api.example.com/auth/token")) is Strategy.NETWORK_ONLY


class TestRoute:
    def test_passthrough_returns_none(self, dispatcher: Dispatcher) -> None:
        request = httpx.Request("POST", f"{ORIGIN}/api/deliveries", content=b"{}")
        assert asyncio.run(dispatcher.route(request)) is None

    def test_cache_first_route_serves_network_then_cache(
        self, storage, make_transport, worker_config: WorkerConfig
    ) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            return httpx.Response(200, text="console.log(1)")

        dispatcher = Dispatcher(
            StrategySet(storage, make_transport(handler), worker_config), worker_config
        )
        request = _get(f"{ORIGIN}/delivery/app.js")

        first = asyncio.run(dispatcher.route(request))
        second = asyncio.run(dispatcher.route(request))

        assert first.text == second.text == "console.log(1)"
        assert len(calls) == 1

    def test_network_first_failure_without_cache_raises(
        self, storage, make_transport, worker_config: WorkerConfig
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        dispatcher = Dispatcher(
            StrategySet(storage, make_transport(handler), worker_config), worker_config
        )
        with pytest.raises(TransportError):
            asyncio.run(dispatcher.route(_get("https://example.org/data.json")))

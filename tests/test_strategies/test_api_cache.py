"""Tests for network-first with the TTL-bounded API cache."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from swproxy.models import ApiCacheRecord
from swproxy.strategies import ApiCache

API_URL = "https://script.google.com/macros/s/abc/exec"


class Network:
    """Switchable MockTransport handler."""

    def __init__(self) -> None:
        self.online = True
        self.status_code = 200
        self.payload: object = {"success": True, "data": [{"id": 1}]}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.online:
            raise httpx.ConnectError("Network is unreachable", request=request)
        return httpx.Response(self.status_code, json=self.payload)


@pytest.fixture
def network() -> Network:
    return Network()


@pytest.fixture
def api_cache(storage, make_transport, worker_config, clock, network) -> ApiCache:
    return ApiCache(storage, make_transport(network), worker_config, clock=clock)


def _fetch(api_cache: ApiCache, url: str = f"{API_URL}?action=list") -> httpx.Response:
    return asyncio.run(api_cache.fetch(httpx.Request("GET", url)))


class TestOnline:
    def test_success_returns_network_response_and_caches(self, api_cache, network) -> None:
        response = _fetch(api_cache)

        assert response.json() == {"success": True, "data": [{"id": 1}]}
        record = api_cache.lookup(f"{API_URL}?action=list")
        assert record is not None
        assert record.data == {"success": True, "data": [{"id": 1}]}
        assert record.url == f"{API_URL}?action=list"

    def test_record_timestamp_uses_clock(self, api_cache, clock) -> None:
        _fetch(api_cache)
        assert api_cache.lookup(f"{API_URL}?action=list").timestamp == clock.now

    def test_volatile_params_share_one_record(self, api_cache, network, clock) -> None:
        _fetch(api_cache, f"{API_URL}?action=list&timestamp=1")
        network.online = False
        response = _fetch(api_cache, f"{API_URL}?action=list&timestamp=2")
        assert response.status_code == 200
        assert response.json()["data"] == [{"id": 1}]

    def test_explicit_failure_payload_is_not_cached(self, api_cache, network) -> None:
        network.payload = {"success": False, "error": "quota"}
        response = _fetch(api_cache)
        assert response.json()["success"] is False
        assert api_cache.lookup(f"{API_URL}?action=list") is None

    def test_non_object_payload_is_cached(self, api_cache, network) -> None:
        network.payload = [1, 2, 3]
        _fetch(api_cache)
        assert api_cache.lookup(f"{API_URL}?action=list").data == [1, 2, 3]


class TestOfflineFallback:
    def test_fifty_minutes_serves_cache_seventy_minutes_envelope(
        self, api_cache, network, clock
    ) -> None:
        _fetch(api_cache)
        network.online = False

        clock.advance(50 * 60)
        served = _fetch(api_cache)
        assert served.status_code == 200
        assert served.json() == {"success": True, "data": [{"id": 1}]}

        clock.advance(20 * 60)
        expired = _fetch(api_cache)
        assert expired.status_code == 408
        assert expired.json() == {
            "success": False,
            "error": "Network error",
            "message": "Unable to connect. Please check your internet connection.",
            "data": [],
        }

    def test_record_at_exactly_max_age_is_stale(self, api_cache, network, clock) -> None:
        _fetch(api_cache)
        network.online = False

        clock.advance(3600 - 1)
        assert _fetch(api_cache).status_code == 200

        clock.advance(1)
        assert _fetch(api_cache).status_code == 408

    def test_stale_record_is_deleted_on_read(
        self, api_cache, network, clock, storage, worker_config
    ) -> None:
        _fetch(api_cache)
        clock.advance(3601)
        assert api_cache.lookup(f"{API_URL}?action=list") is None
        assert len(storage.open(worker_config.caches.api)) == 0

    def test_non_success_status_falls_back(self, api_cache, network) -> None:
        _fetch(api_cache)
        network.status_code = 500
        network.payload = {"error": "boom"}
        response = _fetch(api_cache)
        assert response.status_code == 200
        assert response.json()["data"] == [{"id": 1}]

    def test_non_json_body_falls_back(
        self, api_cache, storage, make_transport, worker_config, clock
    ) -> None:
        _fetch(api_cache)
        html = ApiCache(
            storage,
            make_transport(lambda r: httpx.Response(200, text="<html>login</html>")),
            worker_config,
            clock=clock,
        )
        response = asyncio.run(html.fetch(httpx.Request("GET", f"{API_URL}?action=list")))
        assert response.json()["data"] == [{"id": 1}]

    def test_no_record_returns_envelope(self, api_cache, network) -> None:
        network.online = False
        response = _fetch(api_cache)
        assert response.status_code == 408
        assert response.json()["success"] is False

    @pytest.mark.parametrize(
        "broken",
        [
            lambda r: httpx.Response(302, headers={"Location": str(r.url)}),
            lambda r: httpx.Response(
                200, headers={"Content-Encoding": "gzip"}, stream=httpx.ByteStream(b"not gzip")
            ),
        ],
        ids=["redirect-loop", "garbled-gzip"],
    )
    def test_broken_response_returns_envelope(
        self, storage, make_transport, worker_config, clock, broken
    ) -> None:
        api_cache = ApiCache(
            storage, make_transport(broken, follow_redirects=True), worker_config, clock=clock
        )
        response = asyncio.run(api_cache.fetch(httpx.Request("GET", f"{API_URL}?action=list")))
        assert response.status_code == 408
        assert response.json()["success"] is False


class TestLookup:
    def test_corrupt_record_is_discarded(self, api_cache, storage, worker_config) -> None:
        key = f"{API_URL}?action=list"
        storage.open(worker_config.caches.api).put(key, httpx.Response(200, text="not json"))
        assert api_cache.lookup(key) is None
        assert storage.open(worker_config.caches.api).match(key) is None

    def test_record_model_freshness(self) -> None:
        record = ApiCacheRecord(data={}, timestamp=1000.0, url=API_URL)
        assert record.is_fresh(now=1000.0 + 3599, max_age=3600)
        assert not record.is_fresh(now=1000.0 + 3600, max_age=3600)
        assert record.age(1500.0) == 500.0

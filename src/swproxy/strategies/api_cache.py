"""Network-first with a TTL-bounded API cache.

Used only for the backend automation endpoint class. Successful JSON
payloads are wrapped as :class:`~swproxy.models.ApiCacheRecord` and written
to the API namespace under the normalised request URL. When the network
fails (or answers non-2xx, or with a body that is not JSON) the stored
record is served back as long as it is younger than
:attr:`~swproxy.models.ApiCacheConfig.max_age_seconds`.

Freshness is checked lazily on read; there is no background sweep. An
expired record is deleted the first time a read notices it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from swproxy.cache import Storage, cache_key
from swproxy.client.response import failure_envelope_response, json_response
from swproxy.client.transport import Transport
from swproxy.exceptions import DecodeError, StoreError, TransportError
from swproxy.models import ApiCacheRecord, WorkerConfig

logger = logging.getLogger(__name__)


class ApiCache:
    """TTL-bounded cache in front of one class of JSON API.

    Args:
        storage: Namespace registry; the API generation is opened from it.
        transport: Network capability.
        config: Worker configuration (API namespace name, max age, volatile
            parameters).
        clock: Returns the current epoch time in seconds.
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
        self._clock = clock

    @property
    def max_age(self) -> int:
        return self._config.api_cache.max_age_seconds

    def key_for(self, request: httpx.Request) -> str:
        return cache_key(request, self._config.api_cache.volatile_params)

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        """Fetch *request* from the network, falling back to a fresh record.

        Returns:
            The untouched network response on success, the cached ``data``
            as a JSON response when the network fails and a fresh record
            exists, or the ``408`` failure envelope otherwise.
        """
        key = self.key_for(request)

        try:
            logger.debug("API cache: attempting network for %s", request.url)
            response = await self._transport.send(request)
            if not response.is_success:
                raise TransportError(f"API request failed with status: {response.status_code}")
            payload = self._decode(response)
            if self._is_cacheable(payload):
                self._persist(key, payload, str(request.url))
            return response
        except (TransportError, DecodeError) as exc:
            logger.info("API cache: network failed for %s (%s), trying cache", request.url, exc)

        record = self.lookup(key)
        if record is not None:
            return json_response(record.data, request=request)
        return failure_envelope_response(request)

    def lookup(self, key: str) -> Optional[ApiCacheRecord]:
        """Return the record under *key* if it is still fresh.

        A stale record is deleted before ``None`` is returned. Store
        failures are logged and treated as a miss.
        """
        try:
            cache = self._storage.open(self._config.caches.api)
            entry = cache.match_entry(key)
            if entry is None:
                return None
            record = ApiCacheRecord.model_validate_json(entry.content)
        except StoreError as exc:
            logger.error("API cache: cannot read %s: %s", key, exc)
            return None
        except ValidationError as exc:
            logger.warning("API cache: discarding unreadable record %s: %s", key, exc)
            self._delete(key)
            return None

        now = self._clock()
        if record.is_fresh(now, self.max_age):
            logger.debug("API cache: serving cached data (%ds old)", round(record.age(now)))
            return record

        logger.warning("API cache: cache expired for %s", record.url)
        self._delete(key)
        return None

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(f"API response is not valid JSON: {exc}") from exc

    @staticmethod
    def _is_cacheable(payload: Any) -> bool:
        # Payloads that explicitly report failure are never cached.
        return not (isinstance(payload, dict) and payload.get("success") is False)

    def _persist(self, key: str, payload: Any, url: str) -> None:
        record = ApiCacheRecord(data=payload, timestamp=self._clock(), url=url)
        wrapped = json_response(record.model_dump(mode="json"))
        try:
            self._storage.open(self._config.caches.api).put(key, wrapped)
        except StoreError as exc:
            logger.error("API cache: cannot persist %s: %s", url, exc)
            return
        logger.info("API cache: cached response for %s", url)

    def _delete(self, key: str) -> None:
        try:
            self._storage.open(self._config.caches.api).delete(key)
        except StoreError as exc:
            logger.error("API cache: cannot delete %s: %s", key, exc)

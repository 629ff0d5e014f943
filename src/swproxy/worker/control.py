"""Control channel between the host application and the worker.

Three commands are understood:

* ``CACHE_DELIVERY_DATA`` -- store ``payload`` as JSON under
  ``delivery-data-<epoch ms>`` in the API namespace.
* ``CLEAR_CACHE`` -- delete every namespace outside the current whitelist.
* ``GET_CACHE_INFO`` -- reply with entry counts per namespace, namespace
  names and a storage estimate (``CACHE_INFO``), or ``CACHE_INFO_ERROR``.

Only ``GET_CACHE_INFO`` produces a reply. Store failures in the other two
are logged and swallowed.
"""

from __future__ import annotations

import enum
import logging
import sqlite3
import time
from collections.abc import Callable
from typing import Any, Optional

from pydantic import ValidationError

from swproxy.cache import Storage
from swproxy.client.response import json_response
from swproxy.exceptions import StoreError
from swproxy.models import CacheInfo, ControlMessage, ControlReply, WorkerConfig

logger = logging.getLogger(__name__)


class MessageType(str, enum.Enum):
    CACHE_DELIVERY_DATA = "CACHE_DELIVERY_DATA"
    CLEAR_CACHE = "CLEAR_CACHE"
    GET_CACHE_INFO = "GET_CACHE_INFO"


class ControlChannel:
    """Executes control commands against the cache storage.

    Args:
        storage: Namespace registry.
        config: Worker configuration (namespace generations).
        clock: Returns the current epoch time; names snapshot keys.
    """

    def __init__(
        self,
        storage: Storage,
        config: WorkerConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._config = config
        self._clock = clock

    def handle(self, data: dict[str, Any]) -> Optional[ControlReply]:
        """Execute one control message.

        Returns:
            The reply for ``GET_CACHE_INFO``; ``None`` for every other
            message, including unknown or malformed ones.
        """
        try:
            message = ControlMessage.model_validate(data)
        except ValidationError as exc:
            logger.warning("Ignoring malformed control message: %s", exc)
            return None

        if message.type == MessageType.CACHE_DELIVERY_DATA:
            self.cache_delivery_data(message.payload)
        elif message.type == MessageType.CLEAR_CACHE:
            self.clear_old_caches()
        elif message.type == MessageType.GET_CACHE_INFO:
            return self.cache_info()
        else:
            logger.debug("Ignoring unknown control message type %r", message.type)
        return None

    def cache_delivery_data(self, payload: Any) -> Optional[str]:
        """Persist *payload* under a timestamped key.

        Returns:
            The key written, or ``None`` if the store failed.
        """
        key = f"delivery-data-{int(self._clock() * 1000)}"
        try:
            self._storage.open(self._config.caches.api).put(key, json_response(payload))
        except StoreError as exc:
            logger.error("Failed to cache delivery data: %s", exc)
            return None
        logger.info("Delivery data cached successfully under %s", key)
        return key

    def clear_old_caches(self) -> list[str]:
        """Delete every namespace not in the whitelist and return their names."""
        keep = set(self._config.caches.whitelist)
        deleted: list[str] = []
        try:
            for name in self._storage.keys():
                if name in keep:
                    continue
                self._storage.delete(name)
                deleted.append(name)
                logger.info("Deleted old cache: %s", name)
        except (StoreError, OSError) as exc:
            logger.error("Failed to clear old caches: %s", exc)
        return deleted

    def cache_info(self) -> ControlReply:
        try:
            info = CacheInfo(
                cache_size=len(self._storage.open(self._config.caches.static)),
                api_cache_size=len(self._storage.open(self._config.caches.api)),
                cache_names=self._storage.keys(),
                storage_estimate=self._storage.estimate(),
            )
        except (StoreError, OSError, sqlite3.Error) as exc:
            return ControlReply(type="CACHE_INFO_ERROR", error=str(exc))
        return ControlReply(type="CACHE_INFO", data=info)

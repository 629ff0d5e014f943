"""The worker: lifecycle transitions plus the handlers wired to each event.

:class:`ServiceWorker` owns one storage root, one transport and one retry
queue, and registers a handler for every :class:`~swproxy.worker.events.EventKind`:

* ``install`` -- fetch every precache URL; only when *all* succeed are they
  written to the static namespace. Any failure leaves nothing behind.
* ``activate`` -- delete every namespace outside the current generations,
  then start controlling clients.
* ``fetch`` -- route the request through the
  :class:`~swproxy.strategies.Dispatcher`.
* ``push`` / ``notificationclick`` -- delegate to the
  :class:`~swproxy.notifications.NotificationDispatcher` (when a host was
  given).
* ``sync`` -- drain the retry queue on ``sync-delivery-requests``.
* ``message`` -- run a control-channel command and post the reply.

All handlers go through :meth:`ServiceWorker.dispatch`, which returns the
completion handle for the host to await.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

import httpx

from swproxy.cache import Storage, cache_key
from swproxy.client.transport import HttpxTransport, Transport
from swproxy.config import get_queue_dir, get_storage_dir
from swproxy.exceptions import InstallError, StoreError, TransportError
from swproxy.models import (
    SYNC_TAG,
    CacheEntry,
    DrainReport,
    NavigationIntent,
    Notification,
    WorkerConfig,
)
from swproxy.notifications import ClientHost, NotificationDispatcher
from swproxy.retry import RetryQueue
from swproxy.strategies import Dispatcher, StrategySet
from swproxy.worker.control import ControlChannel
from swproxy.worker.events import (
    ActivateEvent,
    Event,
    EventKind,
    EventRegistry,
    FetchEvent,
    InstallEvent,
    MessageEvent,
    NotificationClickEvent,
    PushEvent,
    SyncEvent,
)

logger = logging.getLogger(__name__)


class WorkerState(str, enum.Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class ServiceWorker:
    """Request interceptor with install/activate housekeeping.

    Args:
        config: Worker configuration.
        storage: Namespace registry.
        transport: Network capability used for dispatch, warm-up and replay.
        queue: Durable retry queue.
        host: Optional runtime for notifications and window management.
        clock: Returns the current epoch time; shared by every component.

    Example::

        worker = ServiceWorker.create(config)
        await worker.dispatch(InstallEvent())
        await worker.dispatch(ActivateEvent())
        event = FetchEvent(httpx.Request("GET", "http://localhost:8000/app.css"))
        await worker.dispatch(event)
        event.response
    """

    def __init__(
        self,
        config: WorkerConfig,
        storage: Storage,
        transport: Transport,
        queue: RetryQueue,
        host: Optional[ClientHost] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.storage = storage
        self.transport = transport
        self.queue = queue
        self.strategies = StrategySet(storage, transport, config, clock=clock)
        self.dispatcher = Dispatcher(self.strategies, config)
        self.control = ControlChannel(storage, config, clock=clock)
        self.notifications: Optional[NotificationDispatcher] = None
        if host is not None:
            self.notifications = NotificationDispatcher(
                host, config.notifications, origin=config.origin, clock=clock
            )

        self.state = WorkerState.PARSED
        self.skip_waiting = False
        self.controlling = False

        self.registry = EventRegistry()
        self.registry.register(EventKind.INSTALL, self._on_install)
        self.registry.register(EventKind.ACTIVATE, self._on_activate)
        self.registry.register(EventKind.FETCH, self._on_fetch)
        self.registry.register(EventKind.PUSH, self._on_push)
        self.registry.register(EventKind.NOTIFICATION_CLICK, self._on_notification_click)
        self.registry.register(EventKind.SYNC, self._on_sync)
        self.registry.register(EventKind.MESSAGE, self._on_message)

    @classmethod
    def create(
        cls,
        config: WorkerConfig,
        transport: Optional[Transport] = None,
        host: Optional[ClientHost] = None,
        storage_dir: Optional[str | Path] = None,
        clock: Callable[[], float] = time.time,
    ) -> ServiceWorker:
        """Build a worker with the default storage layout.

        Namespaces live in ``<root>/namespaces`` and the retry queue in
        ``<root>/queue/<config.caches.queue>``, where ``<root>`` is
        *storage_dir* or :func:`~swproxy.config.get_storage_dir`.
        """
        root = Path(storage_dir) if storage_dir is not None else get_storage_dir(config)
        storage = Storage(root, clock=clock)
        queue = RetryQueue(get_queue_dir(config, root), clock=clock)
        return cls(
            config,
            storage,
            transport or HttpxTransport(config.transport),
            queue,
            host=host,
            clock=clock,
        )

    def dispatch(self, event: Event) -> asyncio.Task[Any]:
        """Schedule the handler for *event* and return its completion handle."""
        return self.registry.dispatch(event)

    def close(self) -> None:
        self.storage.close()
        self.queue.close()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def install(self) -> list[str]:
        """Warm the static namespace with every precache URL.

        Returns:
            The cache keys written.

        Raises:
            InstallError: Any URL failed to fetch, answered non-2xx, or
                could not be stored. Nothing from this attempt is kept.
        """
        logger.info("Installing...")
        self.state = WorkerState.INSTALLING
        static_name = self.config.caches.static
        existed = self.storage.has(static_name)

        requests = [
            httpx.Request("GET", self.config.resolve_url(url)) for url in self.config.precache_urls
        ]
        try:
            responses = await asyncio.gather(*(self._precache_fetch(r) for r in requests))
        except (TransportError, InstallError) as exc:
            self.state = WorkerState.REDUNDANT
            logger.error("Installation failed: %s", exc)
            raise InstallError(f"Installation failed: {exc}") from exc

        logger.info("Caching app shell")
        keys = [cache_key(r, self.config.api_cache.volatile_params) for r in requests]
        previous: dict[str, Optional[CacheEntry]] = {}
        try:
            cache = self.storage.open(static_name)
            if existed:
                previous = {key: cache.match_entry(key) for key in keys}
            for key, response in zip(keys, responses):
                cache.put(key, response)
        except StoreError as exc:
            self.state = WorkerState.REDUNDANT
            self._roll_back(static_name, existed, previous)
            logger.error("Installation failed: %s", exc)
            raise InstallError(f"Installation failed: {exc}") from exc

        self.state = WorkerState.INSTALLED
        self.skip_waiting = True
        logger.info("Installation complete")
        return keys

    async def activate(self) -> list[str]:
        """Delete old namespace generations and take control of clients.

        Returns:
            Names of the deleted namespaces.
        """
        logger.info("Activating...")
        self.state = WorkerState.ACTIVATING
        keep = set(self.config.caches.whitelist)
        deleted: list[str] = []
        for name in self.storage.keys():
            if name in keep:
                continue
            logger.info("Deleting old cache: %s", name)
            try:
                self.storage.delete(name)
            except StoreError as exc:
                logger.error("Could not delete old cache %s: %s", name, exc)
                continue
            deleted.append(name)
        self.state = WorkerState.ACTIVATED
        self.controlling = True
        logger.info("Activation complete")
        return deleted

    def _roll_back(
        self, name: str, existed: bool, previous: dict[str, Optional[CacheEntry]]
    ) -> None:
        """Put the namespace *name* back the way it was before a failed install.

        A namespace created by the install is dropped; an existing one gets
        its previous entries back and loses the keys the install added.
        """
        try:
            if not existed:
                self.storage.delete(name)
                return
            cache = self.storage.open(name)
            for key, entry in previous.items():
                if entry is None:
                    cache.delete(key)
                else:
                    cache.put_entry(entry)
        except StoreError as exc:
            logger.error("Could not roll back namespace %s: %s", name, exc)

    async def _precache_fetch(self, request: httpx.Request) -> httpx.Response:
        response = await self.transport.send(request)
        if not response.is_success:
            raise InstallError(f"Request for {request.url} returned {response.status_code}")
        return response

    # ------------------------------------------------------------------ #
    # Event handlers
    # ------------------------------------------------------------------ #

    async def _on_install(self, event: InstallEvent) -> list[str]:
        return await self.install()

    async def _on_activate(self, event: ActivateEvent) -> list[str]:
        return await self.activate()

    async def _on_fetch(self, event: FetchEvent) -> Optional[httpx.Response]:
        event.response = await self.dispatcher.route(event.request)
        return event.response

    async def _on_push(self, event: PushEvent) -> Optional[Notification]:
        if self.notifications is None:
            logger.debug("Push received without a notification host; ignoring")
            return None
        return await self.notifications.on_push(event.data)

    async def _on_notification_click(
        self, event: NotificationClickEvent
    ) -> Optional[NavigationIntent]:
        if self.notifications is None:
            return None
        return await self.notifications.on_interaction(event.action, event.notification)

    async def _on_sync(self, event: SyncEvent) -> Optional[DrainReport]:
        logger.info("Background sync: %s", event.tag)
        if event.tag != SYNC_TAG:
            return None
        return await self.queue.drain_and_replay(self.transport)

    async def _on_message(self, event: MessageEvent) -> Optional[dict[str, Any]]:
        logger.debug("Received message: %s", event.data.get("type"))
        reply = self.control.handle(event.data)
        if reply is None:
            return None
        payload = reply.model_dump(mode="json", by_alias=True, exclude_none=True)
        if event.reply is not None:
            event.reply(payload)
        return payload

"""Event types and the handler registry.

The host runtime raises events; the worker answers them through an explicit
dispatch table instead of subclass hooks. Each event is a small dataclass
tagged with an :class:`EventKind`, and :class:`EventRegistry` maps each kind
to exactly one coroutine handler.

:meth:`EventRegistry.dispatch` schedules the handler and returns its
:class:`asyncio.Task`. That task is the completion handle: the host awaits
it (or polls ``done()``) before treating the transition as finished, and
reads the handler's result or exception from it.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

import httpx

from swproxy.exceptions import InvalidUsageError
from swproxy.models import Notification

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    INSTALL = "install"
    ACTIVATE = "activate"
    FETCH = "fetch"
    PUSH = "push"
    NOTIFICATION_CLICK = "notificationclick"
    SYNC = "sync"
    MESSAGE = "message"


@dataclass
class InstallEvent:
    kind: ClassVar[EventKind] = EventKind.INSTALL


@dataclass
class ActivateEvent:
    kind: ClassVar[EventKind] = EventKind.ACTIVATE


@dataclass
class FetchEvent:
    """An intercepted request.

    Attributes:
        request: The outbound request.
        response: Set by the handler; stays ``None`` when the request was
            not intercepted and the host should perform it itself.
    """

    kind: ClassVar[EventKind] = EventKind.FETCH
    request: httpx.Request
    response: Optional[httpx.Response] = None


@dataclass
class PushEvent:
    kind: ClassVar[EventKind] = EventKind.PUSH
    data: Optional[Union[bytes, str]] = None


@dataclass
class NotificationClickEvent:
    kind: ClassVar[EventKind] = EventKind.NOTIFICATION_CLICK
    notification: Notification
    action: str = ""


@dataclass
class SyncEvent:
    """Connectivity-restoration signal identified by ``tag``."""

    kind: ClassVar[EventKind] = EventKind.SYNC
    tag: str


@dataclass
class MessageEvent:
    """Control-channel message from the host application.

    Attributes:
        data: The decoded message (``{"type": ..., "payload": ...}``).
        reply: Reply port; called with the reply dict, if any.
    """

    kind: ClassVar[EventKind] = EventKind.MESSAGE
    data: dict[str, Any] = field(default_factory=dict)
    reply: Optional[Callable[[dict[str, Any]], None]] = None


Event = Union[
    InstallEvent,
    ActivateEvent,
    FetchEvent,
    PushEvent,
    NotificationClickEvent,
    SyncEvent,
    MessageEvent,
]

Handler = Callable[[Any], Awaitable[Any]]


class EventRegistry:
    """Dispatch table from :class:`EventKind` to one coroutine handler.

    Example::

        registry = EventRegistry()

        @registry.on(EventKind.SYNC)
        async def handle_sync(event: SyncEvent) -> None:
            ...

        task = registry.dispatch(SyncEvent(tag="sync-delivery-requests"))
        await task
    """

    def __init__(self) -> None:
        self._handlers: dict[EventKind, Handler] = {}

    def register(self, kind: EventKind, handler: Handler) -> None:
        """Register *handler* for *kind*.

        Raises:
            InvalidUsageError: A handler is already registered for *kind*.
        """
        if kind in self._handlers:
            raise InvalidUsageError(f"A handler for '{kind.value}' is already registered")
        self._handlers[kind] = handler

    def on(self, kind: EventKind) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`."""

        def decorator(handler: Handler) -> Handler:
            self.register(kind, handler)
            return handler

        return decorator

    def handler_for(self, kind: EventKind) -> Optional[Handler]:
        return self._handlers.get(kind)

    def kinds(self) -> list[EventKind]:
        return list(self._handlers)

    def dispatch(self, event: Event) -> asyncio.Task[Any]:
        """Schedule the handler for *event* and return its completion handle.

        Must be called from a running event loop. Events without a handler
        complete immediately with ``None``.
        """
        handler = self._handlers.get(event.kind)
        logger.debug("Dispatching %s event", event.kind.value)
        if handler is None:
            return asyncio.ensure_future(_noop())
        return asyncio.ensure_future(handler(event))


async def _noop() -> None:
    return None

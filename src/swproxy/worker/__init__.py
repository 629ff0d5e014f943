"""The worker runtime: events, lifecycle and the control channel.

Classes:
    :class:`ServiceWorker` -- wires storage, transport, strategies, the
        retry queue and notifications to the event registry.
    :class:`EventRegistry` -- dispatch table from event kind to handler.
    :class:`ControlChannel` -- host-to-worker control commands.
"""

from swproxy.worker.control import ControlChannel, MessageType
from swproxy.worker.events import (
    ActivateEvent,
    EventKind,
    EventRegistry,
    FetchEvent,
    InstallEvent,
    MessageEvent,
    NotificationClickEvent,
    PushEvent,
    SyncEvent,
)
from swproxy.worker.lifecycle import ServiceWorker, WorkerState

__all__ = [
    "ActivateEvent",
    "ControlChannel",
    "EventKind",
    "EventRegistry",
    "FetchEvent",
    "InstallEvent",
    "MessageEvent",
    "MessageType",
    "NotificationClickEvent",
    "PushEvent",
    "ServiceWorker",
    "SyncEvent",
    "WorkerState",
]

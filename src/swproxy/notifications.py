"""Push messages to local notifications, and interactions to navigation.

:class:`NotificationDispatcher` sits between the push channel and the host
that actually renders notifications and owns the window list. The host is
described by the :class:`ClientHost` protocol.

* :meth:`~NotificationDispatcher.on_push` decodes ``{title?, body?, url?}``,
  fills defaults from :class:`~swproxy.models.NotificationConfig`, and asks
  the host to show the notification. Empty or malformed payloads are a
  no-op.
* :meth:`~NotificationDispatcher.on_interaction` ignores dismiss actions;
  for every other action it focuses an open view already showing the
  target URL, or opens a new one. Exactly one of the two happens.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Optional, Protocol, runtime_checkable
from urllib.parse import urljoin

from pydantic import ValidationError

from swproxy.exceptions import DecodeError
from swproxy.models import (
    ClientView,
    NavigationIntent,
    Notification,
    NotificationAction,
    NotificationConfig,
    NotificationData,
    PushPayload,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class ClientHost(Protocol):
    """What the dispatcher needs from the hosting runtime."""

    async def show_notification(self, notification: Notification) -> None: ...

    async def match_clients(self, include_uncontrolled: bool = True) -> list[ClientView]:
        """Return the open window clients."""
        ...

    async def focus(self, client: ClientView) -> None: ...

    async def open_window(self, url: str) -> None: ...


def decode_push_payload(data: bytes | str) -> PushPayload:
    """Decode a raw push body.

    Raises:
        DecodeError: The body is not a JSON object.
    """
    try:
        parsed = json.loads(data)
    except ValueError as exc:
        raise DecodeError(f"Push payload is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise DecodeError("Push payload must be a JSON object")
    try:
        return PushPayload.model_validate(parsed)
    except ValidationError as exc:
        raise DecodeError(f"Invalid push payload: {exc}") from exc


class NotificationDispatcher:
    """Turns push payloads into notifications and clicks into navigation.

    Args:
        host: Runtime that displays notifications and manages windows.
        config: Notification defaults and dismiss actions.
        origin: Origin used to resolve relative notification URLs before
            they are compared with open client URLs.
        clock: Returns the current epoch time; stamps notification data.
    """

    def __init__(
        self,
        host: ClientHost,
        config: Optional[NotificationConfig] = None,
        origin: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._host = host
        self._config = config or NotificationConfig()
        self._origin = origin
        self._clock = clock

    def build_notification(self, payload: PushPayload) -> Notification:
        cfg = self._config
        return Notification(
            title=payload.title or cfg.default_title,
            body=payload.body or cfg.default_body,
            icon=cfg.icon,
            badge=cfg.badge,
            vibrate=list(cfg.vibrate),
            data=NotificationData(url=payload.url or cfg.default_url, timestamp=self._clock()),
            actions=[
                NotificationAction(action="view", title="View Details"),
                NotificationAction(action="close", title="Close"),
            ],
        )

    async def on_push(self, data: bytes | str | None) -> Optional[Notification]:
        """Show a notification for a push message.

        Returns:
            The notification shown, or ``None`` when there was no payload or
            it could not be decoded.
        """
        if not data:
            return None
        try:
            payload = decode_push_payload(data)
        except DecodeError as exc:
            logger.warning("Ignoring push message: %s", exc)
            return None

        notification = self.build_notification(payload)
        await self._host.show_notification(notification)
        logger.info("Displayed notification %r for %s", notification.title, notification.data.url)
        return notification

    async def on_interaction(
        self, action: str, notification: Notification
    ) -> Optional[NavigationIntent]:
        """Route a click on *notification* to a focus or open-window intent.

        Returns:
            The intent carried out, or ``None`` for a dismiss action.
        """
        if action in self._config.dismiss_actions:
            logger.debug("Notification dismissed")
            return None

        target = self._resolve(notification.data.url or self._config.default_url)
        for client in await self._host.match_clients(include_uncontrolled=True):
            if client.url == target:
                await self._host.focus(client)
                return NavigationIntent(kind="focus", url=target, client_id=client.id)

        await self._host.open_window(target)
        return NavigationIntent(kind="open", url=target)

    def _resolve(self, url: str) -> str:
        if self._origin is None:
            return url
        return urljoin(self._origin.rstrip("/") + "/", url)

"""Canonical Pydantic models shared across all swproxy modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheNamesConfig`, :class:`RouteRulesConfig`,
    :class:`ApiCacheConfig`, :class:`NotificationConfig`,
    :class:`TransportConfig`, and the root :class:`WorkerConfig`.

**Runtime models** -- produced and consumed while requests are handled:
    :class:`Strategy`, :class:`CacheEntry`, :class:`ApiCacheRecord`,
    :class:`PendingRequest`, :class:`DrainReport`, :class:`StorageEstimate`,
    :class:`CacheInfo`, :class:`ControlMessage`, :class:`ControlReply`,
    :class:`PushPayload`, :class:`Notification`, :class:`ClientView`, and
    :class:`NavigationIntent`.

All models use Pydantic v2. Models that cross the control channel or the push
boundary use camelCase aliases so that the host application sees the same
field names it always did.
"""

from __future__ import annotations

import enum
from typing import Any, Literal, Optional
from urllib.parse import urljoin

import httpx
from pydantic import BaseModel, ConfigDict, Field

LOGO_URL = "https://i.postimg.cc/kMZ1jTww/Untitled-design-4-removebg-preview.png"

DEFAULT_PRECACHE_URLS = [
    "/delivery/",
    "/delivery/index.html",
    "/delivery/offline.html",
    LOGO_URL,
    "https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.4.0/css/all.min.css",
    "https://fonts.googleapis.com/css2?family=Segoe+UI:wght@300;400;500;600;700&display=swap",
]

SYNC_TAG = "sync-delivery-requests"
"""Sync tag that signals connectivity restoration and drains the retry queue."""


# --- Configuration ---


class CacheNamesConfig(BaseModel):
    """Versioned namespace generations and the retry queue store name.

    Bumping ``static`` or ``api`` introduces a new generation; the previous
    one is deleted during the next activation.
    """

    static: str = Field(
        default="dsog-delivery-v2.1.0", description="Static asset namespace generation"
    )
    api: str = Field(
        default="dsog-api-cache-v1.0", description="API payload namespace generation"
    )
    queue: str = Field(
        default="dsog-delivery-offline", description="Retry queue store name"
    )

    @property
    def whitelist(self) -> list[str]:
        """Namespaces that survive activation and ``CLEAR_CACHE``."""
        return [self.static, self.api]


class RouteRulesConfig(BaseModel):
    """URL substrings that select a strategy, evaluated in dispatcher order."""

    passthrough_schemes: list[str] = Field(
        default_factory=lambda: ["chrome-extension", "moz-extension", "safari-extension"],
        description="Browser-internal schemes that are never intercepted",
    )
    network_first: list[str] = Field(
        default_factory=lambda: ["maps.googleapis.com/maps/api"]
    )
    network_only: list[str] = Field(
        default_factory=lambda: ["accounts.google.com/gsi/"]
    )
    api_cache: list[str] = Field(
        default_factory=lambda: ["script.google.com/macros/s/"]
    )
    cache_first: list[str] = Field(
        default_factory=lambda: ["cdnjs.cloudflare.com/ajax/libs/font-awesome"]
    )


class ApiCacheConfig(BaseModel):
    """Freshness window and key normalisation for the API namespace."""

    max_age_seconds: int = Field(
        default=3600, description="Records at or beyond this age are purged on read"
    )
    volatile_params: list[str] = Field(
        default_factory=lambda: ["timestamp", "_", "cacheBuster"],
        description="Query parameters stripped before computing a cache key",
    )


class NotificationConfig(BaseModel):
    """Defaults applied to push payloads that omit fields."""

    default_title: str = "DSOG Delivery"
    default_body: str = "New delivery update"
    default_url: str = "/delivery/"
    icon: Optional[str] = LOGO_URL
    badge: Optional[str] = LOGO_URL
    vibrate: list[int] = Field(default_factory=lambda: [100, 50, 100])
    dismiss_actions: list[str] = Field(
        default_factory=lambda: ["close", "dismiss"],
        description="Interaction actions that close the notification and do nothing else",
    )


class TransportConfig(BaseModel):
    """Settings for the default httpx-backed transport."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    follow_redirects: bool = True


class WorkerConfig(BaseModel):
    """Root configuration persisted at ``~/.config/swproxy/config.json``.

    Loaded and saved by :func:`~swproxy.config.load_config` and
    :func:`~swproxy.config.save_config`. See
    :func:`~swproxy.config.resolve_config` for the precedence chain.
    """

    origin: str = Field(
        default="http://localhost:8000",
        description="Origin of the hosting application; decides same-origin routing",
    )
    storage_dir: Optional[str] = Field(
        default=None, description="Root for namespaces and the queue (default: XDG cache dir)"
    )
    offline_url: str = "/delivery/offline.html"
    precache_urls: list[str] = Field(default_factory=lambda: list(DEFAULT_PRECACHE_URLS))
    caches: CacheNamesConfig = Field(default_factory=CacheNamesConfig)
    routes: RouteRulesConfig = Field(default_factory=RouteRulesConfig)
    api_cache: ApiCacheConfig = Field(default_factory=ApiCacheConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)

    def resolve_url(self, url: str) -> str:
        """Resolve *url* against :attr:`origin` (absolute URLs pass through)."""
        return urljoin(self.origin.rstrip("/") + "/", url)


# --- Runtime models ---


class Strategy(str, enum.Enum):
    """Caching strategy selected by :class:`~swproxy.strategies.Dispatcher`."""

    PASSTHROUGH = "passthrough"
    NETWORK_FIRST = "network-first"
    NETWORK_ONLY = "network-only"
    NETWORK_FIRST_API_CACHE = "network-first-api-cache"
    CACHE_FIRST = "cache-first"
    NETWORK_FIRST_OFFLINE = "network-first-offline"


# Headers describing the wire encoding rather than the stored bytes.
_ENCODING_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


class CacheEntry(BaseModel):
    """A stored response plus the metadata needed to rebuild it.

    ``content`` holds the decoded body, so wire-encoding headers are dropped
    when the entry is captured.
    """

    key: str
    namespace: str
    status_code: int
    headers: list[tuple[str, str]] = Field(default_factory=list)
    content: bytes = b""
    stored_at: float

    @classmethod
    def from_response(
        cls, key: str, namespace: str, response: httpx.Response, stored_at: float
    ) -> CacheEntry:
        headers = [
            (name, value)
            for name, value in response.headers.multi_items()
            if name.lower() not in _ENCODING_HEADERS
        ]
        return cls(
            key=key,
            namespace=namespace,
            status_code=response.status_code,
            headers=headers,
            content=response.content,
            stored_at=stored_at,
        )

    def to_response(self, request: Optional[httpx.Request] = None) -> httpx.Response:
        """Build a fresh :class:`httpx.Response` carrying this entry's bytes."""
        return httpx.Response(
            status_code=self.status_code,
            headers=self.headers,
            content=self.content,
            request=request,
        )


class ApiCacheRecord(BaseModel):
    """Wrapped API payload persisted in the API namespace.

    ``timestamp`` is epoch seconds. Freshness is a pure function of the
    clock value passed in and is never stored.
    """

    data: Any = None
    timestamp: float
    url: str

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_fresh(self, now: float, max_age: float) -> bool:
        return self.age(now) < max_age


class PendingRequest(BaseModel):
    """A queued mutating request awaiting replay.

    ``id`` is assigned by the queue store on insert and is ``None`` until
    then.
    """

    id: Optional[int] = None
    method: str
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[bytes] = None
    timestamp: float

    def to_request(self) -> httpx.Request:
        return httpx.Request(self.method, self.url, headers=self.headers, content=self.body)


class DrainReport(BaseModel):
    """Outcome of one :meth:`~swproxy.retry.RetryQueue.drain_and_replay` pass."""

    attempted: list[int] = Field(default_factory=list)
    replayed: list[int] = Field(default_factory=list)
    failed: list[int] = Field(default_factory=list)


class StorageEstimate(BaseModel):
    """Bytes used by the store and the bytes it could grow to."""

    usage: int = 0
    quota: int = 0


class CacheInfo(BaseModel):
    """Payload of a ``CACHE_INFO`` control reply."""

    model_config = ConfigDict(populate_by_name=True)

    cache_size: int = Field(alias="cacheSize")
    api_cache_size: int = Field(alias="apiCacheSize")
    cache_names: list[str] = Field(default_factory=list, alias="cacheNames")
    storage_estimate: StorageEstimate = Field(
        default_factory=StorageEstimate, alias="storageEstimate"
    )


class ControlMessage(BaseModel):
    """Command posted by the host application over the control channel."""

    model_config = ConfigDict(extra="allow")

    type: str
    payload: Any = None


class ControlReply(BaseModel):
    """Reply sent back over the control channel's reply port."""

    type: Literal["CACHE_INFO", "CACHE_INFO_ERROR"]
    data: Optional[CacheInfo] = None
    error: Optional[str] = None


class PushPayload(BaseModel):
    """Decoded server push message. Every field is optional."""

    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    body: Optional[str] = None
    url: Optional[str] = None


class NotificationAction(BaseModel):
    action: str
    title: str


class NotificationData(BaseModel):
    url: str
    timestamp: float


class Notification(BaseModel):
    """Local notification handed to the host for display."""

    title: str
    body: str
    icon: Optional[str] = None
    badge: Optional[str] = None
    vibrate: list[int] = Field(default_factory=list)
    data: NotificationData
    actions: list[NotificationAction] = Field(default_factory=list)


class ClientView(BaseModel):
    """An open window or tab known to the host."""

    id: str
    url: str
    type: str = "window"
    focused: bool = False


class NavigationIntent(BaseModel):
    """Result of a notification interaction: focus an existing view or open one."""

    kind: Literal["focus", "open"]
    url: str
    client_id: Optional[str] = None

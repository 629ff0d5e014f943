"""Disk-backed, namespaced response storage.

Uses :mod:`diskcache` to persist responses on the filesystem. Every
namespace (a versioned cache generation such as ``dsog-delivery-v2.1.0``)
is its own :class:`diskcache.Cache` directory under
``<storage_root>/namespaces/``, so a whole generation can be enumerated and
deleted without touching the others.

Each entry is a serialised :class:`~swproxy.models.CacheEntry` dict.
``diskcache`` commits every ``set`` in its own SQLite transaction, so a
later ``put`` for the same key replaces the earlier one atomically and
concurrent writers to different keys never corrupt each other.

See Also:
    :mod:`swproxy.cache.keys` -- how request URLs become keys.
"""

from __future__ import annotations

import logging
import shutil
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path
from typing import Optional

import diskcache
import httpx

from swproxy.exceptions import InvalidUsageError, StoreError
from swproxy.models import CacheEntry, StorageEstimate

logger = logging.getLogger(__name__)

_STORE_ERRORS = (OSError, sqlite3.Error)


class NamedCache:
    """One namespace of the store.

    Args:
        name: The namespace identifier.
        directory: Directory backing the :class:`diskcache.Cache`.
        clock: Returns the current epoch time; stamps ``stored_at``.
    """

    def __init__(
        self,
        name: str,
        directory: Path,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self._directory = directory
        self._clock = clock
        try:
            self._cache = diskcache.Cache(str(directory))
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot open namespace '{name}': {exc}") from exc

    def put(self, key: str, response: httpx.Response) -> CacheEntry:
        """Store *response* under *key*, replacing any previous entry.

        The response body must already be read.
        """
        entry = CacheEntry.from_response(key, self.name, response, stored_at=self._clock())
        self.put_entry(entry)
        return entry

    def put_entry(self, entry: CacheEntry) -> None:
        """Write *entry* as-is under its own key."""
        try:
            self._cache.set(entry.key, entry.model_dump())
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot write '{entry.key}' to '{self.name}': {exc}") from exc

    def match_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the stored entry for *key*, or ``None`` on a miss."""
        try:
            raw = self._cache.get(key)
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot read '{key}' from '{self.name}': {exc}") from exc
        if raw is None:
            return None
        return CacheEntry.model_validate(raw)

    def match(
        self, key: str, request: Optional[httpx.Request] = None
    ) -> Optional[httpx.Response]:
        """Return a new response built from the entry for *key*, or ``None``."""
        entry = self.match_entry(key)
        if entry is None:
            return None
        return entry.to_response(request)

    def delete(self, key: str) -> bool:
        """Remove *key*. Returns ``False`` if it was not present."""
        try:
            return self._cache.delete(key)
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot delete '{key}' from '{self.name}': {exc}") from exc

    def keys(self) -> list[str]:
        try:
            return [str(k) for k in self._cache.iterkeys()]
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot list namespace '{self.name}': {exc}") from exc

    def __len__(self) -> int:
        return len(self._cache)

    def volume(self) -> int:
        """Approximate bytes used on disk by this namespace."""
        return self._cache.volume()

    def close(self) -> None:
        self._cache.close()


class Storage:
    """Registry of namespaces under one storage root.

    Mirrors the ``open``/``has``/``keys``/``delete`` surface of a browser's
    cache storage. Namespaces are created on first :meth:`open` and survive
    process restarts until :meth:`delete` removes them.

    Args:
        root: Storage root. Namespaces live in ``root / "namespaces"``.
        clock: Passed to every :class:`NamedCache` opened here.

    Example::

        storage = Storage(tmp_path)
        static = storage.open("app-static-v2")
        static.put("https://example.com/app.css", response)
        storage.keys()   # ["app-static-v2"]
    """

    def __init__(self, root: str | Path, clock: Callable[[], float] = time.time) -> None:
        self._root = Path(root)
        self._namespaces_dir = self._root / "namespaces"
        self._namespaces_dir.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._open: dict[str, NamedCache] = {}

    @property
    def root(self) -> Path:
        return self._root

    def open(self, name: str) -> NamedCache:
        """Return the namespace called *name*, creating it if needed."""
        cache = self._open.get(name)
        if cache is None:
            cache = NamedCache(name, self._path(name), clock=self._clock)
            self._open[name] = cache
        return cache

    def has(self, name: str) -> bool:
        return self._path(name).is_dir()

    def keys(self) -> list[str]:
        """Return every namespace name on disk, sorted."""
        return sorted(p.name for p in self._namespaces_dir.iterdir() if p.is_dir())

    def delete(self, name: str) -> bool:
        """Delete the namespace *name* and all its entries.

        Returns:
            ``True`` if the namespace existed.
        """
        cache = self._open.pop(name, None)
        if cache is not None:
            cache.close()
        path = self._path(name)
        if not path.is_dir():
            return False
        try:
            shutil.rmtree(path)
        except OSError as exc:
            raise StoreError(f"Cannot delete namespace '{name}': {exc}") from exc
        logger.debug("Deleted namespace %s", name)
        return True

    def describe(self) -> dict[str, list[str]]:
        """Map every namespace to the keys it holds."""
        return {name: self.open(name).keys() for name in self.keys()}

    def estimate(self) -> StorageEstimate:
        """Return bytes used under the root and the quota available to it."""
        usage = sum(p.stat().st_size for p in self._root.rglob("*") if p.is_file())
        free = shutil.disk_usage(self._root).free
        return StorageEstimate(usage=usage, quota=usage + free)

    def close(self) -> None:
        for cache in self._open.values():
            cache.close()
        self._open.clear()

    def _path(self, name: str) -> Path:
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise InvalidUsageError(f"Invalid namespace name: {name!r}")
        return self._namespaces_dir / name

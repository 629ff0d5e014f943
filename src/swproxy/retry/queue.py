"""Durable queue of failed mutating requests.

Backed by a dedicated :class:`diskcache.Cache` directory. Records are
inserted with :meth:`diskcache.Cache.push`, which assigns monotonically
increasing integer keys inside a transaction; those keys are the
:attr:`~swproxy.models.PendingRequest.id` values.

A drain reads every record, orders them by ``timestamp`` (ties broken by
id), and gives each exactly one replay attempt. A 2xx replay deletes that
record immediately; anything else leaves it untouched for the next drain.
Deleting an id that is already gone is a no-op, so overlapping drains are
harmless.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Optional

import diskcache
import httpx

from swproxy.client.transport import Transport
from swproxy.exceptions import StoreError, TransportError
from swproxy.models import DrainReport, PendingRequest

logger = logging.getLogger(__name__)

_STORE_ERRORS = (OSError, sqlite3.Error)


class RetryQueue:
    """Persistent, insertion-ordered queue of requests awaiting replay.

    The queue is filled explicitly by the application; strategies never
    enqueue on their own.

    Args:
        directory: Directory of the backing store.
        clock: Returns the current epoch time; stamps ``timestamp``.

    Example::

        queue = RetryQueue(storage_root / "queue" / "dsog-delivery-offline")
        queue.enqueue("POST", "https://api.example.com/orders", body=b'{"id": 1}')
        report = await queue.drain_and_replay(transport)
    """

    def __init__(self, directory: str | Path, clock: Callable[[], float] = time.time) -> None:
        self._directory = Path(directory)
        self._clock = clock
        try:
            self._store = diskcache.Cache(str(self._directory))
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot open retry queue at {self._directory}: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Enqueue / read / remove
    # ------------------------------------------------------------------ #

    def enqueue(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
    ) -> PendingRequest:
        """Append a request and return it with its store-assigned id."""
        record = PendingRequest(
            method=method.upper(),
            url=url,
            headers=dict(headers or {}),
            body=body,
            timestamp=self._clock(),
        )
        try:
            key = self._store.push(record.model_dump(exclude={"id"}))
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot enqueue {method} {url}: {exc}") from exc
        logger.info("Queued %s %s for replay (id %s)", record.method, url, key)
        return record.model_copy(update={"id": key})

    def enqueue_request(self, request: httpx.Request) -> PendingRequest:
        """Queue an :class:`httpx.Request` whose body has been read."""
        return self.enqueue(
            request.method,
            str(request.url),
            headers=dict(request.headers),
            body=request.content or None,
        )

    def pending(self) -> list[PendingRequest]:
        """Return every queued record, oldest ``timestamp`` first."""
        records: list[PendingRequest] = []
        try:
            for key in self._store.iterkeys():
                raw = self._store.get(key)
                # Removed by a concurrent drain between listing and reading.
                if raw is None:
                    continue
                try:
                    records.append(PendingRequest.model_validate({**raw, "id": key}))
                except ValueError as exc:
                    logger.warning("Skipping unreadable queued request %s: %s", key, exc)
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot read retry queue: {exc}") from exc
        records.sort(key=lambda r: (r.timestamp, r.id))
        return records

    def get(self, request_id: int) -> Optional[PendingRequest]:
        try:
            raw = self._store.get(request_id)
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot read queued request {request_id}: {exc}") from exc
        if raw is None:
            return None
        return PendingRequest.model_validate({**raw, "id": request_id})

    def remove(self, request_id: int) -> bool:
        """Delete one record. Returns ``False`` if it was already gone."""
        try:
            return self._store.delete(request_id)
        except _STORE_ERRORS as exc:
            raise StoreError(f"Cannot delete queued request {request_id}: {exc}") from exc

    def __len__(self) -> int:
        return len(self._store)

    def close(self) -> None:
        self._store.close()

    # ------------------------------------------------------------------ #
    # Replay
    # ------------------------------------------------------------------ #

    async def drain_and_replay(self, transport: Transport) -> DrainReport:
        """Replay every queued request once, removing the ones that succeed.

        Never raises: store failures are logged and end the pass early, and
        per-entry failures are logged and recorded in the report.
        """
        report = DrainReport()
        logger.info("Syncing queued requests...")
        try:
            records = self.pending()
        except StoreError as exc:
            logger.error("Sync failed: %s", exc)
            return report

        for record in records:
            assert record.id is not None
            report.attempted.append(record.id)
            try:
                request = record.to_request()
            except (httpx.InvalidURL, ValueError, TypeError) as exc:
                logger.error("Cannot rebuild queued request %s: %s", record.id, exc)
                report.failed.append(record.id)
                continue
            try:
                response = await transport.send(request)
            except TransportError as exc:
                logger.error("Failed to sync request %s: %s", record.id, exc)
                report.failed.append(record.id)
                continue

            if not response.is_success:
                logger.warning(
                    "Replay of request %s returned %s; keeping it", record.id, response.status_code
                )
                report.failed.append(record.id)
                continue

            try:
                self.remove(record.id)
            except StoreError as exc:
                logger.error("Replayed request %s but could not remove it: %s", record.id, exc)
                report.failed.append(record.id)
                continue
            logger.info("Synced request: %s", record.id)
            report.replayed.append(record.id)

        return report

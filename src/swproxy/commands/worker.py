"""Worker commands -- lifecycle, request routing, cache inspection, sync.

Registers top-level commands on the root app:

* ``swproxy install`` -- warm the static namespace.
* ``swproxy activate`` -- delete namespace generations that are no longer
  current.
* ``swproxy fetch URL`` -- route one request through the dispatcher.
* ``swproxy info`` -- entry counts, namespace names and storage estimate.
* ``swproxy clear`` -- the ``CLEAR_CACHE`` control command.
* ``swproxy sync`` -- drain the retry queue.

Every command resolves the effective config, opens a
:class:`~swproxy.worker.ServiceWorker` over a fresh
:class:`~swproxy.client.HttpxTransport`, and runs its coroutine with
:func:`asyncio.run`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar

import httpx
import typer

from swproxy.client.transport import HttpxTransport
from swproxy.exceptions import InvalidUsageError, SwproxyError
from swproxy.models import SYNC_TAG, DrainReport, WorkerConfig
from swproxy.output import debug, emit, emit_response, emit_table, error, info, success, warning
from swproxy.worker import ActivateEvent, FetchEvent, InstallEvent, ServiceWorker, SyncEvent
from swproxy.worker.control import MessageType

T = TypeVar("T")


def _make_transport(config: WorkerConfig) -> HttpxTransport:
    return HttpxTransport(config.transport)


def resolve_from_context(ctx: typer.Context) -> WorkerConfig:
    """Resolve the effective config using the global ``--origin``/``--storage-dir`` flags."""
    from swproxy.config import resolve_config

    obj = ctx.obj or {}
    return resolve_config(cli_origin=obj.get("origin"), cli_storage_dir=obj.get("storage_dir"))


def run_with_worker(ctx: typer.Context, action: Callable[[ServiceWorker], Awaitable[T]]) -> T:
    """Run *action* against a freshly opened worker and close everything after.

    Raises:
        typer.Exit: With the error's exit code when a
            :class:`~swproxy.exceptions.SwproxyError` escapes *action*.
    """

    async def _run() -> T:
        config = resolve_from_context(ctx)
        async with _make_transport(config) as transport:
            worker = ServiceWorker.create(config, transport=transport)
            try:
                return await action(worker)
            finally:
                worker.close()

    try:
        return asyncio.run(_run())
    except SwproxyError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def parse_headers(values: Optional[list[str]]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values or []:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise InvalidUsageError(f"Invalid header {value!r}; expected 'Name: value'")
        headers[name.strip()] = content.strip()
    return headers


def install_command(ctx: typer.Context) -> None:
    """Fetch every precache URL and store them in the static namespace.

    Either all URLs are stored or none are; a failure exits with code 7.

    Example::

        swproxy install
        swproxy --origin https://app.example.com install
    """

    async def _install(worker: ServiceWorker) -> list[str]:
        return await worker.dispatch(InstallEvent())

    keys = run_with_worker(ctx, _install)
    for key in keys:
        debug(f"Cached {key}")
    success(f"Installed {len(keys)} precache entries.")


def activate_command(ctx: typer.Context) -> None:
    """Delete namespaces that are not current generations.

    Example::

        swproxy activate
    """

    async def _activate(worker: ServiceWorker) -> list[str]:
        return await worker.dispatch(ActivateEvent())

    deleted = run_with_worker(ctx, _activate)
    if deleted:
        emit(deleted)
    success(f"Activated; deleted {len(deleted)} old namespace(s).")


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="URL to request (relative URLs resolve against the origin)."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    accept: Optional[str] = typer.Option(None, "--accept", help="Accept header value."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Extra header as 'Name: value' (repeatable)."
    ),
) -> None:
    """Route one request through the worker and print the response.

    Requests the worker does not intercept (non-GET, browser-internal
    schemes) are sent straight to the network, as the host would.

    Example::

        swproxy fetch /delivery/ --accept text/html
        swproxy --json fetch "https://script.google.com/macros/s/abc/exec?action=list"
    """

    async def _fetch(worker: ServiceWorker) -> httpx.Response:
        headers = parse_headers(header)
        if accept:
            headers["Accept"] = accept
        request = httpx.Request(method.upper(), worker.config.resolve_url(url), headers=headers)
        info(f"Strategy: {worker.dispatcher.classify(request).value}")

        event = FetchEvent(request)
        await worker.dispatch(event)
        if event.response is not None:
            return event.response
        debug("Not intercepted; sending directly")
        return await worker.transport.send(request)

    emit_response(run_with_worker(ctx, _fetch))


def info_command(
    ctx: typer.Context,
    keys: bool = typer.Option(False, "--keys", help="Also list the keys in every namespace."),
) -> None:
    """Show entry counts, namespace names and the storage estimate.

    Example::

        swproxy info
        swproxy --json info --keys
    """

    async def _info(worker: ServiceWorker) -> dict[str, Any]:
        reply = worker.control.handle({"type": MessageType.GET_CACHE_INFO.value})
        assert reply is not None
        payload = reply.model_dump(mode="json", by_alias=True, exclude_none=True)
        if keys and reply.type == "CACHE_INFO":
            payload["entries"] = worker.storage.describe()
        return payload

    payload = run_with_worker(ctx, _info)
    if payload["type"] == "CACHE_INFO_ERROR":
        warning(f"Cache info unavailable: {payload.get('error')}")
    emit(payload)


def clear_command(ctx: typer.Context) -> None:
    """Delete every namespace outside the current generations.

    Example::

        swproxy clear
    """

    async def _clear(worker: ServiceWorker) -> list[str]:
        return worker.control.clear_old_caches()

    deleted = run_with_worker(ctx, _clear)
    if not deleted:
        info("No old namespaces to delete.")
        return
    emit(deleted)
    success(f"Deleted {len(deleted)} namespace(s).")


def sync_command(
    ctx: typer.Context,
    tag: str = typer.Option(SYNC_TAG, "--tag", help="Sync tag to dispatch."),
) -> None:
    """Replay every queued request once.

    Successful replays are removed from the queue; failures stay for the
    next sync.

    Example::

        swproxy sync
    """

    async def _sync(worker: ServiceWorker) -> Optional[DrainReport]:
        return await worker.dispatch(SyncEvent(tag=tag))

    report = run_with_worker(ctx, _sync)
    if report is None:
        info(f"Nothing to do for sync tag '{tag}'.")
        return
    emit_table(
        ["attempted", "replayed", "failed"],
        [[len(report.attempted), len(report.replayed), len(report.failed)]],
        title="Sync",
    )
    if report.failed:
        warning(f"{len(report.failed)} request(s) kept for the next sync.")


def register_worker_commands(app: typer.Typer) -> None:
    app.command("install")(install_command)
    app.command("activate")(activate_command)
    app.command("fetch")(fetch_command)
    app.command("info")(info_command)
    app.command("clear")(clear_command)
    app.command("sync")(sync_command)

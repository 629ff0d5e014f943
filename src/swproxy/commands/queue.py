"""Queue commands -- inspect and edit the retry queue.

Provides the ``swproxy queue`` sub-command group. Requests land in the queue
when the host application could not deliver them; ``swproxy sync`` replays
them.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

import typer

from swproxy.exceptions import SwproxyError
from swproxy.output import emit, emit_table, error, info, success, warning
from swproxy.retry import RetryQueue

queue_app = typer.Typer(no_args_is_help=True)


@contextmanager
def _open_queue(ctx: typer.Context) -> Iterator[RetryQueue]:
    from swproxy.commands.worker import resolve_from_context
    from swproxy.config import get_queue_dir

    try:
        config = resolve_from_context(ctx)
        queue = RetryQueue(get_queue_dir(config))
    except SwproxyError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    try:
        yield queue
    except SwproxyError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    finally:
        queue.close()


@queue_app.command("list")
def queue_list(ctx: typer.Context) -> None:
    """List queued requests, oldest first.

    Example::

        swproxy queue list
        swproxy --json queue list
    """
    with _open_queue(ctx) as queue:
        records = queue.pending()

    if not records:
        info("The retry queue is empty.")
        return
    emit_table(
        ["id", "method", "url", "queued"],
        [
            [
                str(record.id),
                record.method,
                record.url,
                datetime.fromtimestamp(record.timestamp).isoformat(timespec="seconds"),
            ]
            for record in records
        ],
        title="Retry queue",
    )


@queue_app.command("add")
def queue_add(
    ctx: typer.Context,
    method: str = typer.Argument(help="HTTP method (POST, PUT, PATCH, DELETE...)."),
    url: str = typer.Argument(help="Request URL; relative URLs resolve against the origin."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Header as 'Name: value' (repeatable)."
    ),
    body: Optional[str] = typer.Option(None, "--body", "-d", help="Request body."),
) -> None:
    """Queue a request for replay on the next sync.

    Example::

        swproxy queue add POST /api/deliveries --body '{"id": 7}' -H 'Content-Type: application/json'
    """
    from swproxy.commands.worker import parse_headers, resolve_from_context

    with _open_queue(ctx) as queue:
        config = resolve_from_context(ctx)
        record = queue.enqueue(
            method,
            config.resolve_url(url),
            headers=parse_headers(header),
            body=body.encode("utf-8") if body is not None else None,
        )

    emit({"id": record.id, "method": record.method, "url": record.url})
    success(f"Queued request {record.id}.")


@queue_app.command("remove")
def queue_remove(
    ctx: typer.Context,
    request_id: int = typer.Argument(help="Queue id from 'swproxy queue list'."),
) -> None:
    """Remove a queued request without replaying it.

    Removing an id that is already gone is not an error.
    """
    with _open_queue(ctx) as queue:
        record = queue.get(request_id)
        if record is not None:
            queue.remove(request_id)

    if record is None:
        warning(f"No queued request with id {request_id}.")
    else:
        success(f"Removed request {request_id} ({record.method} {record.url}).")

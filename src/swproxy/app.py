"""Typer application and CLI entry point for swproxy.

The command line drives a :class:`~swproxy.worker.ServiceWorker` against a
real network and an on-disk storage root, which makes it the easiest way to
warm, inspect and clear the caches outside a host application:

* ``install`` / ``activate`` -- run the lifecycle transitions.
* ``fetch`` -- route one request through the dispatcher and print the
  response.
* ``info`` / ``clear`` -- control-channel commands.
* ``sync`` -- drain the retry queue.
* ``queue`` and ``config`` -- sub-command groups.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. :class:`~swproxy.exceptions.SwproxyError` exits with its
``exit_code``; anything else is written to a crash log under the data
directory.
"""


from __future__ import annotations

import sys
import traceback
from datetime import datetime
from typing import Optional

import typer

from swproxy import __version__
from swproxy.commands.config import config_app
from swproxy.commands.queue import queue_app
from swproxy.commands.worker import register_worker_commands
from swproxy.exceptions import SwproxyError
from swproxy.exit_codes import EXIT_GENERIC_FAILURE
from swproxy.log import setup_logging
from swproxy.output import OutputFormat, OutputManager, error, set_output

EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="swproxy",
    help="Intercept requests with per-class caching and replay queued writes.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

register_worker_commands(app)
app.add_typer(queue_app, name="queue", help="Inspect and edit the retry queue.")
app.add_typer(config_app, name="config", help="Show and edit the worker configuration.")


def _print_version(value: bool) -> None:
    if not value:
        return
    typer.echo(f"swproxy {__version__}")
    raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show version and exit."
    ),
    origin: Optional[str] = typer.Option(
        None, "--origin", help="Origin of the hosting application."
    ),
    storage_dir: Optional[str] = typer.Option(
        None, "--storage-dir", help="Root directory for cache namespaces and the queue."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Install output and logging, then hand the shared flags to sub-commands."""
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    setup_logging(verbose=verbose, quiet=quiet, console=output.stderr)

    ctx.obj = {
        "origin": origin,
        "storage_dir": storage_dir,
        "force": force,
        "verbose": verbose,
    }


def _write_crash_log(exc: BaseException) -> str:
    """Save the traceback of *exc* under ``<data dir>/logs`` and return the path."""
    from swproxy.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.write_text("".join(traceback.format_exception(exc)), encoding="utf-8")
    return str(log_path)


def main() -> None:
    """Console-script entry point; always ends in :class:`SystemExit`."""
    try:
        app()
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except SwproxyError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error. Debug log: {_write_crash_log(exc)}")
        sys.exit(EXIT_GENERIC_FAILURE)

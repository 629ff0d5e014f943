"""Terminal output for the ``swproxy`` command line.

Two streams, two jobs:

* **stdout** carries data only: response bodies, cache listings, queue
  contents, reports. Scripts pipe and parse it.
* **stderr** carries diagnostics: status lines, warnings, errors and the
  log records emitted through :mod:`swproxy.log`.

:class:`OutputManager` holds the format preference and one Rich
:class:`~rich.console.Console` per stream. It is built once in
:func:`~swproxy.app.main_callback` and installed with :func:`set_output`;
commands call the module-level helpers (:func:`emit`, :func:`info`,
:func:`error` ...) instead of passing the manager around.

Colour is disabled by ``--no-color``, ``NO_COLOR`` or ``TERM=dumb``.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterator, Sequence
from enum import Enum
from typing import Any, Optional

import httpx
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from swproxy.client.response import extract_response_data


class OutputFormat(str, Enum):
    """Data format on stdout.

    ``AUTO`` becomes ``RICH`` on an interactive, colour-capable terminal and
    ``PLAIN`` everywhere else.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class Level(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# level -> (prefix, Rich style)
_LEVELS: dict[Level, tuple[str, Optional[str]]] = {
    Level.DEBUG: ("[debug] ", "dim"),
    Level.INFO: ("", None),
    Level.SUCCESS: ("", "green"),
    Level.WARNING: ("Warning: ", "yellow"),
    Level.ERROR: ("Error: ", "bold red"),
}


class OutputManager:
    """Routes data to stdout and diagnostics to stderr.

    ``--quiet`` drops ``info`` and ``success``; warnings and errors are
    always shown. ``debug`` needs ``--verbose``.

    Attributes:
        format: The resolved data format (never ``AUTO``).
        no_color: Colour and Rich styling are off.
        stderr: Diagnostics console; the CLI's log handler writes through it.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self.no_color = no_color or _should_disable_color()
        self.quiet = quiet
        self.verbose = verbose
        if format is OutputFormat.AUTO:
            format = OutputFormat.RICH if _is_tty() and not self.no_color else OutputFormat.PLAIN
        self.format = format

        self.stdout = Console(
            file=sys.stdout, no_color=self.no_color, force_terminal=format is OutputFormat.RICH
        )
        self.stderr = Console(file=sys.stderr, no_color=self.no_color, stderr=True)

    # --- stdout ---

    def emit(self, data: Any) -> None:
        """Write a dict, list or string in the active format."""
        if self.format is OutputFormat.JSON:
            self._write(_as_json(data))
        elif self.format is OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self._write(line)
        elif isinstance(data, (dict, list)):
            self.stdout.print(Syntax(_as_json(data), "json", theme="monokai", word_wrap=True))
        else:
            self.stdout.print(str(data), markup=False)

    def emit_response(self, response: httpx.Response) -> None:
        """Write a response: status line to stderr, body to stdout.

        In JSON mode status, headers and body form one object so the output
        stays parseable.
        """
        body = extract_response_data(response)
        if self.format is OutputFormat.JSON:
            self.emit(
                {
                    "status": response.status_code,
                    "reason": response.reason_phrase,
                    "headers": dict(response.headers),
                    "body": body,
                }
            )
            return

        self.notify(Level.INFO, f"{response.status_code} {response.reason_phrase}")
        for name, value in response.headers.multi_items():
            self.notify(Level.DEBUG, f"{name}: {value}")
        if body is not None:
            self.emit(body)

    def emit_table(
        self,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows as a Rich table, a JSON list of records, or TSV lines."""
        cells = [[str(value) for value in row] for row in rows]
        if self.format is OutputFormat.JSON:
            self._write(_as_json([dict(zip(columns, row)) for row in cells]))
        elif self.format is OutputFormat.PLAIN:
            for row in [list(columns), *cells]:
                self._write("\t".join(row))
        else:
            table = Table(*columns, title=title, header_style="bold cyan")
            for row in cells:
                table.add_row(*row)
            self.stdout.print(table)

    # --- stderr ---

    def notify(self, level: Level, message: str) -> None:
        if level is Level.DEBUG and not self.verbose:
            return
        if level in (Level.INFO, Level.SUCCESS) and self.quiet:
            return
        prefix, style = _LEVELS[level]
        if self.no_color:
            print(prefix + message, file=sys.stderr, flush=True)
        else:
            self.stderr.print(prefix + message, style=style, markup=False, highlight=False)

    def info(self, message: str) -> None:
        self.notify(Level.INFO, message)

    def success(self, message: str) -> None:
        self.notify(Level.SUCCESS, message)

    def warning(self, message: str) -> None:
        self.notify(Level.WARNING, message)

    def error(self, message: str) -> None:
        self.notify(Level.ERROR, message)

    def debug(self, message: str) -> None:
        self.notify(Level.DEBUG, message)

    @staticmethod
    def _write(line: str) -> None:
        print(line, file=sys.stdout, flush=True)


def _as_json(data: Any) -> str:
    # JSON text is re-indented; any other string is wrapped as a JSON string.
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            pass
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _plain_lines(data: Any) -> Iterator[str]:
    """Flatten *data* into tab-separated lines; nested values stay compact JSON."""
    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, (dict, list)):
                value = json.dumps(value, ensure_ascii=False, default=str)
            yield f"{key}\t{value}"
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, dict):
                yield "\t".join(str(v) for v in item.values())
            else:
                yield str(item)
    else:
        yield str(data)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (any value) or ``TERM=dumb`` disables colour."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# --- process-wide manager ---

_current: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating a default one on first use."""
    global _current
    if _current is None:
        _current = OutputManager()
    return _current


def set_output(output: OutputManager) -> None:
    global _current
    _current = output


def reset_output() -> None:
    """Forget the installed manager. Used by the test suite."""
    global _current
    _current = None


def emit(data: Any) -> None:
    get_output().emit(data)


def emit_response(response: httpx.Response) -> None:
    get_output().emit_response(response)


def emit_table(
    columns: Sequence[str], rows: Sequence[Sequence[Any]], title: Optional[str] = None
) -> None:
    get_output().emit_table(columns, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)

"""Shared test fixtures for swproxy.

Provides isolated config environments, a controllable clock, storage rooted
in ``tmp_path``, transports backed by :class:`httpx.MockTransport`, output
state management, and the CLI runner.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from swproxy.cache import Storage
from swproxy.client.transport import HttpxTransport
from swproxy.models import WorkerConfig
from swproxy.output import OutputFormat, OutputManager, reset_output, set_output

ORIGIN = "http://localhost:8000"
START_TIME = 1_700_000_000.0


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager holds references to sys.stdout/sys.stderr taken at
    creation time. CliRunner swaps those streams per invocation, so a
    manager left over from one test would write to closed files in the next.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_logging_between_tests() -> None:
    """Detach handlers the CLI attached to the ``swproxy`` logger.

    They write to the console captured during that invocation, which is
    closed once the test ends.
    """
    yield
    logger = logging.getLogger("swproxy")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable returning a settable epoch time."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Worker config and storage
# ---------------------------------------------------------------------------


@pytest.fixture
def worker_config(tmp_path: Path) -> WorkerConfig:
    """Default worker config with storage under ``tmp_path / "storage"``."""
    return WorkerConfig(origin=ORIGIN, storage_dir=str(tmp_path / "storage"))


@pytest.fixture
def storage(tmp_path: Path, clock: FakeClock) -> Storage:
    s = Storage(tmp_path / "storage", clock=clock)
    yield s
    s.close()


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------


Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def make_transport() -> Callable[..., HttpxTransport]:
    """Build an :class:`HttpxTransport` whose traffic goes to *handler*.

    Raise ``httpx.ConnectError`` from the handler to simulate an
    unreachable network. Extra keyword arguments go to the
    :class:`httpx.AsyncClient`, e.g. ``follow_redirects=True``.
    """

    def _make(handler: Handler, **client_options: Any) -> HttpxTransport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), **client_options)
        return HttpxTransport(client=client)

    return _make


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points the XDG directories at subdirectories of tmp_path, clears the
    SWPROXY_* environment variables and changes the working directory to
    tmp_path so project-local config never leaks in.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("swproxy.config._is_xdg_platform", lambda: True)

    for var in ["SWPROXY_ORIGIN", "SWPROXY_STORAGE_DIR"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for tests that ignore output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()

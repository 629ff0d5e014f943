"""Logging setup for the command line.

Library modules only call ``logging.getLogger(__name__)``; nothing in the
package configures handlers on import. The CLI calls :func:`setup_logging`
once, which attaches a single :class:`rich.logging.RichHandler` to the
``swproxy`` logger, writing to stderr.

Verbosity:

* ``--verbose`` -> ``DEBUG``
* default -> ``WARNING``
* ``--quiet`` -> ``ERROR``
"""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "swproxy"


def resolve_level(verbose: bool = False, quiet: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.ERROR
    return logging.WARNING


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Attach a Rich handler to the package logger and return the logger.

    Calling it again replaces the previous handler instead of stacking a
    second one.
    """
    level = resolve_level(verbose=verbose, quiet=quiet)
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=verbose,
        show_path=verbose,
        markup=False,
        rich_tracebacks=True,
        log_time_format="[%H:%M:%S]",
    )
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger

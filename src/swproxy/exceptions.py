"""Exception hierarchy for swproxy.

All exceptions inherit from :class:`SwproxyError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`swproxy.exit_codes`.
Library code raises these at the seams where a failure leaves the strategy
layer; the CLI entry point in :func:`swproxy.app.main` catches
``SwproxyError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    SwproxyError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- StoreError          (exit 3)
    +-- DecodeError         (exit 4)
    +-- TransportError      (exit 6)
    +-- InstallError        (exit 7)
    +-- ConfigError         (exit 1)
"""

from swproxy.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_DECODE_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INSTALL_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_STORE_FAILURE,
)


class SwproxyError(Exception):
    """Base exception for all swproxy errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`swproxy.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SwproxyError):
    """Raised for invalid CLI arguments, bad namespace names, or duplicate handlers."""

    exit_code = EXIT_INVALID_USAGE


class StoreError(SwproxyError):
    """Raised when a cache namespace or the retry queue store fails to open, read, or write."""

    exit_code = EXIT_STORE_FAILURE


class DecodeError(SwproxyError):
    """Raised when a JSON payload (push data, API body, control message) is malformed."""

    exit_code = EXIT_DECODE_FAILURE


class TransportError(SwproxyError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Every strategy catches this at its boundary except plain network-first,
    which re-raises it when no cached copy or offline page exists.
    """

    exit_code = EXIT_CONNECTION_ERROR


class InstallError(SwproxyError):
    """Raised when the install warm-up fails; no precache entry is kept."""

    exit_code = EXIT_INSTALL_FAILURE


class ConfigError(SwproxyError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE

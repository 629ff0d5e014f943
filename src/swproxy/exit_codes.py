"""Numeric process exit codes used by the ``swproxy`` command line.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~swproxy.exceptions.SwproxyError` subclass.
Shell wrappers and host supervisors can inspect the exit code to tell a
failed warm-up apart from an unreachable network without parsing stderr.

Example::

    $ swproxy install
    $ echo $?
    7   # EXIT_INSTALL_FAILURE -- one precache URL could not be fetched
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_STORE_FAILURE = 3
"""The persistent cache or queue store could not be opened, read, or written."""

EXIT_DECODE_FAILURE = 4
"""A payload (push message, API body, control message) could not be decoded."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_INSTALL_FAILURE = 7
"""The install lifecycle failed; the static namespace was not populated."""

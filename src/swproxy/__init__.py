"""swproxy -- request interception with per-class caching strategies.

This package sits between a client application and the network. Every
outbound request is classified and served cache-first, network-first,
network-only, or network-first with a one-hour API cache; write requests
that failed while offline can be queued durably and replayed once
connectivity returns.

Typical workflow::

    swproxy install                    # warm the static namespace
    swproxy activate                   # evict old namespace generations
    swproxy fetch http://localhost:8000/delivery/
    swproxy sync                       # replay queued requests

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr formatting system with Rich support.
    notifications: Push-to-notification and click-to-navigation routing.
"""

__version__ = "0.1.0"

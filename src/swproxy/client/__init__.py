"""Network transport and response helpers for swproxy.

Classes:
    :class:`Transport` -- the ``send(request) -> response`` protocol.
    :class:`HttpxTransport` -- default implementation on :class:`httpx.AsyncClient`.

Example::

    from swproxy.client import HttpxTransport

    async with HttpxTransport() as transport:
        resp = await transport.send(httpx.Request("GET", "https://example.com/"))
"""

from swproxy.client.transport import HttpxTransport, Transport

__all__ = ["HttpxTransport", "Transport"]

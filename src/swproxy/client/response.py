"""Synthesised responses and small helpers over :class:`httpx.Response`.

Every strategy must hand back a response value even when both the network
and the caches fail; the builders here produce those stand-ins:

* :func:`network_error_response` -- plain ``408 Network error``.
* :func:`failure_envelope_response` -- JSON failure envelope for API calls.
* :func:`offline_page_response` -- minimal inline offline HTML page.
* :func:`json_response` -- JSON body with a ``200`` status by default.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx

NETWORK_ERROR_STATUS = 408

OFFLINE_MESSAGE = "Unable to connect. Please check your internet connection."

_OFFLINE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Offline</title>
</head>
<body>
<h1>You're Offline</h1>
<p>Please check your internet connection and try again.</p>
<p>You can still view previously loaded content.</p>
<button onclick="window.location.reload()">Try Again</button>
</body>
</html>
"""


def wants_html(request: httpx.Request) -> bool:
    """Return True when the request's ``Accept`` header asks for HTML."""
    return "text/html" in request.headers.get("accept", "")


def network_error_response(request: Optional[httpx.Request] = None) -> httpx.Response:
    """Return a ``408`` plain-text response with ``Network error`` as reason phrase."""
    return httpx.Response(
        NETWORK_ERROR_STATUS,
        text="Network error",
        request=request,
        extensions={"reason_phrase": b"Network error"},
    )


def failure_envelope(error: str = "Network error", message: str = OFFLINE_MESSAGE) -> dict[str, Any]:
    return {"success": False, "error": error, "message": message, "data": []}


def failure_envelope_response(request: Optional[httpx.Request] = None) -> httpx.Response:
    """Return the ``408`` JSON failure envelope served when no API data is usable."""
    return json_response(failure_envelope(), status_code=NETWORK_ERROR_STATUS, request=request)


def json_response(
    data: Any,
    status_code: int = 200,
    request: Optional[httpx.Request] = None,
) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(data).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        request=request,
    )


def offline_page_response(request: Optional[httpx.Request] = None) -> httpx.Response:
    """Return the self-contained offline page used when none is cached."""
    return httpx.Response(
        200,
        content=_OFFLINE_HTML.encode("utf-8"),
        headers={"Content-Type": "text/html"},
        request=request,
    )


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Attempts to parse the body as JSON first. If that fails (e.g. the
    response is HTML or plain text), returns the raw text. Returns ``None``
    for responses with no content.
    """
    if not response.content:
        return None

    try:
        return response.json()
    except ValueError:
        pass

    return response.text

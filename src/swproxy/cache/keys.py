"""Cache key normalisation.

Strips volatile query parameters (cache busters, jQuery's ``_`` counter,
timestamps) so that requests that only differ in those parameters collapse
onto a single cache entry. The query string is only rewritten when one of
the parameters is actually present, so URLs without them keep their exact
original encoding.
"""

from __future__ import annotations

from collections.abc import Iterable

import httpx

DEFAULT_VOLATILE_PARAMS: tuple[str, ...] = ("timestamp", "_", "cacheBuster")


def normalize(
    request: httpx.Request,
    volatile_params: Iterable[str] = DEFAULT_VOLATILE_PARAMS,
) -> httpx.Request:
    """Return a copy of *request* with the volatile query parameters removed.

    Method and headers are carried over unchanged. The body is not, since
    only the request identity matters for lookups.
    """
    url = request.url
    for name in volatile_params:
        if name in url.params:
            url = url.copy_remove_param(name)
    return httpx.Request(request.method, url, headers=request.headers)


def cache_key(
    request: httpx.Request,
    volatile_params: Iterable[str] = DEFAULT_VOLATILE_PARAMS,
) -> str:
    """Return the string key a normalised *request* is stored under."""
    return str(normalize(request, volatile_params).url)

"""Namespaced response storage and cache key normalisation.

This package provides :class:`Storage`, the registry of versioned cache
namespaces, each a :class:`NamedCache` backed by :mod:`diskcache`, and the
:func:`normalize` / :func:`cache_key` helpers that strip volatile query
parameters before a lookup.
"""

from swproxy.cache.keys import DEFAULT_VOLATILE_PARAMS, cache_key, normalize
from swproxy.cache.storage import NamedCache, Storage

__all__ = ["DEFAULT_VOLATILE_PARAMS", "NamedCache", "Storage", "cache_key", "normalize"]

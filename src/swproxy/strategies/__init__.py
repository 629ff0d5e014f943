"""Request classification and the caching strategies behind it.

:class:`Dispatcher` picks a :class:`~swproxy.models.Strategy` for each
request and delegates to :class:`StrategySet`; the API-class strategy is
implemented by :class:`ApiCache`.
"""

from swproxy.strategies.api_cache import ApiCache
from swproxy.strategies.dispatcher import Dispatcher
from swproxy.strategies.handlers import StrategySet

__all__ = ["ApiCache", "Dispatcher", "StrategySet"]

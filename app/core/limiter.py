"""Rate limiter instance for SlowAPI.

Shared so both main (app.state.limiter) and route modules can use the same
instance without circular imports. Limit strings come from settings so they
can be tuned per deployment.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import get_settings

limiter = Limiter(key_func=get_remote_address)


def _search_limit() -> str:
    return get_settings().rate_limit_search


def _suggest_limit() -> str:
    return get_settings().rate_limit_suggest


limit_search = limiter.limit(_search_limit)
limit_suggest = limiter.limit(_suggest_limit)

"""
api/limiter.py -- Shared slowapi rate limiter instance.

Login and protected traffic share the single /api path, so one default limit
covers the whole entry point (and with it, password guessing against
?endpoint=login). The health route opts out with @limiter.exempt.

Using a single shared instance ensures all routes share the same in-memory
counter store.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[_settings.rate_limit],
    enabled=_settings.rate_limit_enabled,
    storage_uri="memory://",
)

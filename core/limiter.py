"""
core/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the API and web
route modules that apply per-route limits with @limiter.limit().

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_cfg = get_settings()

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://", enabled=_cfg.rate_limit_enabled)

AUTH_RATE_LIMIT = _cfg.auth_rate_limit

"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/auth.py (to apply per-route limits with @limiter.limit()).

One shared instance means every route counts against the same in-memory
store; separate instances per module would never trip their limits.

login_limit() is passed to @limiter.limit() as a callable so the limit string
is read from settings when the request arrives, not frozen at import time.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_limit() -> str:
    """Return the configured credential-endpoint limit, e.g. "10/minute"."""
    return get_settings().login_rate_limit

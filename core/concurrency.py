"""
core/concurrency.py -- Run blocking store and hashing calls off the event loop.

bcrypt is CPU-bound and the stores use synchronous SQLAlchemy. Both are
pushed to a worker thread with asyncio.to_thread() so concurrent requests are
not serialized behind them, and every call is bounded by a timeout so a
stalled store surfaces as a PersistenceError (500) instead of hanging the
request.

asyncio.to_thread() is used rather than anyio's thread runner because its
future can be abandoned on timeout; the worker thread finishes in the
background while the request fails fast.

Layer rule: core/ is the kernel. No imports from api/, auth/, or blog/.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TypeVar

from core.config import get_settings
from core.errors import PersistenceError

logger = logging.getLogger("queryhub.concurrency")

T = TypeVar("T")


async def run_bounded(func: Callable[..., T], *args, timeout: float, action: str = "store call") -> T:
    """Run func(*args) in a worker thread, failing after timeout seconds.

    Exceptions raised by func propagate unchanged. A timeout raises
    PersistenceError naming the action.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.error("%s exceeded %.1fs", action, timeout)
        raise PersistenceError(f"Timed out while {action}") from exc


async def run_store(func: Callable[..., T], *args, action: str = "store call") -> T:
    """run_bounded() with the configured credential_timeout_seconds as the bound."""
    return await run_bounded(func, *args, timeout=get_settings().credential_timeout_seconds, action=action)

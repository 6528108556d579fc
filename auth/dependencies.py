"""
auth/dependencies.py -- Authorization Guard: FastAPI Depends() helpers and ownership checks.

The session cookie is the only credential. try_get_principal() is the soft
variant (returns None when the request carries no live session);
ensure_authenticated() wraps it, attaches the Principal to request.state for
downstream handlers, and short-circuits with 401 otherwise.

require_owner() is the resource-level rule used inline by the post, comment,
and profile routes: only the author may mutate or delete. Routes must load the
resource first (404) and only then call require_owner() (403), so a missing
resource is always reported as missing.

Layer rule: no imports from api/ or blog/.
  auth/dependencies.py may import from fastapi (Request) because this module
  is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import Principal
from auth.sessions import SessionManager
from core.concurrency import run_bounded
from core.config import get_settings
from core.errors import AuthorizationError, ForbiddenError


def session_token(request: Request) -> str | None:
    """Return the raw session token from the request cookie, if any."""
    return request.cookies.get(get_settings().session_cookie_name)


async def try_get_principal(request: Request) -> Principal | None:
    """Return the Principal for the request's session, None if there is no live session.

    Never raises for a missing, unknown, or expired token. Store failures
    still propagate as PersistenceError.
    """
    token = session_token(request)
    if not token:
        return None
    sessions: SessionManager = request.app.state.sessions
    return await run_bounded(
        sessions.validate, token, timeout=get_settings().credential_timeout_seconds, action="reading session"
    )


async def ensure_authenticated(request: Request) -> Principal:
    """Require a live session. Raises 401 "User not authenticated" otherwise.

    Use as a FastAPI dependency:
        @router.post("/posts")
        async def route(principal: Principal = Depends(ensure_authenticated)): ...
    """
    principal = await try_get_principal(request)
    if principal is None:
        raise AuthorizationError("User not authenticated")
    request.state.principal = principal
    return principal


def require_owner(principal: Principal, author_id: int, action: str, resource: str) -> None:
    """Raise 403 unless principal is the resource's author.

    action/resource build the message, e.g. ("update", "post") ->
    "You are not authorized to update this post".
    """
    if principal.user_id != author_id:
        raise ForbiddenError(f"You are not authorized to {action} this {resource}")

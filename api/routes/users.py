"""
api/routes/users.py -- User profile REST endpoints, mounted under /users.

Routes:
  GET    /users/{user_id}   -- public profile (no credential fields)
  PUT    /users/{user_id}   -- update own bio/avatar (requires auth)
  DELETE /users/{user_id}   -- delete own account (requires auth)

Profile updates never change login credentials. A body carrying email or
password is rejected outright; passwords change via PUT /auth/{id}/password.

Deleting an account destroys every session the user holds and clears the
caller's cookie. Posts and comments the user wrote are left in place.
"""

from __future__ import annotations

import logging
from functools import partial

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import MessageResponse, UserResponse, UserUpdate
from auth.dependencies import ensure_authenticated
from auth.models import DEFAULT_AVATAR, Principal
from auth.sessions import SessionManager, clear_session_cookie
from auth.store import UserStore
from core.concurrency import run_store
from core.errors import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger("queryhub.api.users")

router = APIRouter()


def _require_self(principal: Principal, user_id: int, action: str) -> None:
    if principal.user_id != user_id:
        raise ForbiddenError(f"You are not authorized to {action} this profile")


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(request: Request, user_id: int) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    user = await run_store(user_store.find_by_id, user_id, action="looking up user")
    if user is None:
        raise NotFoundError("User not found")
    return UserResponse.from_user(user)


@router.put("/{user_id}", response_model=MessageResponse)
async def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    principal: Principal = Depends(ensure_authenticated),
) -> MessageResponse:
    """Update the caller's bio and/or avatar reference.

    An avatar equal to the default placeholder does not count as an update.
    """
    _require_self(principal, user_id, "update")

    changes = {}
    if body.bio is not None:
        changes["bio"] = body.bio
    if body.avatar and body.avatar != DEFAULT_AVATAR:
        changes["avatar"] = body.avatar
    if not changes or body.email or body.password:
        raise ValidationError("No update data provided")

    user_store: UserStore = request.app.state.user_store
    updated = await run_store(partial(user_store.update_user, user_id, **changes), action="updating user")
    if not updated:
        raise NotFoundError("User not found")
    return MessageResponse(message="User updated successfully")


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(ensure_authenticated),
) -> JSONResponse:
    _require_self(principal, user_id, "delete")

    user_store: UserStore = request.app.state.user_store
    sessions: SessionManager = request.app.state.sessions
    if not await run_store(user_store.delete_user, user_id, action="deleting user"):
        raise NotFoundError("User not found")
    removed = await run_store(sessions.destroy_for_user, user_id, action="deleting sessions")
    logger.info("Deleted user id=%s and %d sessions", user_id, removed)

    resp = JSONResponse(content={"message": "User deleted successfully"})
    clear_session_cookie(resp)
    return resp

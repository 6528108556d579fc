"""
api/routes/auth.py -- Authentication REST endpoints, mounted under /auth.

Routes:
  POST /auth/register              -- create a local account
  POST /auth/login                 -- password login; sets the session cookie
  GET  /auth/login                 -- 302 to / (the frontend owns the login page)
  GET  /auth/google                -- 302 to Google's consent screen
  GET  /auth/google/callback       -- provider return; sets cookie, 302 to the app
  GET  /auth/checkAuthentication   -- current user's id/email/bio/avatar
  POST /auth/logout                -- destroy the session; clears the cookie
  PUT  /auth/{user_id}/password    -- change own password (requires auth)

Handlers stay thin: AuthGate owns validation order and error semantics, and
api/main.py maps its typed errors onto status codes. The handlers only move
data between HTTP and the gate and write or clear the cookie.

Security:
  POST /login and POST /register are rate-limited per client address.
  Cache-Control: no-store on successful login responses.
  The OAuth callback never echoes provider errors to the client; every
  failure is a plain redirect to /auth/login.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.limiter import limiter, login_limit
from api.models import (
    AuthUserResponse,
    LoginRequest,
    MessageResponse,
    PasswordChangeRequest,
    RegisterRequest,
    UserResponse,
)
from auth.dependencies import ensure_authenticated, session_token, try_get_principal
from auth.gate import AuthGate
from auth.models import Principal
from auth.oauth import GOOGLE, profile_from_token
from auth.sessions import clear_session_cookie, set_session_cookie
from core.config import get_settings

logger = logging.getLogger("queryhub.api.auth")

# Auth policy:
# - POST /auth/register, POST /auth/login:  public, rate-limited
# - GET  /auth/login, /auth/google*:        public
# - GET  /auth/checkAuthentication:         session required (401 from the gate)
# - POST /auth/logout:                      session required (400 from the gate)
# - PUT  /auth/{user_id}/password:          ensure_authenticated + self only
router = APIRouter()

_LOGIN_PATH = "/auth/login"


def _gate(request: Request) -> AuthGate:
    return request.app.state.auth_gate


# ---------------------------------------------------------------------------
# Local accounts
# ---------------------------------------------------------------------------


@limiter.limit(login_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/register", response_model=AuthUserResponse)
async def register(request: Request, body: RegisterRequest) -> AuthUserResponse:
    """Create an account. The response never includes the password hash."""
    user = await _gate(request).register(body.email, body.password)
    logger.info("Registered user id=%s", user.id)
    return AuthUserResponse(user=UserResponse.from_user(user), message="User created successfully")


@limiter.limit(login_limit)
@router.post("/login", response_model=AuthUserResponse)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie."""
    user, token = await _gate(request).login(body.email, body.password)
    resp = JSONResponse(
        content=AuthUserResponse(
            user=UserResponse.from_user(user),
            message="User logged in successfully",
        ).model_dump()
    )
    set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/login")
async def login_page() -> RedirectResponse:
    return RedirectResponse("/", status_code=302)


# ---------------------------------------------------------------------------
# Federated login (Google)
# ---------------------------------------------------------------------------


@router.get("/google")
async def google_login(request: Request):
    """Redirect the browser to Google's authorization page.

    authlib stores the OAuth state in the Starlette session before
    redirecting; the callback verifies it.
    """
    client = request.app.state.oauth.create_client(GOOGLE)
    if client is None:
        logger.warning("Google login requested but the provider is not configured")
        return RedirectResponse(_LOGIN_PATH, status_code=302)
    redirect_uri = str(request.url_for("google_callback"))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/google/callback", name="google_callback")
async def google_callback(request: Request) -> RedirectResponse:
    """Finish the Google flow, open a session, and send the browser to the app.

    Flow:
      1. Exchange the authorization code (authlib checks state).
      2. Extract a verified (subject, email) profile; unverified -> failure.
      3. AuthGate.login_federated() links or creates the user and a session.
      4. Set the cookie and redirect to POST_LOGIN_REDIRECT_URL.
    Steps 1-2 redirect to /auth/login on failure. Store failures in step 3
    propagate to the generic error handlers.
    """
    client = request.app.state.oauth.create_client(GOOGLE)
    if client is None:
        return RedirectResponse(_LOGIN_PATH, status_code=302)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError as exc:
        logger.warning("Google token exchange failed: %s", exc.error)
        return RedirectResponse(_LOGIN_PATH, status_code=302)

    try:
        profile = profile_from_token(token)
    except ValueError:
        logger.warning("Google login rejected: no verified profile returned")
        return RedirectResponse(_LOGIN_PATH, status_code=302)

    _, raw_token = await _gate(request).login_federated(profile)
    resp = RedirectResponse(get_settings().post_login_redirect_url, status_code=302)
    set_session_cookie(resp, raw_token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Session-bound endpoints
# ---------------------------------------------------------------------------


@router.get("/checkAuthentication")
async def check_authentication(request: Request) -> dict:
    """Return the current user's id, email, bio, and avatar."""
    principal = await try_get_principal(request)
    user = await _gate(request).check_authentication(principal)
    return {"id": user.id, "email": user.email, "bio": user.bio, "avatar": user.avatar}


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request) -> JSONResponse:
    """Destroy the current session and clear the cookie."""
    await _gate(request).logout(session_token(request))
    resp = JSONResponse(content={"message": "Logged out successfully"})
    clear_session_cookie(resp)
    return resp


@router.put("/{user_id}/password", response_model=MessageResponse)
async def change_password(
    request: Request,
    user_id: int,
    body: PasswordChangeRequest,
    principal: Principal = Depends(ensure_authenticated),
) -> MessageResponse:
    """Change the caller's own password. Other sessions stay valid."""
    await _gate(request).change_password(principal, user_id, body.old_password, body.new_password)
    return MessageResponse(message="Password updated successfully")

"""
api/main.py -- FastAPI application entry point for queryhub.

Serves the forum backend (auth, posts, comments, user profiles) as a JSON API
for the browser frontend.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- CORS headers (with credentials) for the frontend origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. SessionMiddleware     -- holds the OAuth state between redirect and callback

Lifespan builds every store and service once, wires them onto app.state, and
starts the expired-session purge task. Shutdown is the mirror image.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.comments import router as comments_router
from api.routes.posts import router as posts_router
from api.routes.users import router as users_router
from auth.gate import AuthGate
from auth.identity import IdentityResolver
from auth.oauth import build_oauth
from auth.passwords import CredentialStore
from auth.sessions import SessionManager
from auth.store import UserStore
from blog.store import BlogStore
from core.concurrency import run_store
from core.config import get_settings
from core.errors import AppError, ErrorKind, PersistenceError

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("queryhub.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Delete expired sessions every `interval` seconds.

    validate() already removes an expired record when a client presents it;
    this sweeps the ones nobody comes back for. CancelledError from
    task.cancel() during shutdown unwinds out of asyncio.sleep.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await run_store(app.state.sessions.purge_expired, action="purging sessions")
        except PersistenceError as exc:
            logger.warning("Session purge failed: %s", exc.message)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build stores and services on startup; release them on shutdown.

    Startup order matters:
      1. Stores first -- each creates its tables on construction.
      2. Services next -- the Credential Store, Identity Resolver and
         Authentication Gate are plain instances composed from the stores.
      3. OAuth registry -- built from settings, no network call until use.
      4. Purge task last -- references app.state.sessions.
    """
    logger.info("queryhub API starting up")
    user_store = UserStore(settings.database_url)
    sessions = SessionManager(settings.database_url)
    app.state.user_store = user_store
    app.state.sessions = sessions
    app.state.blog = BlogStore(settings.database_url)
    logger.info("Stores initialized")

    credentials = CredentialStore(user_store, timeout=settings.credential_timeout_seconds)
    identity = IdentityResolver(user_store, credentials)
    app.state.auth_gate = AuthGate(user_store, credentials, identity, sessions)
    app.state.oauth = build_oauth(settings)

    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.session_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    app.state.blog.close()
    app.state.sessions.close()
    app.state.user_store.close()
    logger.info("queryhub API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="queryhub API",
    description="Forum backend: accounts, sessions, posts, and comments.",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

# allow_credentials is required: the browser must send the session cookie
# cross-origin from the frontend.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# authlib keeps the OAuth state value here between /auth/google and the
# callback. This cookie is not the login session; that is the
# SESSION_COOKIE_NAME cookie managed by auth/sessions.py.
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    session_cookie="queryhub-oauth-state",
    same_site="lax",
    https_only=settings.secure_cookies,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(posts_router, prefix="/posts", tags=["Posts"])
app.include_router(comments_router, prefix="/comments", tags=["Comments"])
app.include_router(users_router, prefix="/users", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope: {"message", "code"},
# plus "detail" for 422 and 429.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, code=code, detail=detail).model_dump(exclude_none=True),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map a typed service error onto its status code by kind."""
    if exc.kind is ErrorKind.persistence:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.kind.value, exc.message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429; Retry-After tells clients how many seconds to wait."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.", detail=str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(422, "validation_error", "Request validation failed.", detail=str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The traceback goes to the log only; the client gets a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, ErrorKind.persistence.value, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Root and health
#
# No rate limit: health checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def home() -> str:
    return "Welcome to the home page!"


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=API_VERSION)

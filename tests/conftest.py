"""
tests/conftest.py -- Shared test fixtures for queryhub unit and integration tests.

This module provides:
  - memory_url(): a unique named shared-memory SQLite URI per call
  - user_store / sessions / blog_store: isolated stores for unit tests
  - _patch_lifespan(): wires test stores and services into app.state
  - harness: a TestClient on the real app plus helpers to create users and
    build session cookie headers

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because route handlers run store calls in worker threads. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any queryhub import: auth/passwords.py and
auth/sessions.py read settings at import time.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from unittest.mock import MagicMock

# CRITICAL: DEBUG lets get_settings() auto-generate SECRET_KEY. Low bcrypt
# rounds keep hashing fast; a high login limit keeps slowapi out of the way;
# TestClient sends Host: testserver.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "10000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.gate import AuthGate
from auth.identity import IdentityResolver
from auth.models import User
from auth.passwords import CredentialStore, hash_password
from auth.sessions import SessionManager
from auth.store import UserStore
from blog.models import Comment, Post
from blog.store import BlogStore
from core.config import get_settings

PASSWORD = "longpass1"


def memory_url(prefix: str = "qh") -> str:
    """Return a fresh named shared-memory SQLite URL."""
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Store fixtures (unit tests)
# ---------------------------------------------------------------------------


@pytest.fixture
def db_url() -> str:
    return memory_url()


@pytest.fixture
def user_store(db_url: str) -> Generator[UserStore, None, None]:
    store = UserStore(db_url)
    yield store
    store.close()


@pytest.fixture
def sessions(db_url: str) -> Generator[SessionManager, None, None]:
    manager = SessionManager(db_url)
    yield manager
    manager.close()


@pytest.fixture
def blog_store(db_url: str) -> Generator[BlogStore, None, None]:
    store = BlogStore(db_url)
    yield store
    store.close()


@pytest.fixture
def credentials(user_store: UserStore) -> CredentialStore:
    return CredentialStore(user_store, timeout=5.0)


@pytest.fixture
def identity(user_store: UserStore, credentials: CredentialStore) -> IdentityResolver:
    return IdentityResolver(user_store, credentials)


@pytest.fixture
def gate(
    user_store: UserStore,
    credentials: CredentialStore,
    identity: IdentityResolver,
    sessions: SessionManager,
) -> AuthGate:
    return AuthGate(user_store, credentials, identity, sessions)


# ---------------------------------------------------------------------------
# Integration harness
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, sessions: SessionManager, blog: BlogStore):
    """Return an async context manager that replaces the real lifespan.

    Builds the same service graph as api/main.py on top of the test stores.
    The OAuth registry is a MagicMock so no test can reach Google; tests that
    exercise the federated flow replace it with a configured mock.

    The purge_task is a long-sleeping coroutine so shutdown's .cancel() has a
    real asyncio.Task to act on.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        credentials = CredentialStore(user_store, timeout=5.0)
        identity = IdentityResolver(user_store, credentials)
        app.state.user_store = user_store
        app.state.sessions = sessions
        app.state.blog = blog
        app.state.auth_gate = AuthGate(user_store, credentials, identity, sessions)
        oauth = MagicMock()
        oauth.create_client.return_value = None
        app.state.oauth = oauth
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@dataclass
class Harness:
    client: TestClient
    user_store: UserStore
    sessions: SessionManager
    blog: BlogStore

    def create_user(self, email: str, password: str = PASSWORD) -> int:
        """Insert a user directly through the store and return its id."""
        return self.user_store.create_user(User(email=email, hashed_password=hash_password(password)))

    def auth_headers(self, user_id: int) -> dict[str, str]:
        """Open a session for user_id and return a Cookie header carrying it."""
        token = self.sessions.create(user_id)
        return cookie_header(token)

    def create_post(self, author_id: int, title: str = "Hello", content: str = "First post") -> int:
        return self.blog.create_post(Post(title=title, content=content, author_id=author_id))

    def create_comment(self, post_id: int, author_id: int, content: str = "Nice post") -> int:
        return self.blog.create_comment(Comment(content=content, post_id=post_id, author_id=author_id))


def cookie_header(token: str) -> dict[str, str]:
    return {"Cookie": f"{get_settings().session_cookie_name}={token}"}


@pytest.fixture
def harness() -> Generator[Harness, None, None]:
    """Yield a Harness around a TestClient with isolated in-memory stores.

    follow_redirects=False so tests can assert on redirect Location headers.
    Each test gets its own database; nothing leaks between tests.
    """
    url = memory_url("app")
    user_store = UserStore(url)
    sessions = SessionManager(url)
    blog = BlogStore(url)

    app.router.lifespan_context = _patch_lifespan(user_store, sessions, blog)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield Harness(client=client, user_store=user_store, sessions=sessions, blog=blog)

    blog.close()
    sessions.close()
    user_store.close()

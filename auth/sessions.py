"""
auth/sessions.py -- Session Manager: durable server-side sessions keyed by an opaque token.

Sessions live in a SQL table rather than process memory, so a restart does
not log everybody out. The table is the single source of truth; nothing about
a session is cached in-process.

Security design decisions:
  Tokens come from secrets.token_urlsafe(32) (256 bits of entropy). The table
  stores HMAC-SHA256(SECRET_KEY, token), never the token itself, so a copy of
  the database cannot be replayed as live sessions. The hash is deterministic,
  so lookup is a single indexed read.

  The TTL is fixed from creation (SESSION_TTL_SECONDS, 24h by default) and is
  not extended on use. validate() deletes an expired record when it sees one;
  purge_expired() sweeps the rest from a background task in the app lifespan.

  destroy() is idempotent at this layer. The Authentication Gate decides
  whether "nothing to destroy" is an error for the client.

Cookie helpers write the token as an httpOnly cookie whose max_age matches the
session TTL, so cookie and record expire together.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table
from sqlalchemy.engine import Engine

from auth.models import Principal, Session
from core.config import get_settings
from core.db import create_store_engine, translate_errors

logger = logging.getLogger("queryhub.auth.sessions")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_sessions = Table(
    "sessions",
    metadata,
    Column("token_hash", String(64), primary_key=True),  # HMAC-SHA256 hex
    Column("user_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False, index=True),
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def hash_session_token(raw_token: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, raw_token) as a hex string."""
    return hmac.new(
        _settings.secret_key.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()


class SessionManager:
    """Issues, validates, and destroys sessions.

    Usage:
        sessions = SessionManager("sqlite:///queryhub.db")
        token = sessions.create(user.id)
        principal = sessions.validate(token)   # Principal or None
        sessions.destroy(token)
        sessions.close()
    """

    def __init__(self, db_url: str) -> None:
        self.ttl_seconds = _settings.session_ttl_seconds
        self.engine: Engine = create_store_engine(db_url)
        metadata.create_all(self.engine)

    def create(self, user_id: int) -> str:
        """Persist a new session for user_id and return the raw token for the cookie."""
        raw_token = secrets.token_urlsafe(32)
        now = _now()
        with translate_errors("creating session"), self.engine.begin() as conn:
            conn.execute(
                _sessions.insert().values(
                    token_hash=hash_session_token(raw_token),
                    user_id=user_id,
                    created_at=now.isoformat(),
                    expires_at=(now + timedelta(seconds=self.ttl_seconds)).isoformat(),
                )
            )
        logger.info("Session created for user id=%s", user_id)
        return raw_token

    def validate(self, raw_token: str | None) -> Principal | None:
        """Return the Principal for a live session, None if missing or expired."""
        if not raw_token:
            return None
        token_hash = hash_session_token(raw_token)
        with translate_errors("reading session"), self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.token_hash == token_hash)).fetchone()
        if row is None:
            return None
        session = _row_to_session(row)
        if datetime.fromisoformat(session.expires_at) <= _now():
            self._delete(token_hash)
            return None
        return Principal(user_id=session.user_id, expires_at=session.expires_at)

    def destroy(self, raw_token: str | None) -> None:
        """Remove the session record. Destroying an unknown token is not an error."""
        if raw_token:
            self._delete(hash_session_token(raw_token))

    def destroy_for_user(self, user_id: int) -> int:
        """Remove every session belonging to user_id. Returns the number removed."""
        with translate_errors("deleting sessions"), self.engine.begin() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
        return result.rowcount

    def purge_expired(self) -> int:
        """Delete all expired sessions. Returns the number of rows removed."""
        with translate_errors("purging sessions"), self.engine.begin() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= _now().isoformat()))
        if result.rowcount:
            logger.info("Purged %d expired sessions", result.rowcount)
        return result.rowcount

    def _delete(self, token_hash: str) -> None:
        with translate_errors("deleting session"), self.engine.begin() as conn:
            conn.execute(_sessions.delete().where(_sessions.c.token_hash == token_hash))

    def close(self) -> None:
        self.engine.dispose()


def _row_to_session(row) -> Session:
    return Session(
        token_hash=row.token_hash,
        user_id=row.user_id,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite: "lax" by default; set COOKIE_SAMESITE=none (with SECURE_COOKIES=true)
        when the frontend is served from another site.
    max_age: matches the session TTL so both expire together.
    """
    response.set_cookie(
        _settings.session_cookie_name,
        value=token,
        httponly=True,
        samesite=_settings.cookie_samesite,
        secure=_settings.secure_cookies,
        max_age=_settings.session_ttl_seconds,  # same value SessionManager stamps on the record
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(
        _settings.session_cookie_name,
        httponly=True,
        samesite=_settings.cookie_samesite,
        secure=_settings.secure_cookies,
    )

"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Services and routes never touch SQL directly.

This is the query layer the Credential Store and Identity Resolver consume:
find_by_email / find_by_id / create_user / update_user / delete_user, with a
ConflictError for uniqueness violations that is distinct from the
PersistenceError raised for every other failure (see core/db.py).

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) and UNIQUE(google_id) are enforced by the database. They are
  the only concurrency guard against duplicate-account races: two concurrent
  registrations for one email both reach INSERT and exactly one wins.
  SQLite treats NULLs as distinct in a UNIQUE column, so any number of users
  may have no google_id.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, and_, select
from sqlalchemy.engine import Engine

from auth.models import DEFAULT_AVATAR, User
from core.db import create_store_engine, translate_errors
from core.errors import NotFoundError

logger = logging.getLogger("queryhub.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),  # NULL only for records without a local password
    Column("bio", Text),
    Column("avatar", String(255), nullable=False, server_default=DEFAULT_AVATAR),
    Column("google_id", String(255), unique=True),
    Column("created_at", String(32), nullable=False),
)

# Fields update_user() accepts. Anything else is a programming error.
_MUTABLE_FIELDS = {"email", "hashed_password", "bio", "avatar", "google_id"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///queryhub.db")
        user_id = store.create_user(User(email="a@b.com", hashed_password=hash_password("longpass1")))
        user = store.find_by_email("a@b.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = create_store_engine(db_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with translate_errors("fetching user"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with translate_errors("fetching user"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_federated_id(self, google_id: str) -> User | None:
        """Look up a user by linked Google subject id. Returns None if not linked."""
        with translate_errors("fetching user"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.google_id == google_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_password_hash(self, user_id: int) -> str | None:
        """Return the stored password hash for user_id.

        Raises NotFoundError when the id does not resolve to a user. A user
        without a local password returns None.
        """
        with translate_errors("fetching user password"), self.engine.connect() as conn:
            row = conn.execute(select(_users.c.hashed_password).where(_users.c.id == user_id)).fetchone()
        if row is None:
            raise NotFoundError("User not found")
        return row.hashed_password

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises ConflictError if the email (or google_id) is already taken.
        """
        with translate_errors("creating user", conflict_message="Email already in use"):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=user.email,
                        hashed_password=user.hashed_password,
                        bio=user.bio,
                        avatar=user.avatar or DEFAULT_AVATAR,
                        google_id=user.google_id,
                        created_at=_now_iso(),
                    )
                )
                user_id = result.inserted_primary_key[0]
        logger.info("Created user id=%s", user_id)
        return user_id

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Returns True if a row was updated, False if user_id was not found.
        Raises ValueError on unknown field names.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if not fields:
            return False
        with translate_errors("updating user", conflict_message="Email already in use"):
            with self.engine.begin() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        return result.rowcount > 0

    def link_federated_id(self, user_id: int, google_id: str) -> bool:
        """Attach a Google subject id to user_id, moving it off any other user.

        Both statements run in one transaction so the subject id maps to at
        most one user at every point. Re-linking the same id to the same user
        is a no-op success.

        Returns True if user_id exists.
        """
        with translate_errors("linking federated identity"):
            with self.engine.begin() as conn:
                conn.execute(
                    _users.update()
                    .where(and_(_users.c.google_id == google_id, _users.c.id != user_id))
                    .values(google_id=None)
                )
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(google_id=google_id))
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Posts and comments authored by the user are NOT removed here; callers
        that need a cascade must do it themselves.
        """
        with translate_errors("deleting user"), self.engine.begin() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        bio=row.bio,
        avatar=row.avatar or DEFAULT_AVATAR,
        google_id=row.google_id,
        created_at=row.created_at,
    )

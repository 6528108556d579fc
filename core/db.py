"""
core/db.py -- Engine construction and error translation shared by the stores.

Every store (auth/store.py, auth/sessions.py, blog/store.py) builds its own
SQLAlchemy Core engine from a URL via create_store_engine(), so swapping
SQLite for PostgreSQL is a connection string change.

translate_errors() is the single place where driver exceptions become the
typed errors of core/errors.py: a uniqueness violation is a ConflictError,
anything else the driver raises is a PersistenceError. The original
exception is chained and logged, but its text (which may include bound
parameters such as password hashes) never reaches the client.

Layer rule: core/ is the kernel. No imports from api/, auth/, or blog/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import ConflictError, PersistenceError

logger = logging.getLogger("queryhub.db")


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str) -> Engine:
    """Return an Engine for db_url with SQLite-specific connection setup."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # Route handlers run in a thread pool; connections cross threads.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


@contextmanager
def translate_errors(action: str, conflict_message: str | None = None) -> Iterator[None]:
    """Re-raise driver errors from the wrapped block as typed store errors.

    Args:
        action:           Short description used in the PersistenceError
                          message, e.g. "creating user".
        conflict_message: Message for a uniqueness violation. When None, an
                          IntegrityError is treated like any other failure.
    """
    try:
        yield
    except IntegrityError as exc:
        if conflict_message is None:
            logger.error("Integrity failure while %s: %s", action, type(exc).__name__)
            raise PersistenceError(f"Database error while {action}") from exc
        raise ConflictError(conflict_message) from exc
    except SQLAlchemyError as exc:
        logger.error("Store failure while %s: %s", action, type(exc).__name__)
        raise PersistenceError(f"Database error while {action}") from exc

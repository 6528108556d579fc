"""
auth/passwords.py -- Credential Store: password hashing, verification, and hash access.

Security design decisions:
  bcrypt is used directly (no passlib wrapper). Its cost factor
  (BCRYPT_ROUNDS, default 12) keeps verification in the tens of milliseconds,
  and gensalt() gives every hash a unique salt, so hashing the same plaintext
  twice never yields the same string.

  bcrypt only accepts secrets up to 72 bytes. The Authentication Gate rejects
  longer passwords at registration and password change; verify_password()
  reports them as a mismatch rather than raising.

  verify_password() never raises on a mismatch. It raises MalformedHashError
  only when the stored hash itself cannot be parsed, which is a data
  integrity failure (500), not a bad login.

  _DUMMY_HASH is computed once at module load. IdentityResolver verifies
  against it when the account does not exist so that an unknown email costs
  the same bcrypt work as a wrong password.

CredentialStore is the async facade used by services: every hash, verify,
and hash lookup runs in a worker thread with an explicit timeout (see
core/concurrency.py).

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.store import UserStore
from core.concurrency import run_bounded
from core.config import get_settings
from core.errors import MalformedHashError, NotFoundError

logger = logging.getLogger("queryhub.auth")

_settings = get_settings()

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Raises MalformedHashError if hashed is not a valid bcrypt hash.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError as exc:
        raise MalformedHashError("Stored password hash is malformed") from exc


_DUMMY_HASH: str = hash_password("queryhub_timing_dummy")


class CredentialStore:
    """Async, time-bounded access to password hashes.

    Usage:
        credentials = CredentialStore(user_store, timeout=5.0)
        hashed = await credentials.hash_password("longpass1")
        ok = await credentials.verify_password("longpass1", hashed)
    """

    def __init__(self, user_store: UserStore, timeout: float) -> None:
        self.user_store = user_store
        self.timeout = timeout

    async def hash_password(self, plain: str) -> str:
        return await run_bounded(hash_password, plain, timeout=self.timeout, action="hashing password")

    async def verify_password(self, plain: str, hashed: str | None) -> bool:
        """Verify plain against hashed; a missing hash is checked against the dummy and fails."""
        target = hashed if hashed is not None else _DUMMY_HASH
        matched = await run_bounded(verify_password, plain, target, timeout=self.timeout, action="verifying password")
        return matched and hashed is not None

    async def get_password_hash(self, user_id: int) -> str | None:
        """Return user_id's stored hash. Raises NotFoundError for an unknown id."""
        return await run_bounded(
            self.user_store.get_password_hash, user_id, timeout=self.timeout, action="fetching password hash"
        )

    async def set_password(self, user_id: int, plain: str) -> None:
        """Hash plain and store it for user_id. Raises NotFoundError for an unknown id."""
        hashed = await self.hash_password(plain)
        updated = await run_bounded(
            _update_hash, self.user_store, user_id, hashed, timeout=self.timeout, action="updating password"
        )
        if not updated:
            raise NotFoundError("User not found")
        logger.info("Password changed for user id=%s", user_id)


def _update_hash(user_store: UserStore, user_id: int, hashed: str) -> bool:
    return user_store.update_user(user_id, hashed_password=hashed)

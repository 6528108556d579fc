"""
auth/gate.py -- Authentication Gate: register, login, logout, and password-change protocol.

The gate validates input, orchestrates the Identity Resolver, Credential Store,
and Session Manager, and raises the typed errors from core/errors.py. It knows
nothing about HTTP objects; api/routes/auth.py turns its results into
responses and cookies, and api/main.py turns its errors into status codes.

Validation always happens before any store call, in the order the endpoints
document (e.g. email grammar before password presence before length).

Login responses are deliberately asymmetric: an unknown email is reported as
400 "User not found", a wrong password as 401 "Invalid email or password".
The generic 401 wording hides nothing, since the 400 already reveals whether
an account exists. This is a known minor information leak.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

import logging
import re

from auth.identity import IdentityResolver
from auth.models import FederatedProfile, LoginOutcome, Principal, User
from auth.passwords import MAX_PASSWORD_BYTES, MIN_PASSWORD_LENGTH, CredentialStore
from auth.sessions import SessionManager
from auth.store import UserStore
from core.concurrency import run_bounded
from core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PersistenceError,
    UnknownAccountError,
    ValidationError,
)

logger = logging.getLogger("queryhub.auth.gate")

EMAIL_PATTERN = re.compile(r"[\w-]+(\.[\w-]+)*@([\w-]+\.)+[a-zA-Z]{2,7}", re.ASCII)

_TOO_SHORT = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
_TOO_LONG = f"Password must be at most {MAX_PASSWORD_BYTES} bytes long"


def is_valid_email(email: str | None) -> bool:
    """Whole-string ASCII match; a trailing newline or non-ASCII letter fails."""
    return bool(email) and EMAIL_PATTERN.fullmatch(email) is not None


def _require_email(email: str | None) -> str:
    if not is_valid_email(email):
        raise ValidationError("Invalid email")
    return email


def _too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


class AuthGate:
    """Orchestrates every authentication endpoint.

    Usage:
        gate = AuthGate(user_store, credentials, identity, sessions)
        user = await gate.register("a@b.com", "longpass1")
        user, token = await gate.login("a@b.com", "longpass1")
    """

    def __init__(
        self,
        user_store: UserStore,
        credentials: CredentialStore,
        identity: IdentityResolver,
        sessions: SessionManager,
    ) -> None:
        self.user_store = user_store
        self.credentials = credentials
        self.identity = identity
        self.sessions = sessions

    async def _store(self, func, *args, action: str):
        return await run_bounded(func, *args, timeout=self.credentials.timeout, action=action)

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    async def register(self, email: str | None, password: str | None) -> User:
        """Create a local account and return it.

        Raises ValidationError for bad input and ConflictError when the email
        is taken, including when a concurrent registration wins the race to
        the unique constraint.
        """
        email = _require_email(email)
        if not password or not password.strip():
            raise ValidationError("Password is required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(_TOO_SHORT)
        if _too_long(password):
            raise ValidationError(_TOO_LONG)

        if await self._store(self.user_store.find_by_email, email, action="looking up user") is not None:
            raise ConflictError("Email already in use")

        hashed = await self.credentials.hash_password(password)
        new_user = User(email=email, hashed_password=hashed)
        user_id = await self._store(self.user_store.create_user, new_user, action="creating user")
        user = await self._store(self.user_store.find_by_id, user_id, action="looking up user")
        if user is None:
            raise PersistenceError("User not found after create")
        return user

    # ------------------------------------------------------------------
    # Login / federated login
    # ------------------------------------------------------------------

    async def login(self, email: str | None, password: str | None) -> tuple[User, str]:
        """Authenticate an email/password pair and open a session.

        Returns (user, session_token). Raises ValidationError for a malformed
        email, UnknownAccountError for an unregistered one, and
        AuthenticationError for a wrong password.
        """
        email = _require_email(email)
        if not password:
            raise ValidationError("Password is required")

        result = await self.identity.resolve_local(email, password)
        if result.outcome is LoginOutcome.USER_NOT_FOUND:
            raise UnknownAccountError("User not found")
        if result.outcome is LoginOutcome.INVALID_CREDENTIALS:
            raise AuthenticationError("Invalid email or password")

        token = await self._store(self.sessions.create, result.user.id, action="creating session")
        logger.info("Local login for user id=%s", result.user.id)
        return result.user, token

    async def login_federated(self, profile: FederatedProfile) -> tuple[User, str]:
        """Resolve a verified provider profile to a user and open a session."""
        user = await self.identity.resolve_federated(profile)
        token = await self._store(self.sessions.create, user.id, action="creating session")
        logger.info("Federated login for user id=%s", user.id)
        return user, token

    # ------------------------------------------------------------------
    # Session-bound operations
    # ------------------------------------------------------------------

    async def check_authentication(self, principal: Principal | None) -> User:
        """Return the user behind an active session."""
        if principal is None:
            raise AuthorizationError("Not authenticated")
        user = await self._store(self.user_store.find_by_id, principal.user_id, action="looking up user")
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def logout(self, token: str | None) -> None:
        """Destroy the session behind token.

        Logging out without a live session is a client error here, even
        though SessionManager.destroy() itself is idempotent.
        """
        principal = await self._store(self.sessions.validate, token, action="reading session")
        if principal is None:
            raise ValidationError("No user to log out")
        await self._store(self.sessions.destroy, token, action="deleting session")
        logger.info("Logout for user id=%s", principal.user_id)

    async def change_password(
        self,
        principal: Principal,
        target_user_id: int,
        old_password: str | None,
        new_password: str | None,
    ) -> None:
        """Replace the target user's password after verifying the current one.

        Every precondition is checked before anything is written.
        """
        if principal.user_id != target_user_id:
            raise ForbiddenError("You are not authorized to change this password")
        if not old_password or not new_password:
            raise ValidationError("Old password and new password are required")
        if old_password == new_password:
            raise ValidationError("New password must be different from old password")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(_TOO_SHORT)
        if _too_long(new_password):
            raise ValidationError(_TOO_LONG)

        current_hash = await self.credentials.get_password_hash(target_user_id)
        if not await self.credentials.verify_password(old_password, current_hash):
            raise ValidationError("Current password is incorrect")

        await self.credentials.set_password(target_user_id, new_password)

"""
auth/identity.py -- Identity Resolver: map a login claim to exactly one User.

Two kinds of claim are resolved:

  resolve_local(email, password)
      Email lookup followed by a bcrypt check. The outcome says which of
      SUCCESS / INVALID_CREDENTIALS / USER_NOT_FOUND happened so the gate can
      choose the status code. Exactly one bcrypt comparison runs on every
      path (against a dummy hash when the account does not exist), so
      response time does not reveal whether the email is registered.

  resolve_federated(profile)
      Create-or-link upsert keyed first by email, then by provider subject:
        1. A user with the profile email exists -> attach the subject id to
           it (idempotent) and return it.
        2. A user already linked to the subject exists (their email changed
           at the provider) -> return it.
        3. Otherwise create a user with the profile email, the subject id,
           and a hashed random placeholder password nobody knows.
      A ConflictError from step 3 means a concurrent request created the
      same email first; the store's unique constraint is the arbiter, and we
      fall back to step 1. This never produces two users for one email.

An IdentityResolver is an explicit instance built in the app lifespan and
passed to the Authentication Gate; there is no process-wide strategy registry.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

import logging
import secrets

from auth.models import FederatedProfile, LoginOutcome, LoginResult, User
from auth.passwords import CredentialStore
from auth.store import UserStore
from core.concurrency import run_bounded
from core.errors import ConflictError, PersistenceError

logger = logging.getLogger("queryhub.auth.identity")


class IdentityResolver:
    def __init__(self, user_store: UserStore, credentials: CredentialStore) -> None:
        self.user_store = user_store
        self.credentials = credentials

    async def _store(self, func, *args, action: str):
        return await run_bounded(func, *args, timeout=self.credentials.timeout, action=action)

    async def resolve_local(self, email: str, password: str) -> LoginResult:
        """Resolve an email/password claim. Never raises on a failed login."""
        user = await self._store(self.user_store.find_by_email, email, action="looking up user")
        if user is None:
            await self.credentials.verify_password(password, None)
            return LoginResult(LoginOutcome.USER_NOT_FOUND)
        if not await self.credentials.verify_password(password, user.hashed_password):
            return LoginResult(LoginOutcome.INVALID_CREDENTIALS)
        return LoginResult(LoginOutcome.SUCCESS, user)

    async def resolve_federated(self, profile: FederatedProfile) -> User:
        """Return the single User for a verified provider profile, creating or linking as needed."""
        user = await self._link_by_email(profile)
        if user is not None:
            return user

        user = await self._store(self.user_store.find_by_federated_id, profile.subject, action="looking up user")
        if user is not None:
            return user

        placeholder = await self.credentials.hash_password(secrets.token_hex(32))
        new_user = User(email=profile.email, hashed_password=placeholder, google_id=profile.subject)
        try:
            user_id = await self._store(self.user_store.create_user, new_user, action="creating user")
        except ConflictError:
            logger.info("Concurrent federated signup for the same email; linking instead")
            user = await self._link_by_email(profile)
            if user is None:
                raise
            return user

        created = await self._store(self.user_store.find_by_id, user_id, action="looking up user")
        if created is None:
            raise PersistenceError("User not found after create")
        logger.info("Created user id=%s from federated login", user_id)
        return created

    async def _link_by_email(self, profile: FederatedProfile) -> User | None:
        user = await self._store(self.user_store.find_by_email, profile.email, action="looking up user")
        if user is None:
            return None
        if user.google_id != profile.subject:
            await self._store(
                self.user_store.link_federated_id, user.id, profile.subject, action="linking federated identity"
            )
            logger.info("Linked federated identity to user id=%s", user.id)
            user.google_id = profile.subject
        return user

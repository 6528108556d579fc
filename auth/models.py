"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these own the domain shape.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

DEFAULT_AVATAR = "avatar.png"


@dataclass
class User:
    """Represents a queryhub account.

    email is the login identifier and is unique across all users.

    hashed_password is None only for records that were never given a local
    password. Accounts created by a first Google login get a random, never
    disclosed placeholder hash instead, so they cannot log in locally either.

    google_id is None until the user logs in via Google for the first time,
    at which point UserStore.link_federated_id() fills it in.
    """

    email: str
    id: int | None = None
    hashed_password: str | None = None
    bio: str | None = None
    avatar: str = DEFAULT_AVATAR
    google_id: str | None = None  # provider's stable subject id
    created_at: str | None = None

    def public_dict(self) -> dict:
        """Return the user without any credential fields."""
        return {
            "id": self.id,
            "email": self.email,
            "bio": self.bio,
            "avatar": self.avatar,
            "created_at": self.created_at,
        }


@dataclass
class Session:
    """A server-side authenticated session.

    token_hash is HMAC-SHA256(SECRET_KEY, raw_token). The raw token only ever
    lives in the client's cookie.
    """

    token_hash: str
    user_id: int
    created_at: str
    expires_at: str


@dataclass(frozen=True)
class Principal:
    """The identity attached to a valid session."""

    user_id: int
    expires_at: str


@dataclass(frozen=True)
class FederatedProfile:
    """A verified profile returned by the external identity provider."""

    subject: str
    email: str


class LoginOutcome(str, Enum):
    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"
    USER_NOT_FOUND = "user_not_found"


@dataclass(frozen=True)
class LoginResult:
    """Result of IdentityResolver.resolve_local().

    user is set only when outcome is SUCCESS.
    """

    outcome: LoginOutcome
    user: User | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is LoginOutcome.SUCCESS

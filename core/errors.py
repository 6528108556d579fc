"""
core/errors.py -- Typed error taxonomy shared by every layer.

Services raise these instead of plain exceptions with string messages, and
api/main.py maps them to HTTP responses by ErrorKind. Callers match on the
class or the kind, never on the message text.

  ValidationError      400  malformed or missing input
  ConflictError        400  duplicate unique value (e.g. email)
  AuthenticationError  401  bad credentials
  AuthorizationError   401  missing or invalid session
  UnknownAccountError  400  login for an email with no account
  ForbiddenError       403  authenticated but not the resource owner
  NotFoundError        404  referenced record does not exist
  PersistenceError     500  unexpected store failure (message carries no credential data)

Layer rule: core/ is the kernel. No imports from api/, auth/, or blog/.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    validation = "validation_error"
    conflict = "conflict"
    authentication = "bad_credentials"
    authorization = "unauthorized"
    unknown_account = "user_not_found"
    forbidden = "forbidden"
    not_found = "not_found"
    persistence = "internal_error"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.validation: 400,
    ErrorKind.conflict: 400,
    ErrorKind.authentication: 401,
    ErrorKind.authorization: 401,
    ErrorKind.unknown_account: 400,
    ErrorKind.forbidden: 403,
    ErrorKind.not_found: 404,
    ErrorKind.persistence: 500,
}


class AppError(Exception):
    """Base class for every expected failure in queryhub."""

    kind: ErrorKind = ErrorKind.persistence

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class ValidationError(AppError):
    kind = ErrorKind.validation


class ConflictError(AppError):
    kind = ErrorKind.conflict


class AuthenticationError(AppError):
    kind = ErrorKind.authentication


class AuthorizationError(AppError):
    kind = ErrorKind.authorization


class UnknownAccountError(AppError):
    """Login named an email no account uses (reported as 400, not 401)."""

    kind = ErrorKind.unknown_account


class ForbiddenError(AppError):
    kind = ErrorKind.forbidden


class NotFoundError(AppError):
    kind = ErrorKind.not_found


class PersistenceError(AppError):
    kind = ErrorKind.persistence


class MalformedHashError(PersistenceError):
    """A stored password hash could not be parsed by bcrypt."""

"""
Typed errors raised by the authentication core.

Each error carries the HTTP status the API layer answers with and a stable
`error_code`. Messages are safe to show to callers: they never contain
password hashes, signing secrets or storage details.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FieldError:
    """One failed validation rule on one request field."""

    field: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "reason": self.reason}


class AuthError(Exception):
    """Base class for all errors the core reports to callers."""

    status_code: int = 500
    error_code: str = "internal_error"
    default_message: str = "An internal error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Malformed input. The caller must fix the request."""

    status_code = 400
    error_code = "validation_error"
    default_message = "Validation failed"

    def __init__(self, errors: list[FieldError], message: Optional[str] = None):
        self.errors = list(errors)
        if message is None and self.errors:
            message = "; ".join(f"{e.field}: {e.reason}" for e in self.errors)
        super().__init__(message)


class WeakPasswordError(ValidationError):
    """The password fails the strength policy."""

    error_code = "weak_password"

    def __init__(self, reason: str, field: str = "password"):
        self.reason = reason
        super().__init__([FieldError(field, reason)], message=reason)


class DuplicateEmailError(AuthError):
    status_code = 409
    error_code = "duplicate_email"
    default_message = "User with this email already exists"


class InvalidCredentialsError(AuthError):
    """Unknown email or wrong password. Both cases look the same on purpose."""

    status_code = 401
    error_code = "invalid_credentials"
    default_message = "Invalid email or password"


class AccountInactiveError(AuthError):
    status_code = 401
    error_code = "account_inactive"
    default_message = "User account is not active"


class UnauthorizedError(AuthError):
    """Missing, malformed, invalid or expired access token."""

    status_code = 401
    error_code = "unauthorized"
    default_message = "Not authenticated"


class InvalidTokenError(UnauthorizedError):
    """Unknown or expired refresh/reset token."""

    error_code = "invalid_token"
    default_message = "Token is invalid or has expired"


class ForbiddenError(AuthError):
    status_code = 403
    error_code = "forbidden"
    default_message = "Forbidden"


class UserNotFoundError(AuthError):
    status_code = 404
    error_code = "not_found"
    default_message = "User not found"


class InternalError(AuthError):
    """Storage, hashing or signing failure. Details are logged, not returned."""

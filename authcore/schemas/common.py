"""
Common schemas used across the API.

Request bodies are parsed by Pydantic for types only. Field rules live in
each request's `validation_errors()` and are built from the helpers below.
"""

from typing import Optional

from pydantic import BaseModel, Field

from authcore.auth.password import MAX_PASSWORD_LENGTH
from authcore.core.config import is_valid_email
from authcore.core.errors import FieldError, ValidationError

MAX_EMAIL_LENGTH = 254
MAX_NAME_LENGTH = 100
MAX_PASSWORD_INPUT_LENGTH = MAX_PASSWORD_LENGTH
MAX_TOKEN_LENGTH = 512


def check_required(field: str, value: Optional[str], max_length: int) -> Optional[FieldError]:
    """Non-blank string no longer than `max_length`."""
    if value is None or not value.strip():
        return FieldError(field, f"{field} is required")
    if len(value) > max_length:
        return FieldError(field, f"{field} must be at most {max_length} characters")
    return None


def check_optional(field: str, value: Optional[str], max_length: int) -> Optional[FieldError]:
    """Absent is fine; present means the same rules as `check_required`."""
    if value is None:
        return None
    return check_required(field, value, max_length)


def check_email(value: Optional[str], field: str = "email") -> Optional[FieldError]:
    missing = check_required(field, value, MAX_EMAIL_LENGTH)
    if missing:
        return missing
    if not is_valid_email(value.strip()):
        return FieldError(field, "Invalid email format")
    return None


def check_password_present(value: Optional[str], field: str = "password") -> Optional[FieldError]:
    """
    Presence and upper bound only.

    Strength is the password policy's job, so a weak password reaches the
    service and is reported as `weak_password`.
    """
    if not value:
        return FieldError(field, f"{field} is required")
    if len(value) > MAX_PASSWORD_INPUT_LENGTH:
        return FieldError(field, f"{field} must be at most {MAX_PASSWORD_INPUT_LENGTH} characters")
    return None


def collect(*results: Optional[FieldError]) -> list[FieldError]:
    return [r for r in results if r is not None]


class FieldErrorResponse(BaseModel):
    field: str
    reason: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str = Field(description="Caller-safe error message")
    error_code: str = Field(description="Machine-readable error code")
    errors: Optional[list[FieldErrorResponse]] = Field(default=None, description="Per-field problems")


# Error shapes documented on every router.
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request body or weak password"},
    401: {"model": ErrorResponse, "description": "Missing, invalid or expired credentials"},
    403: {"model": ErrorResponse, "description": "Role not authorized"},
    404: {"model": ErrorResponse, "description": "User not found"},
    409: {"model": ErrorResponse, "description": "Email already registered"},
    500: {"model": ErrorResponse, "description": "Internal error"},
}


class MessageResponse(BaseModel):
    """Simple acknowledgement."""

    message: str


class HealthResponse(BaseModel):
    status: str
    database: str


def ensure_valid(body) -> None:
    """Raise `ValidationError` with every field problem of a request body."""
    errors = body.validation_errors()
    if errors:
        raise ValidationError(errors)

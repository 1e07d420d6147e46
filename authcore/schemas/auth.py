"""
Authentication-related schemas.

Every field is optional at the type level so a missing field is reported by
`validation_errors()` as a field/reason pair instead of a parser error.
"""

from typing import Optional

from pydantic import BaseModel, Field

from authcore.core.errors import FieldError
from authcore.models.user import UserRole
from authcore.schemas.common import (
    MAX_NAME_LENGTH,
    MAX_TOKEN_LENGTH,
    check_email,
    check_password_present,
    check_required,
    collect,
)
from authcore.schemas.user import UserResponse

ROLE_CHOICES = tuple(r.value for r in UserRole)


class RegisterRequest(BaseModel):
    """Self-service sign-up."""

    email: Optional[str] = Field(default=None, description="User email address")
    password: Optional[str] = Field(default=None, description="Plaintext password")
    first_name: Optional[str] = Field(default=None, description="First name")
    last_name: Optional[str] = Field(default=None, description="Last name")

    def validation_errors(self) -> list[FieldError]:
        return collect(
            check_email(self.email),
            check_password_present(self.password),
            check_required("first_name", self.first_name, MAX_NAME_LENGTH),
            check_required("last_name", self.last_name, MAX_NAME_LENGTH),
        )


class AdminRegisterRequest(RegisterRequest):
    """User creation by an admin, with an explicit role."""

    role: Optional[str] = Field(default=None, description="One of admin, user, moderator")

    def validation_errors(self) -> list[FieldError]:
        errors = super().validation_errors()
        if not self.role:
            errors.append(FieldError("role", "role is required"))
        elif self.role not in ROLE_CHOICES:
            errors.append(FieldError("role", f"role must be one of: {', '.join(ROLE_CHOICES)}"))
        return errors


class LoginRequest(BaseModel):
    """Login request with email and password."""

    email: Optional[str] = Field(default=None, description="User email address")
    password: Optional[str] = Field(default=None, description="User password")

    def validation_errors(self) -> list[FieldError]:
        return collect(
            check_email(self.email),
            check_password_present(self.password),
        )


class RefreshRequest(BaseModel):
    """Request to exchange a refresh token."""

    refresh_token: Optional[str] = Field(default=None, description="Current refresh token")

    def validation_errors(self) -> list[FieldError]:
        return collect(check_required("refresh_token", self.refresh_token, MAX_TOKEN_LENGTH))


class ChangePasswordRequest(BaseModel):
    """Request to change password."""

    old_password: Optional[str] = Field(default=None, description="Current password")
    new_password: Optional[str] = Field(default=None, description="Replacement password")

    def validation_errors(self) -> list[FieldError]:
        return collect(
            check_password_present(self.old_password, "old_password"),
            check_password_present(self.new_password, "new_password"),
        )


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = Field(default=None, description="Account email address")

    def validation_errors(self) -> list[FieldError]:
        return collect(check_email(self.email))


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = Field(default=None, description="Reset token from forgot-password")
    new_password: Optional[str] = Field(default=None, description="Replacement password")

    def validation_errors(self) -> list[FieldError]:
        return collect(
            check_required("token", self.token, MAX_TOKEN_LENGTH),
            check_password_present(self.new_password, "new_password"),
        )


class LoginResponse(BaseModel):
    """Login response with tokens."""

    token: str = Field(description="Signed access token")
    refresh_token: str = Field(description="Opaque refresh token, shown once")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(description="Access token lifetime in seconds")
    user: UserResponse


class ForgotPasswordResponse(BaseModel):
    message: str
    reset_token: Optional[str] = Field(
        default=None,
        description="Only returned outside production, since no email is sent",
    )


class DashboardResponse(BaseModel):
    message: str
    user_id: int
    role: UserRole

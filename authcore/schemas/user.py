"""
User-related schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from authcore.core.errors import FieldError
from authcore.models.user import User, UserRole
from authcore.schemas.common import MAX_NAME_LENGTH, check_optional, collect


class UserResponse(BaseModel):
    """Public view of a user. There is no password hash to leak."""

    id: int
    email: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserUpdateRequest(BaseModel):
    """Profile update. Omitted fields are left unchanged."""

    first_name: Optional[str] = Field(default=None, description="New first name")
    last_name: Optional[str] = Field(default=None, description="New last name")

    def validation_errors(self) -> list[FieldError]:
        return collect(
            check_optional("first_name", self.first_name, MAX_NAME_LENGTH),
            check_optional("last_name", self.last_name, MAX_NAME_LENGTH),
        )

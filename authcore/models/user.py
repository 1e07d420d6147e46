"""
User domain objects.

The domain `User` deliberately has no password hash attribute: the hash is
only reachable through `UserStore.get_password_hash`, so it cannot leak into
a serialized response by accident.

Emails are normalized (trimmed, lowercased) before every lookup, uniqueness
check and write.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional


class UserRole(str, PyEnum):
    """Closed set of roles, ordered from most to least privileged."""
    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class NewUser:
    """Fields supplied when creating a user; the store assigns id and timestamps."""
    email: str
    first_name: str
    last_name: str
    role: UserRole = UserRole.USER
    is_active: bool = True


@dataclass(frozen=True)
class User:
    id: int
    email: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email}>"

    def with_changes(self, **changes) -> "User":
        return replace(self, **changes)


@dataclass(frozen=True)
class TokenGrant:
    """A user found by one of its stored opaque tokens, with that token's expiry."""
    user: User
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now

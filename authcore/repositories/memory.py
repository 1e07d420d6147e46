"""
In-memory user store for tests and local development.

Methods never await in the middle of a read-modify-write, so on a single
event loop every write is atomic and the email uniqueness check cannot race.
"""

import itertools
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from authcore.core.errors import DuplicateEmailError, UserNotFoundError
from authcore.models.user import (
    NewUser,
    TokenGrant,
    User,
    UserRole,
    normalize_email,
    utcnow,
)
from authcore.repositories.base import UserStore


@dataclass
class _Row:
    user: User
    password_hash: str
    refresh_token_hash: Optional[str] = None
    refresh_token_expires: Optional[datetime] = None
    reset_token_hash: Optional[str] = None
    reset_token_expires: Optional[datetime] = None


class InMemoryUserStore(UserStore):

    def __init__(self) -> None:
        self._rows: Dict[int, _Row] = {}
        self._ids = itertools.count(1)

    def _row(self, user_id: int) -> _Row:
        row = self._rows.get(user_id)
        if row is None:
            raise UserNotFoundError()
        return row

    def _email_owner(self, email: str) -> Optional[int]:
        for user_id, row in self._rows.items():
            if row.user.email == email:
                return user_id
        return None

    async def create(self, new_user: NewUser, password_hash: str) -> User:
        if not password_hash:
            raise ValueError("password_hash must not be empty")
        email = normalize_email(new_user.email)
        if self._email_owner(email) is not None:
            raise DuplicateEmailError()

        now = utcnow()
        user = User(
            id=next(self._ids),
            email=email,
            first_name=new_user.first_name,
            last_name=new_user.last_name,
            role=UserRole(new_user.role),
            is_active=new_user.is_active,
            created_at=now,
            updated_at=now,
        )
        self._rows[user.id] = _Row(user=user, password_hash=password_hash)
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        user_id = self._email_owner(normalize_email(email))
        return None if user_id is None else self._rows[user_id].user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        row = self._rows.get(user_id)
        return row.user if row else None

    async def update(self, user: User) -> User:
        row = self._row(user.id)
        email = normalize_email(user.email)
        owner = self._email_owner(email)
        if owner is not None and owner != user.id:
            raise DuplicateEmailError()

        row.user = user.with_changes(
            email=email,
            role=UserRole(user.role),
            created_at=row.user.created_at,
            updated_at=utcnow(),
        )
        return row.user

    async def get_password_hash(self, user_id: int) -> Optional[str]:
        row = self._rows.get(user_id)
        return row.password_hash if row else None

    async def update_password(self, user_id: int, password_hash: str) -> None:
        if not password_hash:
            raise ValueError("password_hash must not be empty")
        row = self._row(user_id)
        row.password_hash = password_hash
        row.user = row.user.with_changes(updated_at=utcnow())

    async def set_refresh_token(
        self,
        user_id: int,
        token_hash: Optional[str],
        expires_at: Optional[datetime],
    ) -> None:
        row = self._row(user_id)
        row.refresh_token_hash = token_hash
        row.refresh_token_expires = expires_at if token_hash else None

    async def get_by_refresh_token(self, token_hash: str) -> Optional[TokenGrant]:
        for row in self._rows.values():
            if token_hash and row.refresh_token_hash == token_hash:
                return TokenGrant(user=row.user, expires_at=row.refresh_token_expires)
        return None

    async def rotate_refresh_token(
        self,
        user_id: int,
        old_hash: str,
        new_hash: str,
        expires_at: datetime,
    ) -> bool:
        row = self._rows.get(user_id)
        if row is None or not old_hash or row.refresh_token_hash != old_hash:
            return False
        row.refresh_token_hash = new_hash
        row.refresh_token_expires = expires_at
        return True

    async def set_reset_token(self, user_id: int, token_hash: str, expires_at: datetime) -> None:
        row = self._row(user_id)
        row.reset_token_hash = token_hash
        row.reset_token_expires = expires_at

    async def get_by_reset_token(self, token_hash: str) -> Optional[TokenGrant]:
        for row in self._rows.values():
            if token_hash and row.reset_token_hash == token_hash:
                return TokenGrant(user=row.user, expires_at=row.reset_token_expires)
        return None

    async def consume_reset_token(self, token_hash: str) -> Optional[TokenGrant]:
        for row in self._rows.values():
            if token_hash and row.reset_token_hash == token_hash:
                grant = TokenGrant(user=row.user, expires_at=row.reset_token_expires)
                row.reset_token_hash = None
                row.reset_token_expires = None
                return grant
        return None

    async def count_by_role(self, role: UserRole) -> int:
        return sum(1 for row in self._rows.values() if row.user.role == role)

"""
User store port.

The authentication service only talks to this interface. Implementations
must:
- reject a second live user with the same (normalized) email by raising
  DuplicateEmailError, even when two creates race each other
- make every single-record write atomic
- rotate refresh tokens and consume reset tokens as compare-and-swap, so
  one token is redeemed by at most one request
- hide soft-deleted rows from every lookup
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from authcore.models.user import NewUser, TokenGrant, User, UserRole


class UserStore(ABC):

    @abstractmethod
    async def create(self, new_user: NewUser, password_hash: str) -> User:
        """Persist a new user. Raises DuplicateEmailError."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_by_id(self, user_id: int) -> Optional[User]:
        ...

    @abstractmethod
    async def update(self, user: User) -> User:
        """
        Save profile fields (names, role, active flag, email).

        Raises:
            UserNotFoundError: If no live user has this id
            DuplicateEmailError: If the new email belongs to someone else
        """

    @abstractmethod
    async def get_password_hash(self, user_id: int) -> Optional[str]:
        ...

    @abstractmethod
    async def update_password(self, user_id: int, password_hash: str) -> None:
        """Raises UserNotFoundError."""

    @abstractmethod
    async def set_refresh_token(
        self,
        user_id: int,
        token_hash: Optional[str],
        expires_at: Optional[datetime],
    ) -> None:
        """Replace (or clear, with None) the single refresh token of a user."""

    @abstractmethod
    async def get_by_refresh_token(self, token_hash: str) -> Optional[TokenGrant]:
        ...

    @abstractmethod
    async def rotate_refresh_token(
        self,
        user_id: int,
        old_hash: str,
        new_hash: str,
        expires_at: datetime,
    ) -> bool:
        """
        Swap the refresh token only if the stored one is still `old_hash`.

        Returns False when another request already rotated or cleared it.
        """

    @abstractmethod
    async def set_reset_token(self, user_id: int, token_hash: str, expires_at: datetime) -> None:
        ...

    @abstractmethod
    async def get_by_reset_token(self, token_hash: str) -> Optional[TokenGrant]:
        ...

    @abstractmethod
    async def consume_reset_token(self, token_hash: str) -> Optional[TokenGrant]:
        """Clear a reset token and return its grant. At most one caller gets it."""

    @abstractmethod
    async def count_by_role(self, role: UserRole) -> int:
        ...

    async def close(self) -> None:
        """Release resources held by the store."""

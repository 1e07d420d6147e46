"""
Relational user store backed by SQLAlchemy (asyncio).

Each method runs in its own session and commits once, so every write is a
single atomic statement batch. Email uniqueness is enforced by the partial
unique index on `users.email`; an IntegrityError on insert or update is
reported as DuplicateEmailError, which is what a losing concurrent
registration sees.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authcore.core.errors import DuplicateEmailError, UserNotFoundError
from authcore.models.user import NewUser, TokenGrant, User, UserRole, normalize_email
from authcore.models.user_record import UserRecord
from authcore.repositories.base import UserStore

logger = logging.getLogger(__name__)


class SQLAlchemyUserStore(UserStore):

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @staticmethod
    def _live():
        return select(UserRecord).where(UserRecord.deleted_at.is_(None))

    async def _get_record(self, session: AsyncSession, user_id: int) -> UserRecord:
        result = await session.execute(self._live().where(UserRecord.id == user_id))
        record = result.scalar_one_or_none()
        if record is None:
            raise UserNotFoundError()
        return record

    async def create(self, new_user: NewUser, password_hash: str) -> User:
        if not password_hash:
            raise ValueError("password_hash must not be empty")

        record = UserRecord(
            email=normalize_email(new_user.email),
            password_hash=password_hash,
            first_name=new_user.first_name,
            last_name=new_user.last_name,
            role=UserRole(new_user.role),
            is_active=new_user.is_active,
        )
        async with self._session_maker() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("Rejected duplicate email on insert")
                raise DuplicateEmailError()
            return record.to_entity()

    async def get_by_email(self, email: str) -> Optional[User]:
        async with self._session_maker() as session:
            result = await session.execute(
                self._live().where(UserRecord.email == normalize_email(email))
            )
            record = result.scalar_one_or_none()
            return record.to_entity() if record else None

    async def get_by_id(self, user_id: int) -> Optional[User]:
        async with self._session_maker() as session:
            result = await session.execute(self._live().where(UserRecord.id == user_id))
            record = result.scalar_one_or_none()
            return record.to_entity() if record else None

    async def update(self, user: User) -> User:
        async with self._session_maker() as session:
            record = await self._get_record(session, user.id)
            record.email = normalize_email(user.email)
            record.first_name = user.first_name
            record.last_name = user.last_name
            record.role = UserRole(user.role)
            record.is_active = user.is_active
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise DuplicateEmailError()
            await session.refresh(record)
            return record.to_entity()

    async def get_password_hash(self, user_id: int) -> Optional[str]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(UserRecord.password_hash).where(
                    UserRecord.id == user_id,
                    UserRecord.deleted_at.is_(None),
                )
            )
            return result.scalar_one_or_none()

    async def update_password(self, user_id: int, password_hash: str) -> None:
        if not password_hash:
            raise ValueError("password_hash must not be empty")
        async with self._session_maker() as session:
            record = await self._get_record(session, user_id)
            record.password_hash = password_hash
            await session.commit()

    async def set_refresh_token(
        self,
        user_id: int,
        token_hash: Optional[str],
        expires_at: Optional[datetime],
    ) -> None:
        async with self._session_maker() as session:
            record = await self._get_record(session, user_id)
            record.refresh_token_hash = token_hash
            record.refresh_token_expires = expires_at if token_hash else None
            await session.commit()

    async def get_by_refresh_token(self, token_hash: str) -> Optional[TokenGrant]:
        if not token_hash:
            return None
        async with self._session_maker() as session:
            result = await session.execute(
                self._live().where(UserRecord.refresh_token_hash == token_hash)
            )
            record = result.scalar_one_or_none()
            if record is None:
                return None
            return TokenGrant(user=record.to_entity(), expires_at=record.refresh_token_expires)

    async def rotate_refresh_token(
        self,
        user_id: int,
        old_hash: str,
        new_hash: str,
        expires_at: datetime,
    ) -> bool:
        if not old_hash:
            return False
        async with self._session_maker() as session:
            result = await session.execute(
                update(UserRecord)
                .where(
                    UserRecord.id == user_id,
                    UserRecord.refresh_token_hash == old_hash,
                    UserRecord.deleted_at.is_(None),
                )
                .values(refresh_token_hash=new_hash, refresh_token_expires=expires_at)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def set_reset_token(self, user_id: int, token_hash: str, expires_at: datetime) -> None:
        async with self._session_maker() as session:
            record = await self._get_record(session, user_id)
            record.reset_token_hash = token_hash
            record.reset_token_expires = expires_at
            await session.commit()

    async def get_by_reset_token(self, token_hash: str) -> Optional[TokenGrant]:
        if not token_hash:
            return None
        async with self._session_maker() as session:
            result = await session.execute(
                self._live().where(UserRecord.reset_token_hash == token_hash)
            )
            record = result.scalar_one_or_none()
            if record is None:
                return None
            return TokenGrant(user=record.to_entity(), expires_at=record.reset_token_expires)

    async def consume_reset_token(self, token_hash: str) -> Optional[TokenGrant]:
        if not token_hash:
            return None
        async with self._session_maker() as session:
            result = await session.execute(
                self._live().where(UserRecord.reset_token_hash == token_hash)
            )
            record = result.scalar_one_or_none()
            if record is None:
                return None
            grant = TokenGrant(user=record.to_entity(), expires_at=record.reset_token_expires)

            # Only the request whose UPDATE still matches the hash wins.
            result = await session.execute(
                update(UserRecord)
                .where(
                    UserRecord.id == record.id,
                    UserRecord.reset_token_hash == token_hash,
                )
                .values(reset_token_hash=None, reset_token_expires=None)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await session.rollback()
                return None
            await session.commit()
            return grant

    async def count_by_role(self, role: UserRole) -> int:
        async with self._session_maker() as session:
            result = await session.execute(
                select(func.count(UserRecord.id)).where(
                    UserRecord.role == UserRole(role),
                    UserRecord.deleted_at.is_(None),
                )
            )
            return int(result.scalar() or 0)

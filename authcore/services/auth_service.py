"""
Authentication service.

Coordinates the user store, the password policy/hasher and the token issuer.
Each public method is one atomic transition: it either completes or raises
one of the typed errors from `authcore.core.errors`, leaving no intermediate
state behind.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from authcore.auth.jwt import (
    RESET_TOKEN_BYTES,
    TokenIssuer,
    generate_opaque_token,
    hash_opaque_token,
)
from authcore.auth.password import (
    check_password_strength,
    hash_password_async,
    needs_rehash,
    verify_dummy_password_async,
    verify_password_async,
)
from authcore.core.errors import (
    AccountInactiveError,
    DuplicateEmailError,
    FieldError,
    InvalidCredentialsError,
    InvalidTokenError,
    UserNotFoundError,
    ValidationError,
)
from authcore.models.user import NewUser, User, UserRole, normalize_email, utcnow
from authcore.repositories.base import UserStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    token: str
    refresh_token: str
    expires_in: int
    user: User
    token_type: str = "bearer"


class AuthService:
    """Registration, login, session extension and password flows."""

    def __init__(
        self,
        store: UserStore,
        tokens: TokenIssuer,
        refresh_token_ttl: timedelta = timedelta(days=7),
        reset_token_ttl: timedelta = timedelta(hours=1),
    ):
        self.store = store
        self.tokens = tokens
        self.refresh_token_ttl = refresh_token_ttl
        self.reset_token_ttl = reset_token_ttl

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> User:
        """Self-service sign-up. The role is always `user`."""
        return await self._create_user(email, password, first_name, last_name, UserRole.USER)

    async def admin_register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: UserRole,
    ) -> User:
        """
        Create a user with an explicit role.

        The caller's admin privilege is checked by the access-control
        dependency on the route, not here.
        """
        return await self._create_user(email, password, first_name, last_name, UserRole(role))

    async def _create_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: UserRole,
    ) -> User:
        normalized = normalize_email(email)
        if not normalized:
            raise ValidationError([FieldError("email", "Email is required")])

        if await self.store.get_by_email(normalized) is not None:
            raise DuplicateEmailError()

        check_password_strength(password)

        password_hash = await hash_password_async(password)
        new_user = NewUser(
            email=normalized,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            role=role,
            is_active=True,
        )
        # A concurrent registration may still win the race; the store's
        # DuplicateEmailError propagates unchanged.
        user = await self.store.create(new_user, password_hash)

        logger.info(
            "User registered",
            extra={"user_id": user.id, "email": user.email, "role": user.role.value},
        )
        return user

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Verify credentials and issue an access token plus a refresh token.

        Unknown email and wrong password raise the same error. The inactive
        check only runs after the password matched, so it cannot be used to
        probe which emails exist.
        """
        normalized = normalize_email(email)
        user = await self.store.get_by_email(normalized) if normalized else None

        if user is None:
            await verify_dummy_password_async(password)
            logger.info("Login failed", extra={"email": normalized, "reason": "unknown_email"})
            raise InvalidCredentialsError()

        password_hash = await self.store.get_password_hash(user.id)
        if not password_hash or not await verify_password_async(password, password_hash):
            logger.info("Login failed", extra={"email": normalized, "reason": "invalid_password"})
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.info("Login refused", extra={"user_id": user.id, "reason": "inactive"})
            raise AccountInactiveError()

        if needs_rehash(password_hash):
            await self.store.update_password(user.id, await hash_password_async(password))

        result = await self._start_session(user)
        logger.info("Login succeeded", extra={"user_id": user.id})
        return result

    async def refresh(self, refresh_token: str) -> LoginResult:
        """Exchange a refresh token for a new access token and a rotated refresh token."""
        token_hash = hash_opaque_token(refresh_token or "")
        grant = await self.store.get_by_refresh_token(token_hash)
        if grant is None or grant.is_expired():
            raise InvalidTokenError("Refresh token is invalid or has expired")

        if not grant.user.is_active:
            await self.store.set_refresh_token(grant.user.id, None, None)
            raise AccountInactiveError()

        new_token = generate_opaque_token()
        rotated = await self.store.rotate_refresh_token(
            grant.user.id,
            token_hash,
            hash_opaque_token(new_token),
            utcnow() + self.refresh_token_ttl,
        )
        if not rotated:
            logger.info("Refresh token already redeemed", extra={"user_id": grant.user.id})
            raise InvalidTokenError("Refresh token is invalid or has expired")

        logger.info("Session refreshed", extra={"user_id": grant.user.id})
        return self._session_result(grant.user, new_token)

    async def logout(self, user_id: int) -> None:
        """Drop the user's refresh token. Issued access tokens expire on their own."""
        await self.store.set_refresh_token(user_id, None, None)
        logger.info("User logged out", extra={"user_id": user_id})

    async def _start_session(self, user: User) -> LoginResult:
        refresh_token = generate_opaque_token()
        await self.store.set_refresh_token(
            user.id,
            hash_opaque_token(refresh_token),
            utcnow() + self.refresh_token_ttl,
        )
        return self._session_result(user, refresh_token)

    def _session_result(self, user: User, refresh_token: str) -> LoginResult:
        return LoginResult(
            token=self.tokens.issue(user.id, user.role),
            refresh_token=refresh_token,
            expires_in=self.tokens.expires_in,
            user=user,
        )

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    async def get_profile(self, user_id: int) -> User:
        user = await self.store.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def update_profile(
        self,
        user_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        user = await self.get_profile(user_id)
        changes = {}
        if first_name is not None:
            changes["first_name"] = first_name.strip()
        if last_name is not None:
            changes["last_name"] = last_name.strip()
        if not changes:
            return user
        return await self.store.update(user.with_changes(**changes))

    # -------------------------------------------------------------------------
    # Passwords
    # -------------------------------------------------------------------------

    async def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        """
        Replace the password after re-verifying the current one.

        Other sessions lose their refresh token and must log in again.
        """
        password_hash = await self.store.get_password_hash(user_id)
        if password_hash is None:
            raise UserNotFoundError()

        if not await verify_password_async(old_password, password_hash):
            raise InvalidCredentialsError("Current password is incorrect")

        check_password_strength(new_password)

        await self.store.update_password(user_id, await hash_password_async(new_password))
        await self.store.set_refresh_token(user_id, None, None)
        logger.info("Password changed", extra={"user_id": user_id})

    async def forgot_password(self, email: str) -> Optional[str]:
        """
        Create a single-use reset token for an active account.

        Returns:
            The raw token, or None when no active account has this email.
            Only the token digest is stored. Delivering it is up to the caller.
        """
        user = await self.store.get_by_email(normalize_email(email))
        if user is None or not user.is_active:
            logger.info("Password reset requested for unknown or inactive account")
            return None

        token = generate_opaque_token(RESET_TOKEN_BYTES)
        await self.store.set_reset_token(
            user.id,
            hash_opaque_token(token),
            utcnow() + self.reset_token_ttl,
        )
        logger.info("Password reset token issued", extra={"user_id": user.id})
        return token

    async def reset_password(self, token: str, new_password: str) -> None:
        """
        Set a new password using a reset token.

        A weak password leaves the token usable. Otherwise the token is
        consumed before hashing, so concurrent requests with the same token
        cannot both succeed.
        """
        token_hash = hash_opaque_token(token or "")
        grant = await self.store.get_by_reset_token(token_hash)
        if grant is None or grant.is_expired():
            raise InvalidTokenError("Reset token is invalid or has expired")

        check_password_strength(new_password)

        if await self.store.consume_reset_token(token_hash) is None:
            raise InvalidTokenError("Reset token is invalid or has expired")

        user_id = grant.user.id
        await self.store.update_password(user_id, await hash_password_async(new_password))
        await self.store.set_refresh_token(user_id, None, None)
        logger.info("Password reset completed", extra={"user_id": user_id})

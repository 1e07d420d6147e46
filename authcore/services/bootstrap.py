"""
Initial admin account.

Runs at startup. When no admin exists and ADMIN_EMAIL is configured, an
admin is created from the ADMIN_* settings. A configured password must pass
the strength policy; outside production a missing one is replaced by a
generated temporary password that is logged once.
"""

import logging
from typing import Optional

from authcore.auth.password import (
    generate_temp_password,
    hash_password_async,
    validate_password_strength,
)
from authcore.core.config import Settings
from authcore.core.errors import DuplicateEmailError
from authcore.models.user import NewUser, User, UserRole, normalize_email
from authcore.repositories.base import UserStore

logger = logging.getLogger(__name__)


async def bootstrap_admin_if_needed(store: UserStore, settings: Settings) -> Optional[User]:
    """Create the first admin user. Returns it, or None when nothing was created."""
    if await store.count_by_role(UserRole.ADMIN) > 0:
        logger.info("Admin user already exists, skipping seeding")
        return None

    if not settings.admin_email:
        logger.warning("ADMIN_EMAIL not set, skipping admin user seeding")
        return None

    password = settings.admin_password
    generated = False
    if not password:
        if settings.is_production:
            logger.warning("ADMIN_PASSWORD not set, skipping admin user seeding")
            return None
        password = generate_temp_password()
        generated = True

    ok, issues = validate_password_strength(password)
    if not ok:
        logger.error(
            "Admin password rejected by the password policy, skipping admin user seeding",
            extra={"issues": issues},
        )
        return None

    new_user = NewUser(
        email=normalize_email(settings.admin_email),
        first_name=settings.admin_first_name or "Admin",
        last_name=settings.admin_last_name or "User",
        role=UserRole.ADMIN,
        is_active=True,
    )
    try:
        admin = await store.create(new_user, await hash_password_async(password))
    except DuplicateEmailError:
        logger.error(
            "ADMIN_EMAIL already belongs to a non-admin user, skipping admin user seeding",
            extra={"email": new_user.email},
        )
        return None

    logger.info("Admin user created", extra={"user_id": admin.id, "email": admin.email})
    if generated:
        # Shown once so a fresh development clone can log in.
        print("=" * 60)
        print("DEFAULT ADMIN ACCOUNT CREATED")
        print(f"   Email:    {admin.email}")
        print(f"   Password: {password}")
        print("   CHANGE THIS PASSWORD IMMEDIATELY!")
        print("=" * 60)
    return admin

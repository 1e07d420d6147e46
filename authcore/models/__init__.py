"""
authcore models

Domain objects used by the authentication core, plus the SQLAlchemy mapping
used by the relational store.
"""

from authcore.models.user import (
    NewUser,
    TokenGrant,
    User,
    UserRole,
    normalize_email,
)

__all__ = [
    "NewUser",
    "TokenGrant",
    "User",
    "UserRole",
    "normalize_email",
]

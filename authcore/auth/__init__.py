"""
Authentication and Authorization module.

Provides:
- Password policy and hashing (Argon2id)
- JWT access token issuing and validation
- Bearer-token authentication and role gating (see `authcore.auth.dependencies`)
"""

from authcore.auth.jwt import (
    TokenClaims,
    TokenError,
    TokenErrorKind,
    TokenIssuer,
    issue_token,
    validate_token,
)
from authcore.auth.password import (
    check_password_strength,
    hash_password,
    validate_password_strength,
    verify_password,
)

__all__ = [
    # JWT
    "TokenClaims",
    "TokenError",
    "TokenErrorKind",
    "TokenIssuer",
    "issue_token",
    "validate_token",
    # Password
    "check_password_strength",
    "hash_password",
    "validate_password_strength",
    "verify_password",
]

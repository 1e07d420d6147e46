"""Application services."""

from authcore.services.auth_service import AuthService, LoginResult
from authcore.services.bootstrap import bootstrap_admin_if_needed

__all__ = [
    "AuthService",
    "LoginResult",
    "bootstrap_admin_if_needed",
]

"""
FastAPI dependencies for authentication and authorization.

Provides:
- get_current_principal: Validate the bearer token and expose {user_id, role}
- require_role / RoleChecker: Role gate, always evaluated after authentication
- get_auth_service / get_token_issuer: Components built once at startup

Authentication is stateless: the token signature and expiry decide, no store
lookup happens here.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authcore.auth.jwt import TokenError, TokenErrorKind, TokenIssuer
from authcore.core.errors import ForbiddenError, UnauthorizedError
from authcore.models.user import UserRole

if TYPE_CHECKING:
    from authcore.services.auth_service import AuthService

logger = logging.getLogger(__name__)

# Missing or non-bearer headers yield None and are rejected below.
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Identity attached to an authenticated request."""
    user_id: int
    role: UserRole


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_auth_service(request: Request) -> "AuthService":
    return request.app.state.auth_service


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> Principal:
    """
    Authenticate the request from its bearer token.

    Raises:
        UnauthorizedError 401: No header, malformed header, invalid or expired token
    """
    if credentials is None:
        raise UnauthorizedError("Not authenticated")

    try:
        claims = tokens.validate(credentials.credentials)
    except TokenError as e:
        logger.info("Rejected access token", extra={"kind": e.kind.value, "path": request.url.path})
        raise UnauthorizedError("Token has expired" if e.kind is TokenErrorKind.EXPIRED else "Invalid token")

    principal = Principal(user_id=claims.user_id, role=claims.role)
    request.state.principal = principal
    return principal


def require_role(*allowed_roles: UserRole):
    """
    Dependency to require specific role(s).

    Usage:
        @router.get("/admin-only")
        async def admin_endpoint(
            principal: Principal = Depends(require_role(UserRole.ADMIN))
        ):
            ...
    """
    return RoleChecker(list(allowed_roles))


class RoleChecker:
    """
    Class-based dependency for role checking.

    Usage:
        staff_only = RoleChecker([UserRole.ADMIN, UserRole.MODERATOR])

        @router.get("/")
        async def endpoint(principal: Principal = Depends(staff_only)):
            ...
    """

    def __init__(self, allowed_roles: list[UserRole]):
        self.allowed_roles = frozenset(UserRole(r) for r in allowed_roles)

    def is_allowed(self, role: UserRole) -> bool:
        return role in self.allowed_roles

    async def __call__(
        self,
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        if not self.is_allowed(principal.role):
            raise ForbiddenError(f"Role '{principal.role.value}' not authorized for this action")
        return principal


require_admin = require_role(UserRole.ADMIN)

"""
API Router configuration.

Aggregates the endpoint routers with their tags and prefixes. The result is
mounted at the application root.
"""

from fastapi import APIRouter

from authcore.api.v1.endpoints import admin, auth, users
from authcore.schemas.common import ERROR_RESPONSES

api_router = APIRouter(responses=ERROR_RESPONSES)

# Authentication (register/login/refresh are public)
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["authentication"]
)

# Own profile (any valid token)
api_router.include_router(
    users.router,
    prefix="/user",
    tags=["users"]
)

# Admin only
api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["admin"]
)

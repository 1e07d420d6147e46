"""
Pydantic schemas for API request/response bodies.

These schemas provide:
- Type parsing of request bodies
- Explicit per-request field validation (`validation_errors()`)
- Output serialization and OpenAPI documentation
"""

from authcore.schemas.auth import (
    AdminRegisterRequest,
    ChangePasswordRequest,
    DashboardResponse,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from authcore.schemas.common import (
    ErrorResponse,
    HealthResponse,
    MessageResponse,
)
from authcore.schemas.user import (
    UserResponse,
    UserUpdateRequest,
)

__all__ = [
    # Auth
    "AdminRegisterRequest",
    "ChangePasswordRequest",
    "DashboardResponse",
    "ForgotPasswordRequest",
    "ForgotPasswordResponse",
    "LoginRequest",
    "LoginResponse",
    "RefreshRequest",
    "RegisterRequest",
    "ResetPasswordRequest",
    # User
    "UserResponse",
    "UserUpdateRequest",
    # Common
    "ErrorResponse",
    "HealthResponse",
    "MessageResponse",
]

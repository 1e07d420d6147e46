"""
Admin endpoints.

Every route here requires the `admin` role.
"""

from fastapi import APIRouter, Depends, status

from authcore.auth.dependencies import Principal, get_auth_service, require_admin
from authcore.models.user import UserRole
from authcore.schemas.auth import AdminRegisterRequest, DashboardResponse
from authcore.schemas.common import ensure_valid
from authcore.schemas.user import UserResponse
from authcore.services.auth_service import AuthService

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def admin_register(
    body: AdminRegisterRequest,
    principal: Principal = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
):
    """Create a user with any role."""
    ensure_valid(body)
    user = await service.admin_register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role=UserRole(body.role),
    )
    return UserResponse.from_entity(user)


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(principal: Principal = Depends(require_admin)):
    return DashboardResponse(
        message="Welcome to the admin dashboard",
        user_id=principal.user_id,
        role=principal.role,
    )

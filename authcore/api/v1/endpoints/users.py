"""
Profile endpoints for the authenticated user.
"""

from fastapi import APIRouter, Depends

from authcore.auth.dependencies import Principal, get_auth_service, get_current_principal
from authcore.schemas.common import ensure_valid
from authcore.schemas.user import UserResponse, UserUpdateRequest
from authcore.services.auth_service import AuthService

router = APIRouter()


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
):
    """Get the caller's own profile."""
    user = await service.get_profile(principal.user_id)
    return UserResponse.from_entity(user)


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    body: UserUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
):
    ensure_valid(body)
    user = await service.update_profile(
        principal.user_id,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return UserResponse.from_entity(user)

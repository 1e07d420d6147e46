"""
Authentication endpoints.

Provides:
- Register (self-service, role=user)
- Login (email/password -> access token + refresh token)
- Token refresh and logout
- Password change, forgot and reset
"""

from fastapi import APIRouter, Depends, Request, status

from authcore.auth.dependencies import Principal, get_auth_service, get_current_principal
from authcore.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from authcore.schemas.common import MessageResponse, ensure_valid
from authcore.schemas.user import UserResponse
from authcore.services.auth_service import AuthService, LoginResult

router = APIRouter()


def _login_response(result: LoginResult) -> LoginResponse:
    return LoginResponse(
        token=result.token,
        refresh_token=result.refresh_token,
        token_type=result.token_type,
        expires_in=result.expires_in,
        user=UserResponse.from_entity(result.user),
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Create a new account with the `user` role."""
    ensure_valid(body)
    user = await service.register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return UserResponse.from_entity(user)


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Authenticate with email and password.

    Unknown email and wrong password get the same 401 response.
    """
    ensure_valid(body)
    result = await service.login(body.email, body.password)
    return _login_response(result)


@router.post("/refresh", response_model=LoginResponse)
async def refresh_token(
    body: RefreshRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Trade a refresh token for a new access token. The refresh token is rotated."""
    ensure_valid(body)
    result = await service.refresh(body.refresh_token)
    return _login_response(result)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
):
    """Revoke the caller's refresh token."""
    await service.logout(principal.user_id)
    return MessageResponse(message="Successfully logged out")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
):
    """Change the caller's password. Requires the current password."""
    ensure_valid(body)
    await service.change_password(principal.user_id, body.old_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post(
    "/forgot-password",
    response_model=ForgotPasswordResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_202_ACCEPTED,
)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Start a password reset.

    The answer is the same whether or not the account exists. No email is
    sent; outside production the reset token is returned in the body.
    """
    ensure_valid(body)
    token = await service.forgot_password(body.email)

    response = ForgotPasswordResponse(
        message="If the account exists, password reset instructions have been issued",
    )
    if token and not request.app.state.settings.is_production:
        response.reset_token = token
    return response


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Set a new password with a reset token. The token works once."""
    ensure_valid(body)
    await service.reset_password(body.token, body.new_password)
    return MessageResponse(message="Password has been reset")

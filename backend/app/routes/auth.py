"""
DarkMode Backend — Auth Route Handlers
========================================

What:  Registration, login, token rotation, logout and password/email flows
       under /api/auth.
How:   Handlers stay thin. Validation is in app.schemas.auth, business rules
       in AuthService and TokenService; failures surface as AppError
       subclasses and are rendered by the global handler.

Token lifecycle:
    register / login   → access token (15 min) + refresh token (7 days)
    POST /refresh       → old refresh token deleted, a new pair issued
    POST /logout        → the given refresh token deleted
    POST /logout-all    → every refresh token of the account deleted
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import client_ip, get_current_account
from app.models.account import Account
from app.schemas.auth import (
    AccountSummary,
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    VerifyEmailRequest,
)
from app.schemas.common import ErrorResponse, MessageResponse
from app.services.auth_service import auth_service
from app.services.token_service import TokenPair, token_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _auth_response(account: Account, pair: TokenPair) -> AuthResponse:
    return AuthResponse(
        user=AccountSummary.model_validate(account),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
    )


@router.post(
    "/register",
    status_code=201,
    response_model=AuthResponse,
    responses={
        400: {"description": "Invalid email or password too short", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Create an account",
)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    """Create a free-tier account and return a fresh token pair."""
    account, pair = await auth_service.register(
        db,
        email=body.email,
        password=body.password,
        name=body.name,
        device_info=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    return _auth_response(account, pair)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Exchange credentials for tokens",
)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    account, pair = await auth_service.login(
        db,
        email=body.email,
        password=body.password,
        device_info=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    return _auth_response(account, pair)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    responses={401: {"description": "Invalid or expired refresh token", "model": ErrorResponse}},
    summary="Rotate a refresh token",
)
async def refresh(
    body: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    """
    Single-use rotation: the presented token is deleted and a new pair is
    returned. Presenting the same token again yields 401.
    """
    pair = await token_service.refresh(
        db,
        body.refresh_token,
        device_info=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
    )


@router.post("/logout", response_model=MessageResponse, summary="Revoke one refresh token")
async def logout(
    body: LogoutRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    if body.refresh_token:
        await token_service.revoke(db, body.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse, summary="Revoke every refresh token")
async def logout_all(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await token_service.revoke_all(db, account.id)
    return MessageResponse(message="Logged out from all devices")


@router.post("/forgot-password", response_model=MessageResponse, summary="Request a reset email")
async def forgot_password(
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    # Same answer whether or not the email exists
    await auth_service.forgot_password(db, body.email)
    return MessageResponse(message="If an account exists, a reset email has been sent")


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={400: {"description": "Invalid or expired reset token", "model": ErrorResponse}},
    summary="Set a new password with a reset token",
)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.reset_password(db, body.token, body.password)
    return MessageResponse(message="Password reset successfully")


@router.post(
    "/change-password",
    response_model=MessageResponse,
    responses={401: {"description": "Current password is incorrect", "model": ErrorResponse}},
    summary="Change password while logged in",
)
async def change_password(
    body: ChangePasswordRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.change_password(db, account, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/verify-email", response_model=MessageResponse, summary="Confirm an email address")
async def verify_email(
    body: VerifyEmailRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.verify_email(db, body.token)
    return MessageResponse(message="Email verified successfully")


@router.post("/resend-verification", response_model=MessageResponse, summary="Send a new verification email")
async def resend_verification(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.resend_verification(db, account)
    return MessageResponse(message="Verification email sent")


@router.get("/me", response_model=AccountSummary, summary="The authenticated account")
async def me(account: Account = Depends(get_current_account)) -> AccountSummary:
    return AccountSummary.model_validate(account)

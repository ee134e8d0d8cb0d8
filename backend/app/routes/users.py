"""
DarkMode Backend — User Route Handlers
========================================

What:  Profile, usage summary, API keys and account deletion under /api/users.

API keys are shown in full once, in the creation response. Listing returns
them masked (first 8 and last 4 characters).
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_account
from app.models.account import Account
from app.models.token import ApiKey
from app.schemas.common import ErrorResponse, MessageResponse
from app.schemas.user import (
    ApiKeyCreateRequest,
    ApiKeyListResponse,
    ApiKeyResponse,
    DeleteAccountRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    UsageResponse,
)
from app.services.usage_service import usage_service
from app.services.user_service import mask_api_key, user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


def _api_key_response(api_key: ApiKey, masked: bool = True) -> ApiKeyResponse:
    return ApiKeyResponse(
        id=api_key.id,
        name=api_key.name,
        key=mask_api_key(api_key.key) if masked else api_key.key,
        is_active=api_key.is_active,
        last_used_at=api_key.last_used_at,
        expires_at=api_key.expires_at,
        created_at=api_key.created_at,
    )


@router.get("/profile", response_model=ProfileResponse, summary="Get profile")
async def get_profile(account: Account = Depends(get_current_account)) -> ProfileResponse:
    return ProfileResponse.model_validate(account)


@router.patch("/profile", response_model=ProfileResponse, summary="Update profile")
async def update_profile(
    body: ProfileUpdateRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ProfileResponse:
    account = await user_service.update_profile(
        db,
        account,
        name=body.name,
        avatar_url=body.avatar_url,
        preferred_language=body.preferred_language,
        preferred_profile=body.preferred_profile,
    )
    return ProfileResponse.model_validate(account)


@router.get("/usage", response_model=UsageResponse, summary="Minutes, documents and today's sessions")
async def get_usage(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> UsageResponse:
    return UsageResponse(**await usage_service.usage_summary(db, account))


@router.get("/api-keys", response_model=ApiKeyListResponse, summary="List API keys (masked)")
async def list_api_keys(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiKeyListResponse:
    keys = await user_service.list_api_keys(db, account.id)
    return ApiKeyListResponse(api_keys=[_api_key_response(k) for k in keys])


@router.post("/api-keys", status_code=201, response_model=ApiKeyResponse, summary="Create an API key")
async def create_api_key(
    body: ApiKeyCreateRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> ApiKeyResponse:
    api_key = await user_service.create_api_key(db, account.id, body.name, body.expires_in_days)
    return _api_key_response(api_key, masked=False)


@router.delete(
    "/api-keys/{key_id}",
    response_model=MessageResponse,
    responses={404: {"description": "API key not found", "model": ErrorResponse}},
    summary="Revoke an API key",
)
async def revoke_api_key(
    key_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await user_service.revoke_api_key(db, account.id, key_id)
    return MessageResponse(message="API key revoked")


@router.delete(
    "/account",
    response_model=MessageResponse,
    responses={401: {"description": "Invalid password", "model": ErrorResponse}},
    summary="Delete the account and everything it owns",
)
async def delete_account(
    body: DeleteAccountRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    """Requires the current password. Stored document files are removed too."""
    await user_service.delete_account(db, account, body.password)
    return MessageResponse(message="Account deleted successfully")

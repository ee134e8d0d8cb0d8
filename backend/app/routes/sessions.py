"""
DarkMode Backend — Session Route Handlers
===========================================

What:  Interview session CRUD under /api/sessions.
Who:   The desktop client. It creates a session when the overlay opens and
       ends it when the interview is over.

Billing-relevant transitions go through UsageService:
    POST /               creation is gated by plan limits (429 when refused)
    POST /{id}/end       completion credits ceil(duration / 60) minutes
Everything else is plain CRUD through SessionService.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_account
from app.models.account import Account
from app.schemas.common import ErrorResponse, MessageResponse, Pagination
from app.schemas.session import (
    SessionCreateRequest,
    SessionEndResponse,
    SessionListResponse,
    SessionResponse,
    SessionUpdateRequest,
)
from app.services.session_service import session_service
from app.services.usage_service import usage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["Sessions"])


@router.get("", response_model=SessionListResponse, summary="List sessions, newest first")
async def list_sessions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    profile: Optional[str] = Query(default=None, description="Filter by session profile"),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> SessionListResponse:
    sessions, total = await session_service.list_sessions(db, account.id, page, limit, profile)
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        pagination=Pagination.build(page, limit, total),
    )


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    responses={404: {"description": "Session not found", "model": ErrorResponse}},
    summary="Get one session",
)
async def get_session(
    session_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> SessionResponse:
    return SessionResponse.model_validate(await session_service.get_session(db, account.id, session_id))


@router.post(
    "",
    status_code=201,
    response_model=SessionResponse,
    responses={429: {"description": "Daily session or minute limit reached", "model": ErrorResponse}},
    summary="Start a session",
)
async def create_session(
    body: SessionCreateRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> SessionResponse:
    session = await usage_service.create_session(db, account.id, body.profile, body.language)
    return SessionResponse.model_validate(session)


@router.patch(
    "/{session_id}",
    response_model=SessionResponse,
    responses={404: {"description": "Session not found", "model": ErrorResponse}},
    summary="Update transcript and counters",
)
async def update_session(
    session_id: UUID,
    body: SessionUpdateRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> SessionResponse:
    session = await session_service.update_session(
        db,
        account.id,
        session_id,
        messages=body.messages,
        questions_count=body.questions_count,
        responses_count=body.responses_count,
        screenshots_count=body.screenshots_count,
    )
    return SessionResponse.model_validate(session)


@router.post(
    "/{session_id}/end",
    response_model=SessionEndResponse,
    responses={404: {"description": "Active session not found", "model": ErrorResponse}},
    summary="Complete a session and credit its minutes",
)
async def end_session(
    session_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> SessionEndResponse:
    """
    Ending a session twice returns 404 the second time; minutes are only
    credited once.
    """
    completion = await usage_service.complete_session(db, account.id, session_id)
    return SessionEndResponse(
        session=SessionResponse.model_validate(completion.session),
        duration_minutes=completion.duration_minutes,
    )


@router.delete(
    "/{session_id}",
    response_model=MessageResponse,
    responses={404: {"description": "Session not found", "model": ErrorResponse}},
    summary="Delete a session",
)
async def delete_session(
    session_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await session_service.delete_session(db, account.id, session_id)
    return MessageResponse(message="Session deleted")

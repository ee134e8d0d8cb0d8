"""
DarkMode Backend — Analytics Route Handlers
=============================================

What:  Totals, period statistics, usage history, streak and leaderboard under
       /api/analytics.

GET /streak breaks a stale streak before returning it, so a plain read can
write. POST /streak/update marks today as active.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_account
from app.models.account import Account
from app.models.enums import UsageType
from app.schemas.analytics import (
    AnalyticsResponse,
    LeaderboardResponse,
    SessionStatsResponse,
    StreakResponse,
    UsageLogListResponse,
    UsageLogResponse,
)
from app.schemas.common import Pagination
from app.services.analytics_service import StreakInfo, analytics_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


def _streak_response(info: StreakInfo) -> StreakResponse:
    return StreakResponse(
        current_streak=info.current_streak,
        longest_streak=info.longest_streak,
        last_active_date=info.last_active_date,
    )


@router.get("", response_model=AnalyticsResponse, summary="Lifetime totals and streak")
async def get_analytics(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> AnalyticsResponse:
    await analytics_service.check_streak(db, account.id)
    analytics = await analytics_service.get_or_create(db, account.id)
    return AnalyticsResponse.model_validate(analytics)


@router.get("/sessions", response_model=SessionStatsResponse, summary="Session statistics for a period")
async def get_session_stats(
    period: str = Query(default="30d", description="7d, 30d, 90d or year. Anything else means 30d."),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> SessionStatsResponse:
    return SessionStatsResponse(**await analytics_service.session_stats(db, account.id, period))


@router.get("/usage", response_model=UsageLogListResponse, summary="Usage history, newest first")
async def get_usage_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    type: Optional[UsageType] = Query(default=None, description="Filter by usage type"),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> UsageLogListResponse:
    logs, total = await analytics_service.list_usage_logs(db, account.id, page, limit, type)
    return UsageLogListResponse(
        logs=[UsageLogResponse.model_validate(log) for log in logs],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/streak", response_model=StreakResponse, summary="Current streak")
async def get_streak(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> StreakResponse:
    return _streak_response(await analytics_service.check_streak(db, account.id))


@router.post("/streak/update", response_model=StreakResponse, summary="Mark today as active")
async def update_streak(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> StreakResponse:
    return _streak_response(await analytics_service.update_streak(db, account.id))


@router.get("/leaderboard", response_model=LeaderboardResponse, summary="Top accounts by sessions")
async def get_leaderboard(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> LeaderboardResponse:
    return LeaderboardResponse(leaderboard=await analytics_service.leaderboard(db))

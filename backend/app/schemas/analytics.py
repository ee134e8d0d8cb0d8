"""DarkMode Backend — Analytics schemas."""

import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.models.enums import UsageType
from app.schemas.common import Pagination


class AnalyticsResponse(BaseModel):
    total_sessions: int
    total_duration: int
    total_questions: int
    total_responses: int
    current_streak: int
    longest_streak: int
    last_active_date: Optional[date] = None

    model_config = {"from_attributes": True}


class DayStats(BaseModel):
    sessions: int
    duration: int
    questions: int


class SessionStatsResponse(BaseModel):
    period: str
    total_sessions: int
    total_duration: int
    total_questions: int
    daily_stats: Dict[str, DayStats]
    profile_stats: Dict[str, int]


class UsageLogResponse(BaseModel):
    id: uuid.UUID
    type: UsageType
    minutes: int
    session_id: Optional[uuid.UUID] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UsageLogListResponse(BaseModel):
    logs: List[UsageLogResponse]
    pagination: Pagination


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_active_date: Optional[date] = None


class LeaderboardEntry(BaseModel):
    rank: int
    name: str
    total_sessions: int
    total_hours: int
    longest_streak: int


class LeaderboardResponse(BaseModel):
    leaderboard: List[LeaderboardEntry]

"""DarkMode Backend — Interview session schemas."""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from app.models.enums import SessionStatus
from app.schemas.common import Pagination


class SessionCreateRequest(BaseModel):
    profile: Optional[str] = Field(default=None, max_length=32, description="Defaults to 'interview'")
    language: Optional[str] = Field(default=None, max_length=16, description="Defaults to 'en-US'")


class SessionUpdateRequest(BaseModel):
    messages: Optional[List[Any]] = None
    questions_count: Optional[int] = Field(default=None, ge=0)
    responses_count: Optional[int] = Field(default=None, ge=0)
    screenshots_count: Optional[int] = Field(default=None, ge=0)


class SessionResponse(BaseModel):
    id: uuid.UUID
    profile: str
    language: str
    status: SessionStatus
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: int
    questions_count: int
    responses_count: int
    screenshots_count: int
    messages: List[Any] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class SessionListResponse(BaseModel):
    sessions: List[SessionResponse]
    pagination: Pagination


class SessionEndResponse(BaseModel):
    session: SessionResponse
    duration_minutes: int = Field(description="Minutes credited to the account (rounded up)")

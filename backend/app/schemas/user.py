"""DarkMode Backend — User profile, usage and API key schemas."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.enums import SubscriptionStatus


class ProfileResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    email_verified: bool
    preferred_language: str
    preferred_profile: str
    subscription_status: SubscriptionStatus
    subscription_plan: Optional[str] = None
    subscription_end_date: Optional[datetime] = None
    created_at: datetime
    last_login_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    avatar_url: Optional[str] = Field(default=None, max_length=1024)
    preferred_language: Optional[str] = Field(default=None, max_length=16)
    preferred_profile: Optional[str] = Field(default=None, max_length=32)


class UsageResponse(BaseModel):
    minutes_used: int
    minutes_limit: int
    minutes_remaining: int = Field(description="-1 when the limit is unlimited")
    last_reset: datetime
    documents_count: int
    today_sessions_count: int


class ApiKeyResponse(BaseModel):
    id: uuid.UUID
    name: str
    key: str = Field(description="Masked except on creation")
    is_active: bool
    last_used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime


class ApiKeyListResponse(BaseModel):
    api_keys: List[ApiKeyResponse]


class ApiKeyCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=3650)


class DeleteAccountRequest(BaseModel):
    password: str = Field(min_length=1)

"""DarkMode Backend — Subscription and webhook schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from app.models.enums import SubscriptionStatus


class SubscriptionUsage(BaseModel):
    minutes_used: int
    minutes_limit: int


class SubscriptionStatusResponse(BaseModel):
    status: SubscriptionStatus
    plan: Optional[str] = None
    end_date: Optional[datetime] = None
    usage: SubscriptionUsage


class PlanResponse(BaseModel):
    slug: str
    name: str
    description: str
    minutes_limit: int = Field(description="-1 = unlimited")
    max_documents: int = Field(description="-1 = unlimited")
    max_sessions_per_day: int = Field(description="-1 = unlimited")
    price_monthly_cents: int
    price_yearly_cents: int
    features: List[str]


class PlanListResponse(BaseModel):
    plans: List[PlanResponse]


class CheckoutRequest(BaseModel):
    price_id: Optional[str] = Field(default=None, description="Overrides the configured price")
    billing_period: Literal["monthly", "yearly"] = "monthly"


class CheckoutResponse(BaseModel):
    session_id: str
    url: Optional[str] = None


class PortalResponse(BaseModel):
    url: str


class WebhookAck(BaseModel):
    received: bool = True
    duplicate: bool = False

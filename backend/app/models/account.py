"""
DarkMode Backend — Account SQLAlchemy Model
=============================================

What:  ORM model for the `accounts` table: identity, subscription and usage.
Why:   The account row is the leaf data owner. Every other table hangs off it
       and is removed with it (ORM cascade plus ON DELETE CASCADE).
Who:   Written by the auth, usage and webhook services.

Column groups:
    identity       email (lowercased, unique), password_hash, name, avatar
    verification   email_verified, email_verify_token, password reset token
    subscription   status, plan, subscription_id, end date, stripe customer
    usage          minutes_used, minutes_limit, last_reset

Invariant:
    minutes_used only grows within a billing period. The single reset path is
    a processed `invoice.payment_succeeded` webhook (services/webhook_service.py).
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow
from app.models.enums import SubscriptionStatus

if TYPE_CHECKING:
    from app.models.analytics import UserAnalytics
    from app.models.document import Document
    from app.models.session import Session
    from app.models.token import ApiKey, RefreshToken
    from app.models.usage_log import UsageLog


class Account(Base):
    """A tenant: one user with one subscription and one usage counter."""

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # ── Identity ──────────────────────────────────────────────────────────
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    avatar_url: Mapped[Optional[str]] = mapped_column(String(1024))

    # ── Verification & Recovery ───────────────────────────────────────────
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_verify_token: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    password_reset_token: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    password_reset_expires: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # ── Subscription ──────────────────────────────────────────────────────
    subscription_status: Mapped[SubscriptionStatus] = mapped_column(
        SAEnum(SubscriptionStatus, native_enum=False, length=16),
        default=SubscriptionStatus.FREE,
        nullable=False,
    )
    subscription_plan: Mapped[Optional[str]] = mapped_column(String(32))
    subscription_id: Mapped[Optional[str]] = mapped_column(String(255))
    subscription_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, index=True)

    # ── Usage ─────────────────────────────────────────────────────────────
    minutes_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # -1 = unlimited; the webhook handler only ever writes 600 or 60
    minutes_limit: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    last_reset: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # ── Preferences ───────────────────────────────────────────────────────
    preferred_language: Mapped[str] = mapped_column(String(16), default="en-US", nullable=False)
    preferred_profile: Mapped[str] = mapped_column(String(32), default="interview", nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # ── Owned rows ────────────────────────────────────────────────────────
    sessions: Mapped[List["Session"]] = relationship(
        back_populates="account", cascade="all, delete-orphan", passive_deletes=True
    )
    documents: Mapped[List["Document"]] = relationship(
        back_populates="account", cascade="all, delete-orphan", passive_deletes=True
    )
    usage_logs: Mapped[List["UsageLog"]] = relationship(
        back_populates="account", cascade="all, delete-orphan", passive_deletes=True
    )
    refresh_tokens: Mapped[List["RefreshToken"]] = relationship(
        back_populates="account", cascade="all, delete-orphan", passive_deletes=True
    )
    api_keys: Mapped[List["ApiKey"]] = relationship(
        back_populates="account", cascade="all, delete-orphan", passive_deletes=True
    )
    analytics: Mapped[Optional["UserAnalytics"]] = relationship(
        back_populates="account", cascade="all, delete-orphan", passive_deletes=True, uselist=False
    )

    def __repr__(self) -> str:
        return (
            f"<Account(id={self.id}, email='{self.email}', "
            f"status='{self.subscription_status}', used={self.minutes_used}/{self.minutes_limit})>"
        )

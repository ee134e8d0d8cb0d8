"""
DarkMode Backend — UserAnalytics SQLAlchemy Model
===================================================

What:  One row per account: running totals plus streak state.
Who:   Mutated only by session completion (UsageService) and streak
       updates (AnalyticsService).

Streak state:
    current_streak    consecutive server-local calendar days with a completed session
    longest_streak    max(current_streak) ever observed
    last_active_date  calendar DATE of the last streak update (not a timestamp)
"""

import uuid
from datetime import date
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, ForeignKey, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.account import Account


class UserAnalytics(Base):
    __tablename__ = "user_analytics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    # ── Running totals ────────────────────────────────────────────────────
    total_sessions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_duration: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # seconds
    total_questions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_responses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # ── Streak ────────────────────────────────────────────────────────────
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_active_date: Mapped[Optional[date]] = mapped_column(Date)

    account: Mapped["Account"] = relationship(back_populates="analytics")

    def __repr__(self) -> str:
        return (
            f"<UserAnalytics(account={self.account_id}, sessions={self.total_sessions}, "
            f"streak={self.current_streak}/{self.longest_streak})>"
        )

"""
DarkMode Backend — Session SQLAlchemy Model
=============================================

What:  An interview/meeting session (not an auth session).
How:   Created ACTIVE by UsageService.create_session; moves to COMPLETED
       exactly once in UsageService.complete_session, which also derives
       duration_seconds and credits the account's minutes.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, List, Optional

from sqlalchemy import JSON, DateTime, Enum as SAEnum, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow
from app.models.enums import SessionStatus

if TYPE_CHECKING:
    from app.models.account import Account


class Session(Base):
    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )

    profile: Mapped[str] = mapped_column(String(32), default="interview", nullable=False)
    language: Mapped[str] = mapped_column(String(16), default="en-US", nullable=False)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    duration_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # ── Counters (reported by the client while the session runs) ──────────
    questions_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    responses_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    screenshots_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    messages: Mapped[List[Any]] = mapped_column(JSON, default=list, nullable=False)

    status: Mapped[SessionStatus] = mapped_column(
        SAEnum(SessionStatus, native_enum=False, length=16),
        default=SessionStatus.ACTIVE,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    account: Mapped["Account"] = relationship(back_populates="sessions")

    # Daily cap query: WHERE account_id = ? AND created_at >= local midnight
    __table_args__ = (
        Index("idx_sessions_account_created", "account_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Session(id={self.id}, status='{self.status}', duration={self.duration_seconds}s)>"

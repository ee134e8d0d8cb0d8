"""
DarkMode Backend — UsageLog SQLAlchemy Model
==============================================

What:  Append-only record of one billable event. Rows are inserted, never
       updated; the account's running total lives in Account.minutes_used.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Enum as SAEnum, ForeignKey, Index, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow
from app.models.enums import UsageType

if TYPE_CHECKING:
    from app.models.account import Account


class UsageLog(Base):
    __tablename__ = "usage_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[UsageType] = mapped_column(SAEnum(UsageType, native_enum=False, length=32), nullable=False)
    minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Plain reference: the log outlives a deleted session
    session_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    account: Mapped["Account"] = relationship(back_populates="usage_logs")

    __table_args__ = (
        Index("idx_usage_logs_account_created", "account_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<UsageLog(type='{self.type}', minutes={self.minutes}, session={self.session_id})>"

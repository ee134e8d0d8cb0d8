"""
DarkMode Backend — WebhookEvent SQLAlchemy Model
==================================================

What:  Ledger of verified billing events, one row per external event id.
Why:   Stripe delivers at-least-once. The unique `event_id` column is what
       makes re-deliveries harmless: a row that is already `processed` is
       acknowledged without touching any account.

Lifecycle:
    claimed   → processed=False, claimed_at stamped, committed before effects run
    applied   → processed=True, processed_at stamped, claim cleared (same commit as the effects)
    failed    → processed=False, error recorded, claim cleared; the next delivery retries it
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    source: Mapped[str] = mapped_column(String(32), default="stripe", nullable=False)
    event_id: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    event_type: Mapped[str] = mapped_column(String(128), nullable=False)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    error: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<WebhookEvent(event_id='{self.event_id}', type='{self.event_type}', "
            f"processed={self.processed})>"
        )

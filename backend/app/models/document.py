"""
DarkMode Backend — Document SQLAlchemy Model
==============================================

What:  Metadata for an uploaded document. The bytes live in the configured
       storage provider under `storage_path`; text and JSON uploads also keep
       their decoded content in `text_content`.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow
from app.models.enums import DocumentType

if TYPE_CHECKING:
    from app.models.account import Account


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[DocumentType] = mapped_column(
        SAEnum(DocumentType, native_enum=False, length=32),
        default=DocumentType.GENERAL,
        nullable=False,
    )
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    # Provider-relative key, e.g. documents/1718000000000-resume.pdf
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)

    text_content: Mapped[Optional[str]] = mapped_column(Text)
    text_length: Mapped[Optional[int]] = mapped_column(Integer)
    is_code: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    code_language: Mapped[Optional[str]] = mapped_column(String(32))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    account: Mapped["Account"] = relationship(back_populates="documents")

    __table_args__ = (
        Index("idx_documents_account_created", "account_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, name='{self.name}', type='{self.type}')>"

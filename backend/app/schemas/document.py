"""DarkMode Backend — Document schemas."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.enums import DocumentType


class DocumentSummary(BaseModel):
    id: uuid.UUID
    name: str
    type: DocumentType
    mime_type: str
    size: int
    text_length: Optional[int] = None
    is_code: bool
    code_language: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DocumentResponse(DocumentSummary):
    text_content: Optional[str] = None


class DocumentListResponse(BaseModel):
    documents: List[DocumentSummary]


class DocumentUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[DocumentType] = None


class DocumentContentResponse(BaseModel):
    """Text documents return `content`; binaries in object storage return `download_url`."""
    content: Optional[str] = None
    download_url: Optional[str] = None

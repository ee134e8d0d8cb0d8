"""
DarkMode Backend — Document Service
=====================================

What:  Upload, list, update, delete and read back documents.
How:   Validates the upload, asks UsageService whether the plan allows one
       more document, hands the bytes to the storage provider, then writes
       the metadata row. Text and JSON uploads keep their decoded content on
       the row so they can be returned without touching storage.

The declared Content-Type is trusted (after the allow-list check); the
bytes are never sniffed.
"""

import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import BadRequestError, NotFoundError
from app.models.document import Document
from app.models.enums import DocumentType
from app.services.storage import StorageProvider, storage
from app.services.usage_service import UsageService, usage_service

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/json",
    "text/plain",
    "text/markdown",
})
CODE_EXTENSIONS = frozenset({".js", ".ts", ".py", ".java", ".cpp", ".c", ".go", ".rs", ".rb", ".php"})


def is_allowed_mime_type(mime_type: str) -> bool:
    return mime_type in ALLOWED_MIME_TYPES or mime_type.startswith("text/")


def is_text_mime_type(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type == "application/json"


@dataclass(frozen=True)
class DocumentContent:
    """Exactly one of text / url / data is set."""

    name: str
    mime_type: str
    text: Optional[str] = None
    url: Optional[str] = None
    data: Optional[bytes] = None


class DocumentService:
    def __init__(self, provider: StorageProvider, usage: UsageService, max_file_size: int):
        self.storage = provider
        self.usage = usage
        self.max_file_size = max_file_size

    async def list_documents(
        self, db: AsyncSession, account_id: UUID, doc_type: Optional[DocumentType] = None
    ) -> List[Document]:
        query = select(Document).where(Document.account_id == account_id)
        if doc_type is not None:
            query = query.where(Document.type == doc_type)
        result = await db.scalars(query.order_by(Document.created_at.desc()))
        return list(result.all())

    async def get_document(self, db: AsyncSession, account_id: UUID, document_id: UUID) -> Document:
        document = await db.scalar(
            select(Document).where(Document.id == document_id, Document.account_id == account_id)
        )
        if document is None:
            raise NotFoundError("Document", str(document_id), message="Document not found")
        return document

    async def upload(
        self,
        db: AsyncSession,
        account_id: UUID,
        filename: str,
        content: bytes,
        mime_type: Optional[str],
        doc_type: DocumentType = DocumentType.GENERAL,
        name: Optional[str] = None,
    ) -> Document:
        """
        Raises:
            BadRequestError:    empty file, too large, or disallowed type
            LimitExceededError: the plan's document limit is reached
            FileStorageError:   the provider failed to store the bytes
        """
        mime_type = (mime_type or "application/octet-stream").split(";")[0].strip().lower()
        if not content:
            raise BadRequestError("No file uploaded", field="file")
        if len(content) > self.max_file_size:
            raise BadRequestError(
                f"File too large. Maximum size is {self.max_file_size // (1024 * 1024)}MB",
                field="file",
                context={"size": len(content), "max_size": self.max_file_size},
            )
        if not is_allowed_mime_type(mime_type):
            raise BadRequestError("Invalid file type", field="file", context={"mime_type": mime_type})

        account = await self.usage.lock_account(db, account_id)
        await self.usage.check_can_upload_document(db, account)

        text_content: Optional[str] = None
        if is_text_mime_type(mime_type):
            text_content = content.decode("utf-8", errors="replace")

        extension = PurePath(filename).suffix.lower()
        is_code = extension in CODE_EXTENSIONS

        key = await self.storage.upload(content, filename, mime_type)
        document = Document(
            account_id=account_id,
            name=name or filename,
            type=doc_type,
            mime_type=mime_type,
            size=len(content),
            storage_path=key,
            text_content=text_content,
            text_length=len(text_content) if text_content is not None else 0,
            is_code=is_code,
            code_language=extension[1:] if is_code else None,
        )
        db.add(document)
        await db.flush()
        logger.info("Document %s uploaded (%s, %d bytes)", document.id, mime_type, len(content))
        return document

    async def update_document(
        self,
        db: AsyncSession,
        account_id: UUID,
        document_id: UUID,
        name: Optional[str] = None,
        doc_type: Optional[DocumentType] = None,
    ) -> Document:
        document = await self.get_document(db, account_id, document_id)
        if name:
            document.name = name
        if doc_type is not None:
            document.type = doc_type
        await db.flush()
        return document

    async def delete_document(self, db: AsyncSession, account_id: UUID, document_id: UUID) -> None:
        document = await self.get_document(db, account_id, document_id)
        await self.storage.delete(document.storage_path)
        await db.delete(document)
        await db.flush()
        logger.info("Document %s deleted", document_id)

    async def get_content(self, db: AsyncSession, account_id: UUID, document_id: UUID) -> DocumentContent:
        document = await self.get_document(db, account_id, document_id)
        if document.text_content:
            return DocumentContent(name=document.name, mime_type=document.mime_type, text=document.text_content)

        url = await self.storage.get_url(document.storage_path)
        if url:
            return DocumentContent(name=document.name, mime_type=document.mime_type, url=url)

        data = await self.storage.download(document.storage_path)
        return DocumentContent(name=document.name, mime_type=document.mime_type, data=data)


document_service = DocumentService(provider=storage, usage=usage_service, max_file_size=settings.max_file_size)

"""
DarkMode Backend — Document Route Handlers
============================================

What:  Upload, list, rename and delete reference documents (resumes, job
       descriptions, code) under /api/documents.
How:   Multipart upload is read into memory (bounded by MAX_FILE_SIZE) and
       handed to DocumentService, which validates, checks the plan's
       document limit and stores the bytes through the storage provider.

GET /{id}/content returns the extracted text for text documents. For binary
documents it returns a presigned URL (S3) or streams the bytes (local disk).
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_account
from app.models.account import Account
from app.models.enums import DocumentType
from app.schemas.common import ErrorResponse, MessageResponse
from app.schemas.document import (
    DocumentContentResponse,
    DocumentListResponse,
    DocumentResponse,
    DocumentSummary,
    DocumentUpdateRequest,
)
from app.services.document_service import document_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["Documents"])


@router.get("", response_model=DocumentListResponse, summary="List documents")
async def list_documents(
    type: Optional[DocumentType] = Query(default=None, description="Filter by document type"),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> DocumentListResponse:
    documents = await document_service.list_documents(db, account.id, type)
    return DocumentListResponse(documents=[DocumentSummary.model_validate(d) for d in documents])


@router.get(
    "/{document_id}",
    response_model=DocumentResponse,
    responses={404: {"description": "Document not found", "model": ErrorResponse}},
    summary="Get one document including extracted text",
)
async def get_document(
    document_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> DocumentResponse:
    return DocumentResponse.model_validate(await document_service.get_document(db, account.id, document_id))


@router.post(
    "",
    status_code=201,
    response_model=DocumentResponse,
    responses={
        400: {"description": "Empty, too large or unsupported file", "model": ErrorResponse},
        429: {"description": "Document limit reached", "model": ErrorResponse},
        500: {"description": "Storage failure", "model": ErrorResponse},
    },
    summary="Upload a document",
)
async def upload_document(
    file: UploadFile = File(..., description="PDF, Word, text, markdown or source file"),
    type: DocumentType = Form(default=DocumentType.GENERAL),
    name: Optional[str] = Form(default=None),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> DocumentResponse:
    content = await file.read()
    logger.info("Received upload: filename=%s, size=%d bytes", file.filename or "unknown", len(content))
    try:
        document = await document_service.upload(
            db,
            account.id,
            filename=file.filename or "upload",
            content=content,
            mime_type=file.content_type,
            doc_type=type,
            name=name,
        )
    finally:
        await file.close()
    return DocumentResponse.model_validate(document)


@router.patch(
    "/{document_id}",
    response_model=DocumentResponse,
    responses={404: {"description": "Document not found", "model": ErrorResponse}},
    summary="Rename or retype a document",
)
async def update_document(
    document_id: UUID,
    body: DocumentUpdateRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> DocumentResponse:
    document = await document_service.update_document(db, account.id, document_id, body.name, body.type)
    return DocumentResponse.model_validate(document)


@router.delete(
    "/{document_id}",
    response_model=MessageResponse,
    responses={404: {"description": "Document not found", "model": ErrorResponse}},
    summary="Delete a document and its stored file",
)
async def delete_document(
    document_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await document_service.delete_document(db, account.id, document_id)
    return MessageResponse(message="Document deleted")


@router.get(
    "/{document_id}/content",
    response_model=DocumentContentResponse,
    responses={
        200: {"description": "Text content, a download URL, or the raw bytes"},
        404: {"description": "Document not found", "model": ErrorResponse},
    },
    summary="Fetch document content",
)
async def get_document_content(
    document_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
):
    content = await document_service.get_content(db, account.id, document_id)
    if content.text is not None:
        return DocumentContentResponse(content=content.text)
    if content.url is not None:
        return DocumentContentResponse(download_url=content.url)
    return Response(
        content=content.data,
        media_type=content.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{content.name}"'},
    )

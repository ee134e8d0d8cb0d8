"""
DarkMode Backend — Document Service Tests
===========================================

What:  Upload validation, text extraction, plan limits and content access.
How:   Real database, LocalStorageProvider in a temp directory.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from app.config import settings
from app.exceptions import BadRequestError, FileStorageError, LimitExceededError, NotFoundError
from app.models.document import Document
from app.models.enums import DocumentType
from app.services.analytics_service import AnalyticsService
from app.services.document_service import DocumentService, is_allowed_mime_type
from app.services.plans import PlanCatalog
from app.services.storage import LocalStorageProvider
from app.services.usage_service import UsageService

MAX_SIZE = 1024 * 1024


class TestMimeTypes:
    def test_allowed(self):
        for mime in ("application/pdf", "text/plain", "text/x-python", "application/json"):
            assert is_allowed_mime_type(mime)

    def test_rejected(self):
        for mime in ("image/png", "application/zip", "application/octet-stream"):
            assert not is_allowed_mime_type(mime)


class TestDocumentUpload:
    @pytest.fixture(autouse=True)
    def service(self, temp_storage):
        self.provider = LocalStorageProvider(temp_storage)
        usage = UsageService(plans=PlanCatalog.from_settings(settings), analytics=AnalyticsService())
        self.service = DocumentService(provider=self.provider, usage=usage, max_file_size=MAX_SIZE)

    @pytest.mark.asyncio
    async def test_text_upload_keeps_content(self, db_session, make_account):
        account = await make_account()

        document = await self.service.upload(
            db_session, account.id, "solution.py", b"print('hi')\n", "text/x-python",
            doc_type=DocumentType.CODE,
        )

        assert document.text_content == "print('hi')\n"
        assert document.text_length == 12
        assert document.is_code is True
        assert document.code_language == "py"
        assert document.name == "solution.py"
        assert await self.provider.download(document.storage_path) == b"print('hi')\n"

    @pytest.mark.asyncio
    async def test_pdf_upload_has_no_text(self, db_session, make_account):
        account = await make_account()

        document = await self.service.upload(
            db_session, account.id, "resume.pdf", b"%PDF-1.4 ...", "application/pdf",
            doc_type=DocumentType.RESUME, name="My Resume",
        )

        assert document.text_content is None
        assert document.is_code is False
        assert document.name == "My Resume"

        content = await self.service.get_content(db_session, account.id, document.id)
        assert content.text is None
        assert content.url is None
        assert content.data == b"%PDF-1.4 ..."

    @pytest.mark.asyncio
    async def test_rejects_empty_large_and_disallowed(self, db_session, make_account):
        account = await make_account()

        with pytest.raises(BadRequestError, match="No file uploaded"):
            await self.service.upload(db_session, account.id, "a.txt", b"", "text/plain")
        with pytest.raises(BadRequestError, match="File too large"):
            await self.service.upload(db_session, account.id, "a.txt", b"x" * (MAX_SIZE + 1), "text/plain")
        with pytest.raises(BadRequestError, match="Invalid file type"):
            await self.service.upload(db_session, account.id, "a.png", b"\x89PNG", "image/png")

    @pytest.mark.asyncio
    async def test_sixth_document_on_free_plan_is_refused(self, db_session, make_account):
        account = await make_account()
        for i in range(5):
            await self.service.upload(db_session, account.id, f"n{i}.txt", b"note", "text/plain")

        with pytest.raises(LimitExceededError):
            await self.service.upload(db_session, account.id, "n6.txt", b"note", "text/plain")

        count = await db_session.scalar(select(func.count()).select_from(Document))
        assert count == 5

    @pytest.mark.asyncio
    async def test_storage_not_written_when_limit_refuses(self, db_session, make_account):
        account = await make_account()
        provider = MagicMock()
        provider.upload = AsyncMock(return_value="documents/k")
        usage = MagicMock()
        usage.lock_account = AsyncMock(return_value=account)
        usage.check_can_upload_document = AsyncMock(side_effect=LimitExceededError(limit="documents"))
        service = DocumentService(provider=provider, usage=usage, max_file_size=MAX_SIZE)

        with pytest.raises(LimitExceededError):
            await service.upload(db_session, account.id, "a.txt", b"x", "text/plain")

        provider.upload.assert_not_awaited()


class TestDocumentAccess:
    @pytest.fixture(autouse=True)
    def service(self, temp_storage):
        self.provider = LocalStorageProvider(temp_storage)
        usage = UsageService(plans=PlanCatalog.from_settings(settings), analytics=AnalyticsService())
        self.service = DocumentService(provider=self.provider, usage=usage, max_file_size=MAX_SIZE)

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_read(self, db_session, make_account):
        owner = await make_account()
        other = await make_account()
        document = await self.service.upload(db_session, owner.id, "a.md", b"# hi", "text/markdown")

        with pytest.raises(NotFoundError):
            await self.service.get_document(db_session, other.id, document.id)
        with pytest.raises(NotFoundError):
            await self.service.delete_document(db_session, other.id, document.id)

    @pytest.mark.asyncio
    async def test_list_filter_update_delete(self, db_session, make_account):
        account = await make_account()
        resume = await self.service.upload(
            db_session, account.id, "cv.txt", b"cv", "text/plain", doc_type=DocumentType.RESUME
        )
        await self.service.upload(db_session, account.id, "jd.txt", b"jd", "text/plain")

        resumes = await self.service.list_documents(db_session, account.id, DocumentType.RESUME)
        assert [d.id for d in resumes] == [resume.id]

        updated = await self.service.update_document(
            db_session, account.id, resume.id, name="CV 2026", doc_type=DocumentType.NOTES
        )
        assert updated.name == "CV 2026"
        assert updated.type == DocumentType.NOTES

        await self.service.delete_document(db_session, account.id, resume.id)
        assert len(await self.service.list_documents(db_session, account.id)) == 1
        with pytest.raises(FileStorageError):
            await self.provider.download(resume.storage_path)

    @pytest.mark.asyncio
    async def test_text_content_served_from_row(self, db_session, make_account):
        account = await make_account()
        document = await self.service.upload(db_session, account.id, "q.json", b'{"a": 1}', "application/json")

        content = await self.service.get_content(db_session, account.id, document.id)

        assert content.text == '{"a": 1}'

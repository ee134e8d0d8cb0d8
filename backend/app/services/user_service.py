"""
DarkMode Backend — User Service
=================================

What:  Profile edits, API keys and account deletion.

API keys are `dk_` + 64 hex chars. The full value is returned once, at
creation; listings show a masked form.

Account deletion removes every owned row explicitly before the account
itself, so the result does not depend on the database enforcing
ON DELETE CASCADE (SQLite does not by default).
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import as_utc, utcnow
from app.exceptions import NotFoundError, UnauthorizedError
from app.models.account import Account
from app.models.analytics import UserAnalytics
from app.models.document import Document
from app.models.session import Session
from app.models.token import ApiKey, RefreshToken
from app.models.usage_log import UsageLog
from app.services.security import verify_password
from app.services.storage import StorageProvider, storage

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "dk_"
_OWNED_MODELS = (ApiKey, RefreshToken, UsageLog, Session, UserAnalytics, Document)


def mask_api_key(key: str) -> str:
    return f"{key[:8]}...{key[-4:]}"


class UserService:
    def __init__(self, provider: StorageProvider):
        self.storage = provider

    async def update_profile(
        self,
        db: AsyncSession,
        account: Account,
        name: Optional[str] = None,
        avatar_url: Optional[str] = None,
        preferred_language: Optional[str] = None,
        preferred_profile: Optional[str] = None,
    ) -> Account:
        if name is not None:
            account.name = name
        if avatar_url is not None:
            account.avatar_url = avatar_url
        if preferred_language is not None:
            account.preferred_language = preferred_language
        if preferred_profile is not None:
            account.preferred_profile = preferred_profile
        await db.flush()
        return account

    # ── API keys ──────────────────────────────────────────────────────────
    async def list_api_keys(self, db: AsyncSession, account_id: UUID) -> List[ApiKey]:
        keys = await db.scalars(
            select(ApiKey).where(ApiKey.account_id == account_id).order_by(ApiKey.created_at.desc())
        )
        return list(keys.all())

    async def create_api_key(
        self, db: AsyncSession, account_id: UUID, name: str, expires_in_days: Optional[int] = None
    ) -> ApiKey:
        now = utcnow()
        api_key = ApiKey(
            account_id=account_id,
            name=name,
            key=API_KEY_PREFIX + secrets.token_hex(32),
            expires_at=now + timedelta(days=expires_in_days) if expires_in_days else None,
            created_at=now,
        )
        db.add(api_key)
        await db.flush()
        return api_key

    async def revoke_api_key(self, db: AsyncSession, account_id: UUID, key_id: UUID) -> None:
        api_key = await db.scalar(select(ApiKey).where(ApiKey.id == key_id, ApiKey.account_id == account_id))
        if api_key is None:
            raise NotFoundError("API key", str(key_id), message="API key not found")
        await db.delete(api_key)
        await db.flush()

    async def authenticate_api_key(
        self, db: AsyncSession, key: str, now: Optional[datetime] = None
    ) -> Account:
        now = now or utcnow()
        api_key = await db.scalar(select(ApiKey).where(ApiKey.key == key))
        if api_key is None or not api_key.is_active:
            raise UnauthorizedError("Invalid API key")
        if api_key.expires_at is not None and as_utc(api_key.expires_at) < now:
            raise UnauthorizedError("API key expired")

        account = await db.get(Account, api_key.account_id)
        if account is None:
            raise UnauthorizedError("User not found")
        api_key.last_used_at = now
        return account

    # ── Deletion ──────────────────────────────────────────────────────────
    async def delete_account(self, db: AsyncSession, account: Account, password: str) -> None:
        if not await verify_password(account.password_hash, password):
            raise UnauthorizedError("Invalid password")

        storage_keys = (
            await db.scalars(select(Document.storage_path).where(Document.account_id == account.id))
        ).all()

        for model in _OWNED_MODELS:
            await db.execute(delete(model).where(model.account_id == account.id))
        await db.delete(account)
        await db.flush()

        for key in storage_keys:
            await self.storage.delete(key)
        logger.info("Deleted account %s and %d stored documents", account.id, len(storage_keys))


user_service = UserService(provider=storage)

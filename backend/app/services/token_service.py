"""
DarkMode Backend — Session/Token Issuer
=========================================

What:  Issues access + refresh credential pairs and rotates refresh tokens.
How:
    access   stateless signed token (AccessTokenSigner), short TTL
    refresh  secrets.token_hex(64), persisted with an expiry

Rotation:
    refresh(token)
      not found        → UnauthorizedError("Invalid refresh token")
      past expires_at  → row deleted, UnauthorizedError("Refresh token expired")
      valid            → row deleted, new pair issued

    Because the row is deleted on use, a refresh token works exactly once;
    replaying it hits the "not found" branch.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import as_utc, utcnow
from app.exceptions import UnauthorizedError
from app.models.account import Account
from app.models.token import RefreshToken
from app.services.security import AccessTokenSigner, access_token_signer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int


class TokenService:
    def __init__(self, signer: AccessTokenSigner, refresh_ttl: timedelta):
        self.signer = signer
        self.refresh_ttl = refresh_ttl

    async def issue(
        self,
        db: AsyncSession,
        account: Account,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TokenPair:
        now = now or utcnow()
        refresh_value = secrets.token_hex(64)
        db.add(RefreshToken(
            token=refresh_value,
            account_id=account.id,
            device_info=device_info[:512] if device_info else None,
            ip_address=ip_address,
            expires_at=now + self.refresh_ttl,
            created_at=now,
        ))
        await db.flush()
        return TokenPair(
            access_token=self.signer.issue(str(account.id), account.email),
            refresh_token=refresh_value,
            expires_in=self.signer.ttl_seconds,
        )

    async def refresh(
        self,
        db: AsyncSession,
        token: str,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TokenPair:
        now = now or utcnow()
        stored = await db.scalar(select(RefreshToken).where(RefreshToken.token == token))
        if stored is None:
            raise UnauthorizedError("Invalid refresh token")

        account_id = stored.account_id
        expired = as_utc(stored.expires_at) < now
        await db.delete(stored)
        await db.flush()

        if expired:
            # The deletion must survive the 401, so it is committed here
            await db.commit()
            raise UnauthorizedError("Refresh token expired")

        account = await db.get(Account, account_id)
        if account is None:
            raise UnauthorizedError("User not found")

        logger.debug("Rotated refresh token for account %s", account_id)
        return await self.issue(db, account, device_info=device_info, ip_address=ip_address, now=now)

    async def revoke(self, db: AsyncSession, token: str) -> None:
        await db.execute(delete(RefreshToken).where(RefreshToken.token == token))

    async def revoke_all(self, db: AsyncSession, account_id: UUID) -> int:
        result = await db.execute(delete(RefreshToken).where(RefreshToken.account_id == account_id))
        logger.info("Revoked %d refresh tokens for account %s", result.rowcount, account_id)
        return result.rowcount


token_service = TokenService(
    signer=access_token_signer,
    refresh_ttl=timedelta(days=settings.refresh_token_ttl_days),
)

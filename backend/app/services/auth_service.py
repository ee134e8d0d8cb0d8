"""
DarkMode Backend — Auth Service
=================================

What:  Registration, login, password recovery and email verification.
How:   Builds on TokenService for credential pairs and EmailService for the
       verification / reset links. Emails never raise; a failed send is
       logged and the request still succeeds.

Account enumeration:
    forgot_password() answers the same way whether or not the email exists.
    login() uses one message for "no such user" and "wrong password".
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import as_utc, utcnow
from app.exceptions import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from app.models.account import Account
from app.models.analytics import UserAnalytics
from app.services.email_service import EmailService, email_service
from app.services.security import hash_password, verify_password
from app.services.token_service import TokenPair, TokenService, token_service

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    def __init__(self, tokens: TokenService, mailer: EmailService, reset_ttl: timedelta):
        self.tokens = tokens
        self.mailer = mailer
        self.reset_ttl = reset_ttl

    async def get_account(self, db: AsyncSession, account_id: UUID) -> Account:
        account = await db.get(Account, account_id)
        if account is None:
            raise NotFoundError("User", str(account_id), message="User not found")
        return account

    async def find_by_email(self, db: AsyncSession, email: str) -> Optional[Account]:
        return await db.scalar(select(Account).where(Account.email == normalize_email(email)))

    # ── Registration & login ──────────────────────────────────────────────
    async def register(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        name: Optional[str] = None,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Tuple[Account, TokenPair]:
        email = normalize_email(email)
        if await self.find_by_email(db, email) is not None:
            raise ConflictError("Email already registered")

        account = Account(
            email=email,
            password_hash=await hash_password(password),
            name=name,
            email_verify_token=secrets.token_hex(32),
            minutes_limit=settings.free_minutes_limit,
        )
        db.add(account)
        try:
            await db.flush()
        except IntegrityError:
            # a concurrent registration won the unique email index
            await db.rollback()
            raise ConflictError("Email already registered")
        db.add(UserAnalytics(account_id=account.id))
        await db.flush()

        pair = await self.tokens.issue(db, account, device_info=device_info, ip_address=ip_address)
        await self.mailer.send_verification_email(account.email, account.email_verify_token)
        logger.info("Registered account %s", account.id)
        return account, pair

    async def login(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Tuple[Account, TokenPair]:
        account = await self.find_by_email(db, email)
        if account is None or not await verify_password(account.password_hash, password):
            raise UnauthorizedError("Invalid credentials")

        account.last_login_at = utcnow()
        pair = await self.tokens.issue(db, account, device_info=device_info, ip_address=ip_address)
        return account, pair

    # ── Password recovery ─────────────────────────────────────────────────
    async def forgot_password(self, db: AsyncSession, email: str, now: Optional[datetime] = None) -> None:
        account = await self.find_by_email(db, email)
        if account is None:
            logger.info("Password reset requested for unknown email")
            return

        account.password_reset_token = secrets.token_hex(32)
        account.password_reset_expires = (now or utcnow()) + self.reset_ttl
        await db.flush()
        await self.mailer.send_password_reset_email(account.email, account.password_reset_token)

    async def reset_password(
        self, db: AsyncSession, token: str, new_password: str, now: Optional[datetime] = None
    ) -> None:
        now = now or utcnow()
        account = await db.scalar(select(Account).where(Account.password_reset_token == token))
        if (
            account is None
            or account.password_reset_expires is None
            or as_utc(account.password_reset_expires) <= now
        ):
            raise BadRequestError("Invalid or expired reset token", field="token")

        account.password_hash = await hash_password(new_password)
        account.password_reset_token = None
        account.password_reset_expires = None
        await self.tokens.revoke_all(db, account.id)
        logger.info("Password reset for account %s; all sessions revoked", account.id)

    async def change_password(
        self, db: AsyncSession, account: Account, current_password: str, new_password: str
    ) -> None:
        if not await verify_password(account.password_hash, current_password):
            raise UnauthorizedError("Current password is incorrect")
        account.password_hash = await hash_password(new_password)
        await db.flush()

    # ── Email verification ────────────────────────────────────────────────
    async def verify_email(self, db: AsyncSession, token: str) -> Account:
        account = await db.scalar(select(Account).where(Account.email_verify_token == token))
        if account is None:
            raise BadRequestError("Invalid verification token", field="token")
        account.email_verified = True
        account.email_verify_token = None
        await db.flush()
        return account

    async def resend_verification(self, db: AsyncSession, account: Account) -> None:
        if account.email_verified:
            raise BadRequestError("Email already verified")
        account.email_verify_token = secrets.token_hex(32)
        await db.flush()
        await self.mailer.send_verification_email(account.email, account.email_verify_token)


auth_service = AuthService(
    tokens=token_service,
    mailer=email_service,
    reset_ttl=timedelta(seconds=settings.password_reset_ttl_seconds),
)

"""
DarkMode Backend — Authentication Tests
=========================================

What:  Access token signing, refresh token rotation and the password flows.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from itsdangerous import URLSafeTimedSerializer
from sqlalchemy import func, select

from app.exceptions import BadRequestError, ConflictError, UnauthorizedError
from app.models.token import RefreshToken
from app.services.auth_service import AuthService, normalize_email
from app.services.security import AccessTokenSigner, hash_password, verify_password
from app.services.token_service import TokenService


def build_token_service(ttl_days: int = 7) -> TokenService:
    return TokenService(
        signer=AccessTokenSigner("unit-test-secret", ttl_seconds=900),
        refresh_ttl=timedelta(days=ttl_days),
    )


def build_auth_service():
    mailer = MagicMock()
    mailer.send_verification_email = AsyncMock(return_value=True)
    mailer.send_password_reset_email = AsyncMock(return_value=True)
    return AuthService(tokens=build_token_service(), mailer=mailer, reset_ttl=timedelta(hours=1)), mailer


class TestPasswords:
    @pytest.mark.asyncio
    async def test_hash_and_verify(self):
        hashed = await hash_password("s3cret-password")
        assert hashed != "s3cret-password"
        assert await verify_password(hashed, "s3cret-password")
        assert not await verify_password(hashed, "wrong-password")


class TestAccessTokens:
    def test_round_trip_carries_account_id(self):
        signer = AccessTokenSigner("unit-test-secret", ttl_seconds=900)
        payload = signer.verify(signer.issue("abc", "a@example.com"))
        assert payload["uid"] == "abc"
        assert payload["email"] == "a@example.com"

    def test_wrong_key_is_invalid(self):
        token = AccessTokenSigner("other-secret-key", ttl_seconds=900).issue("abc", "a@example.com")
        with pytest.raises(UnauthorizedError, match="Invalid token"):
            AccessTokenSigner("unit-test-secret", ttl_seconds=900).verify(token)

    def test_expired_token(self):
        signer = AccessTokenSigner("unit-test-secret", ttl_seconds=900)
        token = signer.issue("abc", "a@example.com")
        with pytest.raises(UnauthorizedError, match="Token expired"):
            signer.verify(token, max_age=-1)

    def test_payload_without_uid_is_invalid(self):
        serializer = URLSafeTimedSerializer("unit-test-secret", salt="access-token")
        with pytest.raises(UnauthorizedError):
            AccessTokenSigner("unit-test-secret", ttl_seconds=900).verify(serializer.dumps({"x": 1}))


class TestRefreshRotation:
    @pytest.mark.asyncio
    async def test_refresh_rotates_and_old_token_dies(self, db_session, make_account):
        tokens = build_token_service()
        account = await make_account()
        pair = await tokens.issue(db_session, account)

        rotated = await tokens.refresh(db_session, pair.refresh_token)

        assert rotated.refresh_token != pair.refresh_token
        assert len(rotated.refresh_token) == 128
        with pytest.raises(UnauthorizedError, match="Invalid refresh token"):
            await tokens.refresh(db_session, pair.refresh_token)

    @pytest.mark.asyncio
    async def test_expired_refresh_token_is_deleted(self, db_session, make_account):
        tokens = build_token_service()
        account = await make_account()
        issued_at = datetime.now(timezone.utc) - timedelta(days=8)
        pair = await tokens.issue(db_session, account, now=issued_at)

        with pytest.raises(UnauthorizedError, match="Refresh token expired"):
            await tokens.refresh(db_session, pair.refresh_token)

        count = await db_session.scalar(select(func.count()).select_from(RefreshToken))
        assert count == 0

    @pytest.mark.asyncio
    async def test_revoke_all(self, db_session, make_account):
        tokens = build_token_service()
        account = await make_account()
        for _ in range(3):
            await tokens.issue(db_session, account, device_info="pytest")

        assert await tokens.revoke_all(db_session, account.id) == 3


class TestAuthFlows:
    def test_normalize_email(self):
        assert normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"

    @pytest.mark.asyncio
    async def test_register_then_duplicate(self, db_session):
        service, mailer = build_auth_service()

        account, pair = await service.register(db_session, "New@Example.com", "password123", name="New")

        assert account.email == "new@example.com"
        assert account.minutes_limit == 60
        assert pair.access_token
        mailer.send_verification_email.assert_awaited_once()
        with pytest.raises(ConflictError):
            await service.register(db_session, "new@example.com", "password123")

    @pytest.mark.asyncio
    async def test_register_race_on_unique_email_is_conflict(self, db_session, make_account):
        service, mailer = build_auth_service()
        existing = await make_account()

        # the pre-check misses a row committed by a concurrent request
        with patch.object(service, "find_by_email", AsyncMock(return_value=None)):
            with pytest.raises(ConflictError, match="Email already registered"):
                await service.register(db_session, existing.email, "password123")

        mailer.send_verification_email.assert_not_awaited()
        count = await db_session.scalar(select(func.count()).select_from(RefreshToken))
        assert count == 0

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, db_session, make_account):
        service, _ = build_auth_service()
        account = await make_account(password="right-password")

        with pytest.raises(UnauthorizedError, match="Invalid credentials"):
            await service.login(db_session, account.email, "wrong-password")
        with pytest.raises(UnauthorizedError, match="Invalid credentials"):
            await service.login(db_session, "nobody@example.com", "right-password")

        logged_in, _ = await service.login(db_session, account.email.upper(), "right-password")
        assert logged_in.id == account.id
        assert logged_in.last_login_at is not None

    @pytest.mark.asyncio
    async def test_forgot_password_unknown_email_is_silent(self, db_session):
        service, mailer = build_auth_service()
        await service.forgot_password(db_session, "ghost@example.com")
        mailer.send_password_reset_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reset_password_revokes_sessions(self, db_session, make_account):
        service, mailer = build_auth_service()
        account = await make_account(password="old-password")
        await service.tokens.issue(db_session, account)
        await service.forgot_password(db_session, account.email)
        token = mailer.send_password_reset_email.await_args.args[1]

        await service.reset_password(db_session, token, "brand-new-password")

        assert await verify_password(account.password_hash, "brand-new-password")
        count = await db_session.scalar(select(func.count()).select_from(RefreshToken))
        assert count == 0
        with pytest.raises(BadRequestError):
            await service.reset_password(db_session, token, "another-password")

    @pytest.mark.asyncio
    async def test_reset_token_expires(self, db_session, make_account):
        service, mailer = build_auth_service()
        account = await make_account()
        await service.forgot_password(db_session, account.email, now=datetime.now(timezone.utc) - timedelta(hours=2))
        token = mailer.send_password_reset_email.await_args.args[1]

        with pytest.raises(BadRequestError, match="Invalid or expired reset token"):
            await service.reset_password(db_session, token, "brand-new-password")

    @pytest.mark.asyncio
    async def test_verify_email(self, db_session):
        service, mailer = build_auth_service()
        account, _ = await service.register(db_session, "verify@example.com", "password123")
        token = mailer.send_verification_email.await_args.args[1]

        verified = await service.verify_email(db_session, token)

        assert verified.email_verified is True
        with pytest.raises(BadRequestError):
            await service.resend_verification(db_session, verified)

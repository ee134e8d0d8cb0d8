"""
DarkMode Backend — Usage Accountant Tests
===========================================

What:  Plan-limit gates and minute crediting in UsageService.
How:   Real SQLite database (see conftest), fixed timestamps passed as `now`.

What we test:
    ✅ Free plan allows 3 sessions per day, the 4th is refused
    ✅ minutes_used == minutes_limit refuses new sessions; -1 never does
    ✅ 125 seconds credits 3 minutes, writes one SESSION usage log
    ✅ Completing twice credits once
    ✅ Document limit per plan
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.exceptions import LimitExceededError, NotFoundError
from app.models.enums import SessionStatus, SubscriptionStatus, UsageType
from app.models.analytics import UserAnalytics
from app.models.document import Document
from app.models.usage_log import UsageLog
from app.services.analytics_service import AnalyticsService
from app.services.plans import PlanCatalog, PlanLimits, within_limit
from app.services.usage_service import UsageService
from app.config import settings

NOW = datetime.now(timezone.utc).replace(microsecond=0)


def build_service() -> UsageService:
    return UsageService(plans=PlanCatalog.from_settings(settings), analytics=AnalyticsService())


class TestPlanCatalog:
    def test_within_limit(self):
        assert within_limit(59, 60)
        assert not within_limit(60, 60)
        assert within_limit(10_000, -1)

    def test_only_active_earns_paid_limits(self):
        plans = PlanCatalog.from_settings(settings)
        assert plans.for_account(SubscriptionStatus.ACTIVE, "pro").slug == "pro"
        assert plans.for_account(SubscriptionStatus.ACTIVE, None).slug == "pro"
        assert plans.for_account(SubscriptionStatus.ACTIVE, "enterprise").slug == "enterprise"
        for status in (SubscriptionStatus.TRIAL, SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED):
            assert plans.for_account(status, "pro").slug == "free"

    def test_catalog_is_read_only(self):
        plans = PlanCatalog.from_settings(settings)
        with pytest.raises(TypeError):
            plans._plans["free"] = plans["pro"]

    def test_catalog_requires_free_plan(self):
        with pytest.raises(ValueError):
            PlanCatalog({"pro": PlanLimits("pro", "Pro", "", 600, 50, -1)})


class TestSessionCreation:
    def setup_method(self):
        self.service = build_service()

    @pytest.mark.asyncio
    async def test_fourth_session_of_the_day_is_refused(self, db_session, make_account):
        account = await make_account()
        for _ in range(3):
            await self.service.create_session(db_session, account.id, now=NOW)

        with pytest.raises(LimitExceededError) as exc_info:
            await self.service.create_session(db_session, account.id, now=NOW)

        assert exc_info.value.limit == "sessions_per_day"
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_minutes_exhausted_refuses_session(self, db_session, make_account):
        account = await make_account(minutes_used=60, minutes_limit=60)

        with pytest.raises(LimitExceededError) as exc_info:
            await self.service.create_session(db_session, account.id, now=NOW)

        assert exc_info.value.limit == "minutes"

    @pytest.mark.asyncio
    async def test_unlimited_minutes_never_refuse(self, db_session, make_account):
        account = await make_account(
            subscription_status=SubscriptionStatus.ACTIVE,
            subscription_plan="enterprise",
            minutes_used=100_000,
            minutes_limit=-1,
        )
        for _ in range(5):
            session = await self.service.create_session(db_session, account.id, now=NOW)
        assert session.status == SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_sessions_from_yesterday_do_not_count(self, db_session, make_account):
        account = await make_account()
        for _ in range(3):
            await self.service.create_session(db_session, account.id, now=NOW - timedelta(days=2))

        session = await self.service.create_session(db_session, account.id, now=NOW)
        assert session.profile == "interview"
        assert session.language == "en-US"

    @pytest.mark.asyncio
    async def test_unknown_account(self, db_session):
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            await self.service.create_session(db_session, uuid4(), now=NOW)


class TestSessionCompletion:
    def setup_method(self):
        self.service = build_service()

    @pytest.mark.asyncio
    async def test_125_seconds_credits_3_minutes(self, db_session, make_account):
        account = await make_account()
        session = await self.service.create_session(db_session, account.id, profile="coding", now=NOW)

        result = await self.service.complete_session(
            db_session, account.id, session.id, now=NOW + timedelta(seconds=125)
        )

        assert result.duration_seconds == 125
        assert result.duration_minutes == 3
        assert result.session.status == SessionStatus.COMPLETED

        await db_session.refresh(account)
        assert account.minutes_used == 3

        logs = (await db_session.scalars(select(UsageLog).where(UsageLog.account_id == account.id))).all()
        assert len(logs) == 1
        assert logs[0].type == UsageType.SESSION
        assert logs[0].minutes == 3
        assert logs[0].session_id == session.id
        assert logs[0].details["profile"] == "coding"

    @pytest.mark.asyncio
    async def test_zero_length_session_credits_nothing(self, db_session, make_account):
        account = await make_account()
        session = await self.service.create_session(db_session, account.id, now=NOW)

        result = await self.service.complete_session(db_session, account.id, session.id, now=NOW)

        assert result.duration_minutes == 0

    @pytest.mark.asyncio
    async def test_double_completion_credits_once(self, db_session, make_account):
        account = await make_account()
        session = await self.service.create_session(db_session, account.id, now=NOW)
        await self.service.complete_session(db_session, account.id, session.id, now=NOW + timedelta(seconds=61))

        with pytest.raises(NotFoundError):
            await self.service.complete_session(
                db_session, account.id, session.id, now=NOW + timedelta(seconds=300)
            )

        await db_session.refresh(account)
        assert account.minutes_used == 2
        count = await db_session.scalar(select(func.count()).select_from(UsageLog))
        assert count == 1

    @pytest.mark.asyncio
    async def test_completion_may_exceed_limit(self, db_session, make_account):
        """The limit is only enforced when a session is created."""
        account = await make_account(minutes_used=55, minutes_limit=60)
        session = await self.service.create_session(db_session, account.id, now=NOW)

        await self.service.complete_session(db_session, account.id, session.id, now=NOW + timedelta(minutes=20))

        await db_session.refresh(account)
        assert account.minutes_used == 75
        with pytest.raises(LimitExceededError):
            await self.service.create_session(db_session, account.id, now=NOW + timedelta(minutes=21))

    @pytest.mark.asyncio
    async def test_other_accounts_session_is_not_found(self, db_session, make_account):
        owner = await make_account()
        intruder = await make_account()
        session = await self.service.create_session(db_session, owner.id, now=NOW)

        with pytest.raises(NotFoundError):
            await self.service.complete_session(db_session, intruder.id, session.id, now=NOW)

    @pytest.mark.asyncio
    async def test_completion_updates_analytics(self, db_session, make_account):
        account = await make_account()
        session = await self.service.create_session(db_session, account.id, now=NOW)
        session.questions_count = 4
        session.responses_count = 3

        await self.service.complete_session(db_session, account.id, session.id, now=NOW + timedelta(seconds=90))

        analytics = await db_session.scalar(
            select(UserAnalytics)
            .where(UserAnalytics.account_id == account.id)
            .execution_options(populate_existing=True)
        )
        assert analytics.total_sessions == 1
        assert analytics.total_duration == 90
        assert analytics.total_questions == 4
        assert analytics.total_responses == 3
        assert analytics.current_streak == 1


class TestDocumentLimit:
    def setup_method(self):
        self.service = build_service()

    @pytest.mark.asyncio
    async def test_free_plan_allows_five_documents(self, db_session, make_account):
        account = await make_account()
        for i in range(5):
            db_session.add(Document(
                account_id=account.id, name=f"doc{i}.txt", mime_type="text/plain",
                size=1, storage_path=f"documents/{i}.txt",
            ))
        await db_session.flush()

        with pytest.raises(LimitExceededError) as exc_info:
            await self.service.check_can_upload_document(db_session, account)
        assert exc_info.value.limit == "documents"

    @pytest.mark.asyncio
    async def test_past_due_account_gets_free_document_limit(self, db_session, make_account):
        account = await make_account(subscription_status=SubscriptionStatus.PAST_DUE, subscription_plan="pro")
        for i in range(5):
            db_session.add(Document(
                account_id=account.id, name=f"doc{i}.txt", mime_type="text/plain",
                size=1, storage_path=f"documents/{i}.txt",
            ))
        await db_session.flush()

        with pytest.raises(LimitExceededError):
            await self.service.check_can_upload_document(db_session, account)

    @pytest.mark.asyncio
    async def test_usage_summary(self, db_session, make_account):
        account = await make_account(minutes_used=20, minutes_limit=60)
        await self.service.create_session(db_session, account.id, now=NOW)

        summary = await self.service.usage_summary(db_session, account, now=NOW)

        assert summary["minutes_remaining"] == 40
        assert summary["today_sessions_count"] == 1
        assert summary["documents_count"] == 0

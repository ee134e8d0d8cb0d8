"""
DarkMode Backend — Analytics Tests
====================================

What:  Streak rules, period statistics, usage-log paging and the leaderboard.
"""

import time
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.models.analytics import UserAnalytics
from app.models.enums import SessionStatus, UsageType
from app.models.session import Session
from app.models.usage_log import UsageLog
from app.services.analytics_service import AnalyticsService, local_date, local_day_start

DAY = date(2026, 3, 10)


async def set_streak(db, account_id, current, longest, last_active):
    analytics = await db.scalar(select(UserAnalytics).where(UserAnalytics.account_id == account_id))
    analytics.current_streak = current
    analytics.longest_streak = longest
    analytics.last_active_date = last_active
    await db.flush()


class TestCalendarHelpers:
    def test_local_day_start_is_not_after_moment(self):
        moment = datetime(2026, 3, 10, 23, 59, tzinfo=timezone.utc)
        start = local_day_start(moment)
        assert start <= moment
        assert moment - start < timedelta(days=1)
        assert local_date(start) == local_date(moment)


class TestStreakUpdate:
    def setup_method(self):
        self.service = AnalyticsService()

    @pytest.mark.asyncio
    async def test_first_activity_starts_streak(self, db_session, make_account):
        account = await make_account()

        info = await self.service.update_streak(db_session, account.id, today=DAY)

        assert info.current_streak == 1
        assert info.longest_streak == 1
        assert info.last_active_date == DAY

    @pytest.mark.asyncio
    async def test_consecutive_day_extends_streak(self, db_session, make_account):
        account = await make_account()
        await set_streak(db_session, account.id, 4, 4, DAY - timedelta(days=1))

        info = await self.service.update_streak(db_session, account.id, today=DAY)

        assert info.current_streak == 5
        assert info.longest_streak == 5

    @pytest.mark.asyncio
    async def test_same_day_is_idempotent(self, db_session, make_account):
        account = await make_account()
        await set_streak(db_session, account.id, 3, 7, DAY)

        for _ in range(3):
            info = await self.service.update_streak(db_session, account.id, today=DAY)

        assert info.current_streak == 3
        assert info.longest_streak == 7

    @pytest.mark.asyncio
    async def test_gap_resets_to_one_and_keeps_longest(self, db_session, make_account):
        account = await make_account()
        await set_streak(db_session, account.id, 6, 6, DAY - timedelta(days=3))

        info = await self.service.update_streak(db_session, account.id, today=DAY)

        assert info.current_streak == 1
        assert info.longest_streak == 6


class TestStreakCheck:
    def setup_method(self):
        self.service = AnalyticsService()

    @pytest.mark.asyncio
    async def test_check_breaks_stale_streak_and_persists(self, db_session, make_account):
        account = await make_account()
        await set_streak(db_session, account.id, 5, 9, DAY - timedelta(days=2))

        info = await self.service.check_streak(db_session, account.id, today=DAY)

        assert info.current_streak == 0
        assert info.longest_streak == 9
        stored = await db_session.scalar(select(UserAnalytics).where(UserAnalytics.account_id == account.id))
        assert stored.current_streak == 0

    @pytest.mark.asyncio
    async def test_check_keeps_streak_active_yesterday(self, db_session, make_account):
        account = await make_account()
        await set_streak(db_session, account.id, 5, 9, DAY - timedelta(days=1))

        info = await self.service.check_streak(db_session, account.id, today=DAY)

        assert info.current_streak == 5

    @pytest.mark.asyncio
    async def test_check_without_analytics_row(self, db_session):
        from uuid import uuid4

        info = await self.service.check_streak(db_session, uuid4(), today=DAY)
        assert info.current_streak == 0
        assert info.last_active_date is None


@pytest.fixture
def auckland_clock(monkeypatch):
    """Run with a server timezone far from UTC (UTC+13 in March)."""
    monkeypatch.setenv("TZ", "Pacific/Auckland")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


class TestStatistics:
    def setup_method(self):
        self.service = AnalyticsService()

    @pytest.mark.asyncio
    async def test_session_stats_groups_by_day_and_profile(self, db_session, make_account):
        account = await make_account()
        now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        for days_ago, profile, duration, questions in [
            (0, "interview", 600, 5),
            (0, "coding", 300, 2),
            (3, "interview", 120, 1),
            (45, "interview", 999, 9),
        ]:
            started = now - timedelta(days=days_ago)
            db_session.add(Session(
                account_id=account.id, profile=profile, started_at=started, created_at=started,
                duration_seconds=duration, questions_count=questions, status=SessionStatus.COMPLETED,
            ))
        await db_session.flush()

        stats = await self.service.session_stats(db_session, account.id, "30d", now=now)

        assert stats["period"] == "30d"
        assert stats["total_sessions"] == 3
        assert stats["total_duration"] == 1020
        assert stats["total_questions"] == 8
        assert stats["daily_stats"][local_date(now).isoformat()] == {"sessions": 2, "duration": 900, "questions": 7}
        assert stats["profile_stats"] == {"interview": 2, "coding": 1}

    @pytest.mark.asyncio
    async def test_daily_buckets_follow_the_server_calendar(self, db_session, make_account, auckland_clock):
        account = await make_account()
        # 23:30 UTC on the 9th is already the 10th in Auckland
        started = datetime(2026, 3, 9, 23, 30, tzinfo=timezone.utc)
        db_session.add(Session(
            account_id=account.id, started_at=started, created_at=started,
            duration_seconds=60, status=SessionStatus.COMPLETED,
        ))
        await db_session.flush()

        stats = await self.service.session_stats(
            db_session, account.id, "7d", now=datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        )

        assert list(stats["daily_stats"]) == ["2026-03-10"]
        assert local_date(started) == date(2026, 3, 10)
        assert local_day_start(started) <= started

    @pytest.mark.asyncio
    async def test_unknown_period_falls_back_to_30_days(self, db_session, make_account):
        account = await make_account()
        stats = await self.service.session_stats(db_session, account.id, "fortnight")
        assert stats["period"] == "30d"
        assert stats["total_sessions"] == 0

    @pytest.mark.asyncio
    async def test_usage_logs_paginate_and_filter(self, db_session, make_account):
        account = await make_account()
        base = datetime(2026, 3, 1, tzinfo=timezone.utc)
        for i in range(5):
            db_session.add(UsageLog(
                account_id=account.id, type=UsageType.SESSION, minutes=i, created_at=base + timedelta(hours=i),
            ))
        db_session.add(UsageLog(account_id=account.id, type=UsageType.AI_RESPONSE, minutes=0, created_at=base))
        await db_session.flush()

        logs, total = await self.service.list_usage_logs(db_session, account.id, page=1, limit=2)
        assert total == 6
        assert [log.minutes for log in logs] == [4, 3]

        logs, total = await self.service.list_usage_logs(
            db_session, account.id, page=1, limit=10, usage_type=UsageType.AI_RESPONSE
        )
        assert total == 1
        assert logs[0].type == UsageType.AI_RESPONSE

    @pytest.mark.asyncio
    async def test_leaderboard_anonymizes_names(self, db_session, make_account):
        alice = await make_account(name="Alice")
        nameless = await make_account(name=None)
        for account, sessions, duration in [(alice, 10, 7200), (nameless, 3, 1800)]:
            analytics = await db_session.scalar(
                select(UserAnalytics).where(UserAnalytics.account_id == account.id)
            )
            analytics.total_sessions = sessions
            analytics.total_duration = duration
        await db_session.flush()

        board = await self.service.leaderboard(db_session)

        assert board[0] == {"rank": 1, "name": "A***", "total_sessions": 10, "total_hours": 2, "longest_streak": 0}
        assert board[1]["name"] == "Anonymous"
        assert board[1]["rank"] == 2

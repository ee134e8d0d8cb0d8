"""
DarkMode Backend — Analytics Aggregator
=========================================

What:  Running totals, period statistics, usage-log listing, the login
       streak and an anonymized leaderboard.
Who:   Called by the analytics routes, and by UsageService when a session
       completes (totals + streak update).

Streak rules (server-local calendar days):
    check   last_active_date before yesterday → current_streak = 0 (persisted)
    update  last_active_date == today         → unchanged
            last_active_date == yesterday     → current_streak + 1
            anything else (gap, first time)   → 1
            longest_streak = max(longest_streak, current_streak)

Only the first completion of a day moves the streak, so multiple sessions on
the same day cannot inflate it.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import as_utc, utcnow
from app.models.account import Account
from app.models.analytics import UserAnalytics
from app.models.enums import UsageType
from app.models.session import Session
from app.models.usage_log import UsageLog

logger = logging.getLogger(__name__)

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90, "year": 365}
DEFAULT_PERIOD = "30d"
LEADERBOARD_SIZE = 10


# ── Calendar helpers ──────────────────────────────────────────────────────
def local_date(moment: datetime) -> date:
    """The server-local calendar date of an aware timestamp."""
    return moment.astimezone().date()


def local_day_start(moment: datetime) -> datetime:
    """Server-local midnight of `moment`'s day, expressed in UTC."""
    local = moment.astimezone()
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


@dataclass(frozen=True)
class StreakInfo:
    current_streak: int
    longest_streak: int
    last_active_date: Optional[date]


class AnalyticsService:
    """Stateless; every method takes the request's AsyncSession."""

    # ── Totals ────────────────────────────────────────────────────────────
    async def get_or_create(self, db: AsyncSession, account_id: UUID) -> UserAnalytics:
        analytics = await db.scalar(
            select(UserAnalytics).where(UserAnalytics.account_id == account_id)
        )
        if analytics is None:
            analytics = UserAnalytics(account_id=account_id)
            db.add(analytics)
            await db.flush()
        return analytics

    async def record_completed_session(
        self,
        db: AsyncSession,
        account_id: UUID,
        duration_seconds: int,
        questions: int,
        responses: int,
    ) -> UserAnalytics:
        """Add one completed session to the running totals (SQL-side increments)."""
        analytics = await self.get_or_create(db, account_id)
        await db.execute(
            update(UserAnalytics)
            .where(UserAnalytics.account_id == account_id)
            .values(
                total_sessions=UserAnalytics.total_sessions + 1,
                total_duration=UserAnalytics.total_duration + duration_seconds,
                total_questions=UserAnalytics.total_questions + questions,
                total_responses=UserAnalytics.total_responses + responses,
            )
        )
        return analytics

    # ── Streak ────────────────────────────────────────────────────────────
    async def check_streak(
        self, db: AsyncSession, account_id: UUID, today: Optional[date] = None
    ) -> StreakInfo:
        """
        Read the streak, breaking it first if the account missed a day.

        This is a side-effecting read: a broken streak is persisted as 0.
        """
        today = today or local_date(utcnow())
        analytics = await db.scalar(
            select(UserAnalytics).where(UserAnalytics.account_id == account_id)
        )
        if analytics is None:
            return StreakInfo(current_streak=0, longest_streak=0, last_active_date=None)

        yesterday = today - timedelta(days=1)
        last = analytics.last_active_date
        if last is not None and last < yesterday and analytics.current_streak != 0:
            logger.info(
                "Streak broken for account %s (last active %s, was %d)",
                account_id, last, analytics.current_streak,
            )
            analytics.current_streak = 0
            await db.flush()

        return StreakInfo(
            current_streak=analytics.current_streak,
            longest_streak=analytics.longest_streak,
            last_active_date=analytics.last_active_date,
        )

    async def update_streak(
        self, db: AsyncSession, account_id: UUID, today: Optional[date] = None
    ) -> StreakInfo:
        today = today or local_date(utcnow())
        analytics = await self.get_or_create(db, account_id)
        last = analytics.last_active_date

        if last != today:
            if last is not None and last == today - timedelta(days=1):
                new_streak = analytics.current_streak + 1
            else:
                new_streak = 1
            analytics.current_streak = new_streak
            analytics.longest_streak = max(analytics.longest_streak, new_streak)
            analytics.last_active_date = today
            await db.flush()

        return StreakInfo(
            current_streak=analytics.current_streak,
            longest_streak=analytics.longest_streak,
            last_active_date=analytics.last_active_date,
        )

    # ── Period statistics ─────────────────────────────────────────────────
    async def session_stats(
        self,
        db: AsyncSession,
        account_id: UUID,
        period: str = DEFAULT_PERIOD,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Aggregate the account's sessions started within `period`.

        Unknown periods fall back to 30 days. Days are keyed by the server-local
        date of `started_at` (YYYY-MM-DD), the calendar the daily cap and the
        streak use.
        """
        if period not in PERIOD_DAYS:
            period = DEFAULT_PERIOD
        now = now or utcnow()
        start = now - timedelta(days=PERIOD_DAYS[period])

        sessions = (
            await db.scalars(
                select(Session)
                .where(Session.account_id == account_id, Session.started_at >= start)
                .order_by(Session.started_at.asc())
            )
        ).all()

        daily: Dict[str, Dict[str, int]] = {}
        profiles: Dict[str, int] = {}
        for session in sessions:
            key = local_date(as_utc(session.started_at)).isoformat()
            day = daily.setdefault(key, {"sessions": 0, "duration": 0, "questions": 0})
            day["sessions"] += 1
            day["duration"] += session.duration_seconds
            day["questions"] += session.questions_count
            profiles[session.profile] = profiles.get(session.profile, 0) + 1

        return {
            "period": period,
            "total_sessions": len(sessions),
            "total_duration": sum(s.duration_seconds for s in sessions),
            "total_questions": sum(s.questions_count for s in sessions),
            "daily_stats": daily,
            "profile_stats": profiles,
        }

    async def list_usage_logs(
        self,
        db: AsyncSession,
        account_id: UUID,
        page: int = 1,
        limit: int = 50,
        usage_type: Optional[UsageType] = None,
    ) -> Tuple[List[UsageLog], int]:
        conditions = [UsageLog.account_id == account_id]
        if usage_type is not None:
            conditions.append(UsageLog.type == usage_type)

        total = await db.scalar(select(func.count()).select_from(UsageLog).where(*conditions))
        logs = (
            await db.scalars(
                select(UsageLog)
                .where(*conditions)
                .order_by(UsageLog.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
        ).all()
        return list(logs), total or 0

    # ── Leaderboard ───────────────────────────────────────────────────────
    async def leaderboard(self, db: AsyncSession) -> List[Dict[str, Any]]:
        """Top accounts by completed sessions, with names reduced to an initial."""
        rows = (
            await db.execute(
                select(UserAnalytics, Account.name)
                .join(Account, Account.id == UserAnalytics.account_id)
                .order_by(UserAnalytics.total_sessions.desc())
                .limit(LEADERBOARD_SIZE)
            )
        ).all()

        return [
            {
                "rank": index + 1,
                "name": f"{name[0]}***" if name else "Anonymous",
                "total_sessions": analytics.total_sessions,
                "total_hours": round(analytics.total_duration / 3600),
                "longest_streak": analytics.longest_streak,
            }
            for index, (analytics, name) in enumerate(rows)
        ]


analytics_service = AnalyticsService()

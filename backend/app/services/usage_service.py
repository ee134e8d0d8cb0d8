"""
DarkMode Backend — Usage Accountant
=====================================

What:  Gates creation of sessions and documents against plan limits, and
       credits usage when a session completes.
Why:   This is where billable minutes are counted. It must never double
       credit a session and never decrement minutes_used.
How:   Stateless service with the PlanCatalog injected at construction.

Creation-time checks (create_session):
    1. Sessions created since server-local midnight vs plan.max_sessions_per_day
    2. account.minutes_used vs account.minutes_limit
    Either breach → LimitExceededError (HTTP 429). -1 means unlimited.

Completion (complete_session):
    duration_seconds = floor(ended_at - started_at)
    duration_minutes = ceil(duration_seconds / 60)
    minutes_used    += duration_minutes      (SQL-side increment)
    + one SESSION UsageLog, analytics totals, streak update

    The limit is NOT re-checked here. A long session may push minutes_used
    past minutes_limit; the next create_session call is what refuses.

Concurrency:
    The account row is selected FOR UPDATE before the checks. The lock is
    held by the request transaction (get_db_session), so on PostgreSQL two
    concurrent creations for one account serialize and the second sees the
    first one's session. SQLite has no row locks and ignores the clause.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import as_utc, utcnow
from app.exceptions import LimitExceededError, NotFoundError
from app.models.account import Account
from app.models.document import Document
from app.models.enums import SessionStatus, UsageType
from app.models.session import Session
from app.models.usage_log import UsageLog
from app.services.analytics_service import (
    AnalyticsService,
    analytics_service,
    local_date,
    local_day_start,
)
from app.services.plans import UNLIMITED, PlanCatalog, plan_catalog, within_limit

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "interview"
DEFAULT_LANGUAGE = "en-US"


@dataclass(frozen=True)
class SessionCompletion:
    session: Session
    duration_seconds: int
    duration_minutes: int


class UsageService:
    """
    Usage accounting against an injected, immutable PlanCatalog.

    Args:
        plans:      Plan limits, built once at startup
        analytics:  Receives totals and streak updates on completion
    """

    def __init__(self, plans: PlanCatalog, analytics: AnalyticsService):
        self.plans = plans
        self.analytics = analytics

    # ── Locking ───────────────────────────────────────────────────────────
    async def lock_account(self, db: AsyncSession, account_id: UUID) -> Account:
        account = await db.scalar(
            select(Account)
            .where(Account.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if account is None:
            raise NotFoundError("User", str(account_id))
        return account

    # ── Counters ──────────────────────────────────────────────────────────
    async def count_sessions_today(
        self, db: AsyncSession, account_id: UUID, now: Optional[datetime] = None
    ) -> int:
        since = local_day_start(now or utcnow())
        count = await db.scalar(
            select(func.count())
            .select_from(Session)
            .where(Session.account_id == account_id, Session.created_at >= since)
        )
        return count or 0

    async def count_documents(self, db: AsyncSession, account_id: UUID) -> int:
        count = await db.scalar(
            select(func.count()).select_from(Document).where(Document.account_id == account_id)
        )
        return count or 0

    # ── Gates ─────────────────────────────────────────────────────────────
    async def check_can_create_session(
        self, db: AsyncSession, account: Account, now: Optional[datetime] = None
    ) -> None:
        plan = self.plans.for_account(account.subscription_status, account.subscription_plan)

        if plan.max_sessions_per_day != UNLIMITED:
            today_count = await self.count_sessions_today(db, account.id, now)
            if today_count >= plan.max_sessions_per_day:
                logger.info(
                    "Daily session cap hit for account %s (%d/%d, plan=%s)",
                    account.id, today_count, plan.max_sessions_per_day, plan.slug,
                )
                raise LimitExceededError(
                    message="Daily session limit reached. Upgrade to Pro for unlimited sessions.",
                    limit="sessions_per_day",
                    context={"used": today_count, "allowed": plan.max_sessions_per_day},
                )

        if not within_limit(account.minutes_used, account.minutes_limit):
            logger.info(
                "Minutes limit hit for account %s (%d/%d)",
                account.id, account.minutes_used, account.minutes_limit,
            )
            raise LimitExceededError(
                message="Monthly minutes limit reached. Upgrade your plan for more minutes.",
                limit="minutes",
                context={"used": account.minutes_used, "allowed": account.minutes_limit},
            )

    async def check_can_upload_document(self, db: AsyncSession, account: Account) -> None:
        plan = self.plans.for_account(account.subscription_status, account.subscription_plan)
        if plan.max_documents == UNLIMITED:
            return
        count = await self.count_documents(db, account.id)
        if count >= plan.max_documents:
            raise LimitExceededError(
                message=f"Document limit reached ({plan.max_documents}). Upgrade your plan for more storage.",
                limit="documents",
                context={"used": count, "allowed": plan.max_documents},
            )

    # ── Session lifecycle ─────────────────────────────────────────────────
    async def create_session(
        self,
        db: AsyncSession,
        account_id: UUID,
        profile: Optional[str] = None,
        language: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Session:
        now = now or utcnow()
        account = await self.lock_account(db, account_id)
        await self.check_can_create_session(db, account, now)

        session = Session(
            account_id=account_id,
            profile=profile or DEFAULT_PROFILE,
            language=language or DEFAULT_LANGUAGE,
            status=SessionStatus.ACTIVE,
            started_at=now,
            created_at=now,
        )
        db.add(session)
        await db.flush()
        logger.info("Session %s started for account %s (profile=%s)", session.id, account_id, session.profile)
        return session

    async def complete_session(
        self,
        db: AsyncSession,
        account_id: UUID,
        session_id: UUID,
        now: Optional[datetime] = None,
    ) -> SessionCompletion:
        """
        Move an ACTIVE session to COMPLETED and credit its minutes.

        Raises:
            NotFoundError: the session does not exist, belongs to another
                account, or is already COMPLETED (no double credit)
        """
        session = await db.scalar(
            select(Session)
            .where(
                Session.id == session_id,
                Session.account_id == account_id,
                Session.status == SessionStatus.ACTIVE,
            )
            .with_for_update()
        )
        if session is None:
            raise NotFoundError("Session", str(session_id), message="Active session not found")

        ended_at = now or utcnow()
        elapsed = (ended_at - as_utc(session.started_at)).total_seconds()
        duration_seconds = max(0, math.floor(elapsed))
        duration_minutes = math.ceil(duration_seconds / 60)

        session.ended_at = ended_at
        session.duration_seconds = duration_seconds
        session.status = SessionStatus.COMPLETED

        await db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(minutes_used=Account.minutes_used + duration_minutes)
        )

        db.add(UsageLog(
            account_id=account_id,
            type=UsageType.SESSION,
            minutes=duration_minutes,
            session_id=session.id,
            details={
                "profile": session.profile,
                "questions": session.questions_count,
                "responses": session.responses_count,
            },
            created_at=ended_at,
        ))

        await self.analytics.record_completed_session(
            db,
            account_id,
            duration_seconds=duration_seconds,
            questions=session.questions_count,
            responses=session.responses_count,
        )
        await self.analytics.update_streak(db, account_id, today=local_date(ended_at))
        await db.flush()

        logger.info(
            "Session %s completed: %ds → %d min credited to account %s",
            session.id, duration_seconds, duration_minutes, account_id,
        )
        return SessionCompletion(
            session=session,
            duration_seconds=duration_seconds,
            duration_minutes=duration_minutes,
        )

    # ── Reporting ─────────────────────────────────────────────────────────
    async def usage_summary(
        self, db: AsyncSession, account: Account, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        if account.minutes_limit == UNLIMITED:
            remaining = UNLIMITED
        else:
            remaining = max(0, account.minutes_limit - account.minutes_used)
        return {
            "minutes_used": account.minutes_used,
            "minutes_limit": account.minutes_limit,
            "minutes_remaining": remaining,
            "last_reset": account.last_reset,
            "documents_count": await self.count_documents(db, account.id),
            "today_sessions_count": await self.count_sessions_today(db, account.id, now),
        }


usage_service = UsageService(plans=plan_catalog, analytics=analytics_service)

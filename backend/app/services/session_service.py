"""
DarkMode Backend — Session Service
====================================

What:  Read, update and delete interview sessions.
Who:   Session routes. Creating and completing sessions is billable and
       lives in UsageService.

update_session() only touches transcript and counters. Status changes go
through UsageService.complete_session so that minutes are always credited.
"""

import logging
from typing import Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError
from app.models.session import Session

logger = logging.getLogger(__name__)


class SessionService:
    async def list_sessions(
        self,
        db: AsyncSession,
        account_id: UUID,
        page: int = 1,
        limit: int = 20,
        profile: Optional[str] = None,
    ) -> Tuple[List[Session], int]:
        conditions = [Session.account_id == account_id]
        if profile:
            conditions.append(Session.profile == profile)

        total = await db.scalar(select(func.count()).select_from(Session).where(*conditions))
        sessions = await db.scalars(
            select(Session)
            .where(*conditions)
            .order_by(Session.started_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(sessions.all()), total or 0

    async def get_session(self, db: AsyncSession, account_id: UUID, session_id: UUID) -> Session:
        session = await db.scalar(
            select(Session).where(Session.id == session_id, Session.account_id == account_id)
        )
        if session is None:
            raise NotFoundError("Session", str(session_id), message="Session not found")
        return session

    async def update_session(
        self,
        db: AsyncSession,
        account_id: UUID,
        session_id: UUID,
        messages: Optional[List[Any]] = None,
        questions_count: Optional[int] = None,
        responses_count: Optional[int] = None,
        screenshots_count: Optional[int] = None,
    ) -> Session:
        session = await self.get_session(db, account_id, session_id)
        if messages is not None:
            session.messages = messages
        if questions_count is not None:
            session.questions_count = questions_count
        if responses_count is not None:
            session.responses_count = responses_count
        if screenshots_count is not None:
            session.screenshots_count = screenshots_count
        await db.flush()
        return session

    async def delete_session(self, db: AsyncSession, account_id: UUID, session_id: UUID) -> None:
        session = await self.get_session(db, account_id, session_id)
        await db.delete(session)
        await db.flush()


session_service = SessionService()

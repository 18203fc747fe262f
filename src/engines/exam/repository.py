"""
Loading helpers for the exam aggregate.
"""

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.kernel.models.exam import Exam, ExamDay
from src.kernel.models.exam_session import ExamSession


def _aggregate_options():
    return (
        selectinload(Exam.days).selectinload(ExamDay.subject),
        selectinload(Exam.days).selectinload(ExamDay.session).selectinload(ExamSession.answers),
        selectinload(Exam.results),
    )


async def load_exam(
    session: AsyncSession,
    exam_id: uuid.UUID,
    lock: bool = False,
) -> Optional[Exam]:
    """
    Load an exam with days, subjects, sessions, answers and snapshots.

    With ``lock=True`` the exam row is selected FOR UPDATE, serialising
    day transitions on the same exam. Rows already in the identity map are
    refreshed so a lock holder never acts on stale state.
    """
    q = (
        select(Exam)
        .options(*_aggregate_options())
        .where(Exam.id == exam_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        q = q.with_for_update(of=Exam)
    result = await session.execute(q)
    return result.scalar_one_or_none()


async def list_exams(session: AsyncSession, user_id: uuid.UUID) -> List[Exam]:
    """All exams of a user, newest first."""
    q = (
        select(Exam)
        .options(selectinload(Exam.days).selectinload(ExamDay.subject))
        .where(Exam.user_id == user_id)
        .order_by(Exam.created_at.desc())
    )
    result = await session.execute(q)
    return list(result.scalars().all())

"""
Deadline Sweeper - forces overdue exam days to MISSED.

Runs as a background loop started with the application, and inline from
``ExamOrchestrator`` before any read or write of a single exam. Both paths go
through ``reconcile_exam`` so the outcome is identical and a repeated sweep
is a no-op.
"""

import asyncio
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import get_settings
from src.engines.exam.day_finalizer import DayFinalizer
from src.engines.exam.day_state_machine import OPEN_STATES, day_status, is_overdue
from src.engines.exam.question_pool import QuestionPool, SqlQuestionStore
from src.engines.exam.repository import load_exam
from src.kernel.models.base import utcnow
from src.kernel.models.exam import DayOutcome, Exam, ExamDay, ExamStatus
from src.logging_config import get_logger

logger = get_logger(__name__)


class SweepReport(BaseModel):
    """Summary of one sweep pass."""

    exams_checked: int = 0
    days_missed: int = 0
    failures: List[uuid.UUID] = []


def has_overdue_days(exam: Exam, now: datetime) -> bool:
    """True when a sweep of ``exam`` at ``now`` would mark at least one day MISSED."""
    if ExamStatus(exam.status) == ExamStatus.COMPLETED:
        return False
    return any(
        day_status(day) in OPEN_STATES and is_overdue(exam, day, now)
        for day in exam.days
    )


async def reconcile_exam(
    session: AsyncSession,
    exam: Exam,
    now: datetime,
    pool: Optional[QuestionPool] = None,
) -> int:
    """
    Mark every overdue open day of ``exam`` as MISSED, oldest first.

    Missing a day unlocks the next one, which may itself be overdue and is
    then missed in the same pass. Returns the number of days missed. The
    caller owns the transaction and should hold the exam row lock.
    """
    if ExamStatus(exam.status) == ExamStatus.COMPLETED:
        return 0

    finalizer = DayFinalizer(session, pool or QuestionPool(SqlQuestionStore(session)))
    missed = 0
    for day in sorted(exam.days, key=lambda d: d.day_number):
        if day_status(day) not in OPEN_STATES or not is_overdue(exam, day, now):
            continue
        await finalizer.finalize(exam, day, DayOutcome.MISSED, now)
        missed += 1

    if missed:
        logger.info(
            "Overdue exam days marked missed",
            extra={"exam_id": str(exam.id), "days_missed": missed},
        )
    return missed


class DeadlineSweeper:
    """Periodic sweep over every exam that may have overdue days."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        clock: Callable[[], datetime] = utcnow,
        interval_seconds: Optional[int] = None,
    ):
        if session_factory is None:
            from src.database import async_session_maker

            session_factory = async_session_maker
        self.session_factory = session_factory
        self.clock = clock
        self.interval_seconds = interval_seconds or get_settings().sweep_interval_seconds

    async def candidate_exam_ids(self, now: datetime) -> List[uuid.UUID]:
        """Exams with an open day whose first deadline has already passed."""
        async with self.session_factory() as session:
            q = (
                select(Exam.id)
                .join(ExamDay, ExamDay.exam_id == Exam.id)
                .where(
                    Exam.status != ExamStatus.COMPLETED.value,
                    ExamDay.status.in_([s.value for s in OPEN_STATES]),
                    Exam.start_date < now - timedelta(days=1),
                )
                .distinct()
            )
            result = await session.execute(q)
            return list(result.scalars().all())

    async def sweep_exam(self, exam_id: uuid.UUID, now: Optional[datetime] = None) -> int:
        """Reconcile one exam in its own transaction."""
        now = now or self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                exam = await load_exam(session, exam_id, lock=True)
                if exam is None:
                    return 0
                return await reconcile_exam(session, exam, now)

    async def sweep_all(self) -> SweepReport:
        """
        Reconcile every candidate exam.

        Each exam commits independently; a failure is logged and the pass
        moves on to the next exam.
        """
        now = self.clock()
        report = SweepReport()
        for exam_id in await self.candidate_exam_ids(now):
            report.exams_checked += 1
            try:
                report.days_missed += await self.sweep_exam(exam_id, now)
            except Exception:
                logger.exception("Deadline sweep failed for exam", extra={"exam_id": str(exam_id)})
                report.failures.append(exam_id)

        logger.info(
            "Deadline sweep finished",
            extra={
                "exams_checked": report.exams_checked,
                "days_missed": report.days_missed,
                "failures": len(report.failures),
            },
        )
        return report

    async def run(self) -> None:
        """Sweep forever at the configured interval until cancelled."""
        logger.info("Deadline sweeper started", extra={"interval_seconds": self.interval_seconds})
        while True:
            try:
                await self.sweep_all()
            except Exception:
                logger.exception("Deadline sweep pass failed")
            await asyncio.sleep(self.interval_seconds)

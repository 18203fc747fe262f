"""
Day Finalizer - shared closing logic for a finished exam day.

Used by ``complete_day`` (outcome COMPLETED) and by the deadline sweeper
(outcome MISSED). Both paths snapshot the answer sheet, close the session,
refresh the exam's cumulative totals and advance the campaign.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.engines.exam.day_state_machine import DayStateMachine, day_status, is_terminal
from src.engines.exam.grading import CumulativeScore, DayScore, cumulative_score, score_answers
from src.engines.exam.performance_rollup import PerformanceRollup
from src.engines.exam.question_pool import QuestionPool
from src.kernel.events.event_store import EventStore
from src.kernel.models.base import as_utc
from src.kernel.models.event_log import EventType
from src.kernel.models.exam import (
    LIVE_EXAM_STATUSES,
    DayOutcome,
    DayStatus,
    Exam,
    ExamDay,
    ExamStatus,
    SubjectResult,
)
from src.kernel.models.exam_session import ExamSession, SessionStatus
from src.logging_config import get_logger

logger = get_logger(__name__)


def first_open_day(exam: Exam) -> int:
    """Lowest non-terminal day number, or ``total_days`` once every day is terminal."""
    for d in exam.days:
        if not is_terminal(d.status):
            return d.day_number
    return exam.total_days


def all_days_terminal(exam: Exam) -> bool:
    return bool(exam.days) and all(is_terminal(d.status) for d in exam.days)


class DayFinalizer:
    """Snapshots a day's answers and keeps exam totals in step with the snapshots."""

    def __init__(self, session: AsyncSession, pool: QuestionPool):
        self.session = session
        self.pool = pool
        self.state_machine = DayStateMachine(session)
        self.rollup = PerformanceRollup(session)
        self.event_store = EventStore(session)

    async def load_session(self, session_id: uuid.UUID) -> Optional[ExamSession]:
        q = (
            select(ExamSession)
            .options(selectinload(ExamSession.answers))
            .where(ExamSession.id == session_id)
        )
        result = await self.session.execute(q)
        return result.scalar_one_or_none()

    async def finalize(
        self,
        exam: Exam,
        day: ExamDay,
        outcome: DayOutcome,
        now: datetime,
        user_id: Optional[uuid.UUID] = None,
    ) -> Optional[SubjectResult]:
        """
        Close ``day`` with ``outcome`` and advance the campaign.

        A day with a session gets a SubjectResult snapshot built from the
        answer sheet (partial credit for a missed in-progress day). A day that
        was never started is closed with zero totals and no snapshot.
        """
        target = DayStatus.COMPLETED if outcome == DayOutcome.COMPLETED else DayStatus.MISSED
        result: Optional[SubjectResult] = None

        exam_session = await self.load_session(day.session_id) if day.session_id else None
        if exam_session is not None:
            result = await self._snapshot(exam, day, exam_session, outcome, now)
        else:
            day.correct_answers = 0
            day.score = 0.0
            day.grade = None
            day.time_spent_seconds = 0

        await self.state_machine.transition(exam, day, target, now, user_id)
        await self.state_machine.unlock_next(exam, day.day_number, now, user_id)
        self.refresh_totals(exam)
        exam.current_day = first_open_day(exam)

        if all_days_terminal(exam) and ExamStatus(exam.status) in LIVE_EXAM_STATUSES:
            await self.complete_exam(exam, now, user_id)
        return result

    async def _snapshot(
        self,
        exam: Exam,
        day: ExamDay,
        exam_session: ExamSession,
        outcome: DayOutcome,
        now: datetime,
    ) -> SubjectResult:
        answers = list(exam_session.answers)
        records = await self.pool.lookup([a.question_id for a in answers])
        score: DayScore = score_answers(answers, exam_session.question_count)
        time_spent = sum(a.time_spent_seconds or 0 for a in answers)

        sheet: List[Dict[str, Any]] = []
        for a in answers:
            record = records.get(a.question_id)
            sheet.append(
                {
                    "position": a.position,
                    "question_id": str(a.question_id),
                    "topic_id": str(record.topic_id) if record and record.topic_id else None,
                    "question": record.content if record else None,
                    "options": (
                        [{"label": o.label, "content": o.content} for o in record.options]
                        if record
                        else []
                    ),
                    "correct_option": record.correct_label if record else None,
                    "selected_option": a.selected_option,
                    "is_correct": bool(a.selected_option is not None and a.is_correct),
                    "time_spent_seconds": a.time_spent_seconds or 0,
                }
            )

        result = SubjectResult(
            exam_id=exam.id,
            exam_day_id=day.id,
            day_number=day.day_number,
            subject_id=day.subject_id,
            outcome=outcome,
            total_questions=score.total_questions,
            correct_answers=score.correct_answers,
            wrong_answers=score.wrong_answers,
            skipped_questions=score.skipped_questions,
            score=score.score,
            grade=score.grade,
            time_taken_seconds=time_spent,
            answers=sheet,
            completed_at=now,
        )
        exam.results.append(result)

        day.total_questions = score.total_questions
        day.correct_answers = score.correct_answers
        day.score = score.score
        day.grade = score.grade
        day.time_spent_seconds = time_spent

        exam_session.status = (
            SessionStatus.COMPLETED if outcome == DayOutcome.COMPLETED else SessionStatus.EXPIRED
        )
        exam_session.completed_at = now

        await self.rollup.apply(exam.user_id, day.subject_id, sheet, now)
        return result

    def refresh_totals(self, exam: Exam) -> CumulativeScore:
        """Recompute the exam's cumulative totals from every snapshot."""
        totals = cumulative_score(exam.results)
        exam.total_questions = totals.total_questions
        exam.correct_answers = totals.correct_answers
        exam.overall_score = totals.overall_score if exam.results else None
        return totals

    async def complete_exam(
        self,
        exam: Exam,
        now: datetime,
        user_id: Optional[uuid.UUID] = None,
    ) -> None:
        exam.status = ExamStatus.COMPLETED
        exam.completed_at = now
        await self.event_store.log(
            event_type=EventType.EXAM_COMPLETED,
            entity_type="exam",
            entity_id=exam.id,
            user_id=user_id,
            payload={
                "overall_score": exam.overall_score,
                "completed_days": sum(
                    1 for d in exam.days if day_status(d) == DayStatus.COMPLETED
                ),
                "started_at": as_utc(exam.start_date),
            },
        )
        logger.info(
            "Exam completed",
            extra={"exam_id": str(exam.id), "overall_score": exam.overall_score},
        )

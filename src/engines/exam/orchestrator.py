"""
Exam Orchestrator - campaign lifecycle for multi-day mock examinations.

    Exam:  NOT_STARTED -> IN_PROGRESS -> COMPLETED
                 |              |
                 +--> ABANDONED <-+   (pause / resume)

Every mutating operation locks the exam row, reconciles overdue days, checks
preconditions and only then writes. All writes of one call share the
caller's transaction.
"""

import uuid
from datetime import datetime, time, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from src.config import Settings, get_settings
from src.engines.exam.answer_recorder import AnswerRecorder
from src.engines.exam.day_finalizer import DayFinalizer, all_days_terminal
from src.engines.exam.day_state_machine import DayStateMachine, day_status, deadline_for
from src.engines.exam.deadline_sweeper import has_overdue_days, reconcile_exam
from src.engines.exam.grading import grade_for
from src.engines.exam.question_pool import (
    PublicQuestion,
    QuestionPool,
    QuestionStore,
    SqlQuestionStore,
    to_public,
)
from src.engines.exam.repository import list_exams, load_exam
from src.kernel.errors import (
    ConflictError,
    InvalidArgumentError,
    InvalidStateError,
    MismatchError,
    NotFoundError,
)
from src.kernel.events.event_store import EventStore
from src.kernel.models.base import as_utc, utcnow
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
from src.kernel.models.exam_session import ExamAnswer, ExamSession, SessionStatus
from src.logging_config import get_logger

logger = get_logger(__name__)


class StartedDay(BaseModel):
    """What the candidate needs to sit a day."""

    exam_id: uuid.UUID
    day_number: int
    subject_id: uuid.UUID
    session_id: uuid.UUID
    started_at: datetime
    deadline: datetime
    duration_minutes: int
    questions: List[PublicQuestion]


class DayResultSummary(BaseModel):
    day_number: int
    subject_id: uuid.UUID
    outcome: str
    total_questions: int
    correct_answers: int
    wrong_answers: int
    skipped_questions: int
    score: float
    grade: str
    time_taken_seconds: int
    completed_at: datetime
    answers: List[Dict[str, Any]] = []


class NextDaySummary(BaseModel):
    day_number: int
    subject_id: uuid.UUID
    status: str
    deadline: datetime


class ExamProgress(BaseModel):
    completed_days: int
    total_days: int
    overall_score: Optional[float] = None
    is_complete: bool


class DayCompletion(BaseModel):
    """Outcome of ``complete_day``."""

    day_result: DayResultSummary
    next_day: Optional[NextDaySummary] = None
    progress: ExamProgress


class GradeReport(BaseModel):
    """Per-day snapshots plus the campaign's overall standing."""

    exam_id: uuid.UUID
    name: str
    status: str
    total_days: int
    completed_days: int
    missed_days: int
    total_questions: int
    correct_answers: int
    overall_score: Optional[float] = None
    overall_grade: Optional[str] = None
    completed_at: Optional[datetime] = None
    days: List[DayResultSummary]


def campaign_start(now: datetime) -> datetime:
    """Midnight UTC of the creation day."""
    return datetime.combine(as_utc(now).date(), time.min, tzinfo=timezone.utc)


def summarize_result(result: SubjectResult, include_answers: bool = False) -> DayResultSummary:
    return DayResultSummary(
        day_number=result.day_number,
        subject_id=result.subject_id,
        outcome=DayOutcome(result.outcome).value,
        total_questions=result.total_questions,
        correct_answers=result.correct_answers,
        wrong_answers=result.wrong_answers,
        skipped_questions=result.skipped_questions,
        score=result.score,
        grade=result.grade,
        time_taken_seconds=result.time_taken_seconds,
        completed_at=as_utc(result.completed_at),
        answers=list(result.answers) if include_answers else [],
    )


def count_days(exam: Exam, status: DayStatus) -> int:
    return sum(1 for d in exam.days if day_status(d) == status)


class ExamOrchestrator:
    """
    Drives an exam campaign on behalf of its owner.

    Collaborators:
    - QuestionPool (over a QuestionStore) for drawing and grading questions
    - DayStateMachine for day transitions
    - DayFinalizer for snapshots and exam totals
    - AnswerRecorder for the live answer sheet
    """

    def __init__(
        self,
        session: AsyncSession,
        store: Optional[QuestionStore] = None,
        clock: Callable[[], datetime] = utcnow,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.clock = clock
        self.settings = settings or get_settings()
        self.pool = QuestionPool(store or SqlQuestionStore(session))
        self.state_machine = DayStateMachine(session)
        self.finalizer = DayFinalizer(session, self.pool)
        self.recorder = AnswerRecorder(session, self.pool)
        self.event_store = EventStore(session)

    # ------------------------------------------------------------------
    # Campaign lifecycle
    # ------------------------------------------------------------------

    async def create_exam(
        self,
        user_id: uuid.UUID,
        subject_ids: List[uuid.UUID],
        name: Optional[str] = None,
    ) -> Exam:
        """Create a campaign with one day per subject; day 1 is AVAILABLE."""
        total_days = self.settings.exam_total_days
        if len(subject_ids) != total_days:
            raise InvalidArgumentError(
                f"Exam must have exactly {total_days} subjects (one per day)",
                received=len(subject_ids),
                required=total_days,
            )

        missing = await self.pool.missing_subjects(subject_ids)
        if missing:
            raise NotFoundError(
                "Subject not found",
                subject_ids=",".join(str(s) for s in missing),
            )

        existing = await self._live_exam_id(user_id)
        if existing is not None:
            raise ConflictError("You already have an active exam", exam_id=existing)

        now = self.clock()
        exam = Exam(
            user_id=user_id,
            name=name or self.settings.exam_name,
            subject_ids=[str(s) for s in subject_ids],
            start_date=campaign_start(now),
            total_days=total_days,
            questions_per_day=self.settings.exam_questions_per_day,
            duration_per_day=self.settings.exam_duration_minutes,
            current_day=1,
            status=ExamStatus.NOT_STARTED,
            total_questions=0,
            correct_answers=0,
        )
        exam.days = [
            ExamDay(
                day_number=i + 1,
                subject_id=subject_id,
                status=DayStatus.AVAILABLE if i == 0 else DayStatus.LOCKED,
                total_questions=self.settings.exam_questions_per_day,
                correct_answers=0,
                time_spent_seconds=0,
            )
            for i, subject_id in enumerate(subject_ids)
        ]
        self.session.add(exam)
        await self._flush(conflict="You already have an active exam")

        await self.event_store.log(
            event_type=EventType.EXAM_CREATED,
            entity_type="exam",
            entity_id=exam.id,
            user_id=user_id,
            payload={
                "subject_ids": exam.subject_ids,
                "start_date": exam.start_date,
                "total_days": exam.total_days,
                "questions_per_day": exam.questions_per_day,
            },
        )
        await self._flush()
        logger.info("Exam created", extra={"exam_id": str(exam.id), "user_id": str(user_id)})
        return await self._reload(exam.id)

    async def get_exam(self, exam_id: uuid.UUID, user_id: uuid.UUID) -> Exam:
        """
        Return the exam aggregate after forcing any overdue days to MISSED.

        Reads take the row lock only when a sweep is due, so they do not
        queue behind in-flight day operations.
        """
        exam = await self._owned_exam(exam_id, user_id)
        if has_overdue_days(exam, self.clock()):
            exam = await self._locked_exam(exam_id, user_id)
            await self._flush()
        return exam

    async def list_user_exams(self, user_id: uuid.UUID) -> List[Exam]:
        return await list_exams(self.session, user_id)

    async def pause_exam(self, exam_id: uuid.UUID, user_id: uuid.UUID) -> Exam:
        exam = await self._locked_exam(exam_id, user_id)
        self._require_live(exam, "pause")

        previous = ExamStatus(exam.status)
        exam.status = ExamStatus.ABANDONED
        await self.event_store.log(
            event_type=EventType.EXAM_PAUSED,
            entity_type="exam",
            entity_id=exam.id,
            user_id=user_id,
            payload={"from_state": previous, "current_day": exam.current_day},
        )
        await self._flush()
        logger.info("Exam paused", extra={"exam_id": str(exam.id)})
        return exam

    async def resume_exam(self, exam_id: uuid.UUID, user_id: uuid.UUID) -> Exam:
        exam = await self._locked_exam(exam_id, user_id)
        status = ExamStatus(exam.status)
        if status != ExamStatus.ABANDONED:
            raise InvalidStateError(
                "Only a paused exam can be resumed",
                current=status,
                expected=ExamStatus.ABANDONED,
            )

        other = await self._live_exam_id(user_id)
        if other is not None:
            raise ConflictError("You already have an active exam", exam_id=other)

        now = self.clock()
        exam.status = ExamStatus.IN_PROGRESS
        await self.event_store.log(
            event_type=EventType.EXAM_RESUMED,
            entity_type="exam",
            entity_id=exam.id,
            user_id=user_id,
            payload={"current_day": exam.current_day},
        )
        if all_days_terminal(exam):
            # Every deadline elapsed while paused
            await self.finalizer.complete_exam(exam, now, user_id)
        await self._flush(conflict="You already have an active exam")
        logger.info("Exam resumed", extra={"exam_id": str(exam.id), "status": ExamStatus(exam.status).value})
        return exam

    async def delete_exam(self, exam_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Delete an exam with its days, sessions, answers and snapshots."""
        exam = await self._owned_exam(exam_id, user_id, lock=True)
        session_ids = [d.session_id for d in exam.days if d.session_id is not None]

        await self.event_store.log(
            event_type=EventType.EXAM_DELETED,
            entity_type="exam",
            entity_id=exam.id,
            user_id=user_id,
            payload={"status": exam.status, "session_count": len(session_ids)},
        )

        # Children before parents
        await self.session.execute(delete(SubjectResult).where(SubjectResult.exam_id == exam_id))
        await self.session.execute(delete(ExamDay).where(ExamDay.exam_id == exam_id))
        if session_ids:
            await self.session.execute(delete(ExamAnswer).where(ExamAnswer.session_id.in_(session_ids)))
            await self.session.execute(delete(ExamSession).where(ExamSession.id.in_(session_ids)))
        await self.session.execute(delete(Exam).where(Exam.id == exam_id))
        await self._flush()
        logger.info("Exam deleted", extra={"exam_id": str(exam_id)})

    # ------------------------------------------------------------------
    # Day operations
    # ------------------------------------------------------------------

    async def start_day(self, exam_id: uuid.UUID, day_number: int, user_id: uuid.UUID) -> StartedDay:
        """
        Open an AVAILABLE day: draw its questions and create the answer sheet.

        The draw happens before any write, so InsufficientContentError leaves
        the exam untouched.
        """
        exam = await self._locked_exam(exam_id, user_id)
        self._require_live(exam, "start a day of")
        day = self._day(exam, day_number)

        current = day_status(day)
        if current != DayStatus.AVAILABLE:
            raise InvalidStateError(
                f"Day {day_number} is not available",
                current=current,
                expected=DayStatus.AVAILABLE,
                day_number=day_number,
            )
        running = next((d for d in exam.days if day_status(d) == DayStatus.IN_PROGRESS), None)
        if running is not None:
            raise InvalidStateError(
                f"Day {running.day_number} is still in progress",
                current=DayStatus.IN_PROGRESS,
                day_number=running.day_number,
            )

        questions = await self.pool.draw(day.subject_id, exam.questions_per_day)

        now = self.clock()
        subject_name = day.subject.name if day.subject is not None else str(day.subject_id)
        exam_session = ExamSession(
            id=uuid.uuid4(),
            user_id=user_id,
            subject_id=day.subject_id,
            name=f"Day {day_number} - {subject_name}",
            status=SessionStatus.IN_PROGRESS,
            question_count=len(questions),
            duration_minutes=exam.duration_per_day,
            started_at=now,
        )
        exam_session.answers = [
            ExamAnswer(
                question_id=q.id,
                position=position,
                selected_option=None,
                is_correct=False,
                time_spent_seconds=0,
            )
            for position, q in enumerate(questions, start=1)
        ]
        self.session.add(exam_session)
        day.session = exam_session
        day.session_id = exam_session.id
        day.total_questions = len(questions)

        await self.state_machine.transition(exam, day, DayStatus.IN_PROGRESS, now, user_id)
        if ExamStatus(exam.status) == ExamStatus.NOT_STARTED:
            exam.status = ExamStatus.IN_PROGRESS
            await self.event_store.log(
                event_type=EventType.EXAM_STARTED,
                entity_type="exam",
                entity_id=exam.id,
                user_id=user_id,
                payload={"day_number": day_number},
            )
        exam.current_day = day_number
        await self._flush()

        return StartedDay(
            exam_id=exam.id,
            day_number=day_number,
            subject_id=day.subject_id,
            session_id=exam_session.id,
            started_at=now,
            deadline=deadline_for(exam.start_date, day_number),
            duration_minutes=exam.duration_per_day,
            questions=[to_public(q) for q in questions],
        )

    async def record_answer(
        self,
        exam_id: uuid.UUID,
        day_number: int,
        user_id: uuid.UUID,
        question_id: uuid.UUID,
        selected_option: Optional[str],
        time_spent_seconds: int = 0,
    ) -> ExamAnswer:
        """Record an answer on the sheet of an IN_PROGRESS day."""
        exam = await self._locked_exam(exam_id, user_id)
        self._require_live(exam, "answer")
        day = self._day(exam, day_number)
        self._require_in_progress(day)

        answer = await self.recorder.record(
            day.session_id,
            user_id,
            question_id,
            selected_option,
            time_spent_seconds,
            now=self.clock(),
        )
        await self._flush()
        return answer

    async def complete_day(
        self,
        exam_id: uuid.UUID,
        day_number: int,
        session_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> DayCompletion:
        """Score the day's session, snapshot it and advance the campaign."""
        exam = await self._locked_exam(exam_id, user_id)
        self._require_live(exam, "complete a day of")
        day = self._day(exam, day_number)
        self._require_in_progress(day)
        if day.session_id != session_id:
            raise MismatchError(
                "Session does not belong to this exam day",
                day_number=day_number,
                session_id=session_id,
            )

        now = self.clock()
        result = await self.finalizer.finalize(exam, day, DayOutcome.COMPLETED, now, user_id)
        await self._flush()

        next_day = exam.day(day_number + 1)
        return DayCompletion(
            day_result=summarize_result(result),
            next_day=(
                NextDaySummary(
                    day_number=next_day.day_number,
                    subject_id=next_day.subject_id,
                    status=day_status(next_day).value,
                    deadline=deadline_for(exam.start_date, next_day.day_number),
                )
                if next_day is not None
                else None
            ),
            progress=ExamProgress(
                completed_days=count_days(exam, DayStatus.COMPLETED),
                total_days=exam.total_days,
                overall_score=exam.overall_score,
                is_complete=ExamStatus(exam.status) == ExamStatus.COMPLETED,
            ),
        )

    async def get_exam_results(self, exam_id: uuid.UUID, user_id: uuid.UUID) -> GradeReport:
        """Grade report built from the result snapshots."""
        exam = await self.get_exam(exam_id, user_id)
        results = sorted(exam.results, key=lambda r: r.day_number)
        return GradeReport(
            exam_id=exam.id,
            name=exam.name,
            status=ExamStatus(exam.status).value,
            total_days=exam.total_days,
            completed_days=count_days(exam, DayStatus.COMPLETED),
            missed_days=count_days(exam, DayStatus.MISSED),
            total_questions=exam.total_questions,
            correct_answers=exam.correct_answers,
            overall_score=exam.overall_score,
            overall_grade=grade_for(exam.overall_score) if exam.overall_score is not None else None,
            completed_at=as_utc(exam.completed_at),
            days=[summarize_result(r, include_answers=True) for r in results],
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _owned_exam(self, exam_id: uuid.UUID, user_id: uuid.UUID, lock: bool = False) -> Exam:
        exam = await load_exam(self.session, exam_id, lock=lock)
        if exam is None or exam.user_id != user_id:
            raise NotFoundError("Exam not found", exam_id=exam_id)
        return exam

    async def _locked_exam(self, exam_id: uuid.UUID, user_id: uuid.UUID) -> Exam:
        """Lock the exam row and reconcile overdue days before acting on it."""
        exam = await self._owned_exam(exam_id, user_id, lock=True)
        await reconcile_exam(self.session, exam, self.clock(), self.pool)
        return exam

    async def _reload(self, exam_id: uuid.UUID) -> Exam:
        exam = await load_exam(self.session, exam_id)
        if exam is None:
            raise NotFoundError("Exam not found", exam_id=exam_id)
        return exam

    async def _live_exam_id(self, user_id: uuid.UUID) -> Optional[uuid.UUID]:
        q = select(Exam.id).where(
            Exam.user_id == user_id,
            Exam.status.in_([s.value for s in LIVE_EXAM_STATUSES]),
        )
        result = await self.session.execute(q)
        return result.scalars().first()

    def _day(self, exam: Exam, day_number: int) -> ExamDay:
        if day_number < 1 or day_number > exam.total_days:
            raise InvalidArgumentError(
                f"Day number must be between 1 and {exam.total_days}",
                day_number=day_number,
            )
        day = exam.day(day_number)
        if day is None:
            raise NotFoundError("Exam day not found", day_number=day_number)
        return day

    @staticmethod
    def _require_live(exam: Exam, action: str) -> None:
        status = ExamStatus(exam.status)
        if status not in LIVE_EXAM_STATUSES:
            raise InvalidStateError(
                f"Cannot {action} an exam that is {status.value}",
                current=status,
                expected=[s.value for s in LIVE_EXAM_STATUSES],
            )

    @staticmethod
    def _require_in_progress(day: ExamDay) -> None:
        current = day_status(day)
        if current != DayStatus.IN_PROGRESS or day.session_id is None:
            raise InvalidStateError(
                f"Day {day.day_number} is not in progress",
                current=current,
                expected=DayStatus.IN_PROGRESS,
                day_number=day.day_number,
            )

    async def _flush(self, conflict: Optional[str] = None) -> None:
        """Flush pending writes, translating storage conflicts into engine errors."""
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise InvalidStateError("Exam day was modified by a concurrent request") from exc
        except IntegrityError as exc:
            if conflict is None:
                raise
            raise ConflictError(conflict) from exc

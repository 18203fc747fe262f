"""
Answer Recorder - fills in the answer sheet of an in-progress exam session.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.engines.exam.question_pool import QuestionPool
from src.kernel.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from src.kernel.events.event_store import EventStore
from src.kernel.models.base import utcnow
from src.kernel.models.event_log import EventType
from src.kernel.models.exam_session import ExamAnswer, ExamSession, SessionStatus
from src.logging_config import get_logger

logger = get_logger(__name__)


class AnswerRecorder:
    """
    Records ``(question, selected option)`` pairs against a session.

    Each question on the sheet has exactly one slot; recording again
    overwrites the previous choice. Passing ``selected_option=None`` clears
    the slot back to skipped.
    """

    def __init__(self, session: AsyncSession, pool: QuestionPool):
        self.session = session
        self.pool = pool
        self.event_store = EventStore(session)

    async def get_session(self, session_id: uuid.UUID, user_id: uuid.UUID) -> ExamSession:
        """Load a session with its answer sheet. Not-owned is reported as not found."""
        q = (
            select(ExamSession)
            .options(selectinload(ExamSession.answers))
            .where(ExamSession.id == session_id)
        )
        result = await self.session.execute(q)
        exam_session = result.scalar_one_or_none()
        if exam_session is None or exam_session.user_id != user_id:
            raise NotFoundError("Exam session not found", session_id=session_id)
        return exam_session

    async def record(
        self,
        session_id: uuid.UUID,
        user_id: uuid.UUID,
        question_id: uuid.UUID,
        selected_option: Optional[str],
        time_spent_seconds: int = 0,
        now: Optional[datetime] = None,
    ) -> ExamAnswer:
        now = now or utcnow()
        exam_session = await self.get_session(session_id, user_id)

        status = SessionStatus(exam_session.status)
        if status != SessionStatus.IN_PROGRESS:
            raise InvalidStateError(
                "Exam session is no longer accepting answers",
                current=status,
                expected=SessionStatus.IN_PROGRESS,
                session_id=session_id,
            )

        slot = next((a for a in exam_session.answers if a.question_id == question_id), None)
        if slot is None:
            raise NotFoundError(
                "Question is not part of this exam session",
                session_id=session_id,
                question_id=question_id,
            )

        records = await self.pool.lookup([question_id])
        record = records.get(question_id)
        if record is None:
            raise NotFoundError("Question not found", question_id=question_id)

        if selected_option is not None:
            selected_option = selected_option.strip().upper()
            labels = {o.label.upper() for o in record.options}
            if selected_option not in labels:
                raise InvalidArgumentError(
                    f"Option {selected_option!r} does not exist for this question",
                    question_id=question_id,
                    options=",".join(sorted(labels)),
                )

        correct_label = record.correct_label
        slot.selected_option = selected_option
        slot.is_correct = (
            selected_option is not None
            and correct_label is not None
            and selected_option == correct_label.upper()
        )
        slot.time_spent_seconds = max(int(time_spent_seconds), 0)
        slot.answered_at = now if selected_option is not None else None

        await self.event_store.log(
            event_type=EventType.ANSWER_RECORDED,
            entity_type="exam_session",
            entity_id=exam_session.id,
            user_id=user_id,
            payload={
                "question_id": question_id,
                "position": slot.position,
                "answered": selected_option is not None,
            },
        )
        await self.session.flush()
        logger.debug(
            "Answer recorded",
            extra={"session_id": str(session_id), "position": slot.position},
        )
        return slot

"""
State machine for the ExamDay lifecycle.

    LOCKED -> AVAILABLE -> IN_PROGRESS -> COMPLETED
                  |             |
                  +--> MISSED <-+

COMPLETED and MISSED are terminal. A terminal day unlocks the next one.
Deadlines are measured from the campaign start: day N closes at
``start_date + N days`` no matter when the day was opened.
"""

import uuid
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.errors import InvalidStateError
from src.kernel.events.event_store import EventStore
from src.kernel.models.base import as_utc
from src.kernel.models.event_log import EventType
from src.kernel.models.exam import DayStatus, Exam, ExamDay
from src.logging_config import get_logger

logger = get_logger(__name__)


# (from, to) -> trigger
_TRANSITIONS: Dict[Tuple[DayStatus, DayStatus], str] = {
    (DayStatus.LOCKED, DayStatus.AVAILABLE): "unlock",
    (DayStatus.AVAILABLE, DayStatus.IN_PROGRESS): "start",
    (DayStatus.IN_PROGRESS, DayStatus.COMPLETED): "complete",
    (DayStatus.AVAILABLE, DayStatus.MISSED): "deadline",
    (DayStatus.IN_PROGRESS, DayStatus.MISSED): "deadline",
}

_EVENTS: Dict[DayStatus, EventType] = {
    DayStatus.AVAILABLE: EventType.DAY_UNLOCKED,
    DayStatus.IN_PROGRESS: EventType.DAY_STARTED,
    DayStatus.COMPLETED: EventType.DAY_COMPLETED,
    DayStatus.MISSED: EventType.DAY_MISSED,
}

TERMINAL_STATES: FrozenSet[DayStatus] = frozenset({DayStatus.COMPLETED, DayStatus.MISSED})
OPEN_STATES: FrozenSet[DayStatus] = frozenset({DayStatus.AVAILABLE, DayStatus.IN_PROGRESS})


def day_status(day: ExamDay) -> DayStatus:
    """Status as an enum (SQLite may return str)."""
    return DayStatus(day.status)


def is_terminal(status) -> bool:
    return DayStatus(status) in TERMINAL_STATES


def valid_transitions(from_state: DayStatus) -> List[DayStatus]:
    """Return the states reachable from ``from_state``."""
    return [t for (f, t) in _TRANSITIONS if f == DayStatus(from_state)]


def can_transition(from_state: DayStatus, to_state: DayStatus) -> bool:
    return (DayStatus(from_state), DayStatus(to_state)) in _TRANSITIONS


def deadline_for(start_date: datetime, day_number: int) -> datetime:
    """End of the 24-hour window for ``day_number``."""
    return as_utc(start_date) + timedelta(days=day_number)


def is_overdue(exam: Exam, day: ExamDay, now: datetime) -> bool:
    return as_utc(now) > deadline_for(exam.start_date, day.day_number)


class DayStateMachine:
    """Performs ExamDay transitions and records each one in the audit log."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def transition(
        self,
        exam: Exam,
        day: ExamDay,
        to_state: DayStatus,
        now: datetime,
        user_id: Optional[uuid.UUID] = None,
    ) -> ExamDay:
        """Move ``day`` to ``to_state`` or raise InvalidStateError."""
        from_state = day_status(day)
        if not can_transition(from_state, to_state):
            raise InvalidStateError(
                f"Day {day.day_number} cannot move from {from_state.value} to {to_state.value}",
                current=from_state,
                expected=[f.value for (f, t) in _TRANSITIONS if t == to_state],
                day_number=day.day_number,
            )

        day.status = to_state
        if to_state == DayStatus.IN_PROGRESS:
            day.started_at = now
        elif to_state in TERMINAL_STATES:
            day.completed_at = now

        await self.event_store.log(
            event_type=_EVENTS[to_state],
            entity_type="exam_day",
            entity_id=day.id,
            user_id=user_id,
            payload={
                "exam_id": exam.id,
                "day_number": day.day_number,
                "from_state": from_state,
                "to_state": to_state,
                "trigger": _TRANSITIONS[(from_state, to_state)],
            },
        )
        logger.info(
            "Exam day %s -> %s",
            from_state.value,
            to_state.value,
            extra={"exam_id": str(exam.id), "day_number": day.day_number},
        )
        return day

    async def unlock_next(
        self,
        exam: Exam,
        day_number: int,
        now: datetime,
        user_id: Optional[uuid.UUID] = None,
    ) -> Optional[ExamDay]:
        """
        Make day ``day_number + 1`` AVAILABLE if it is still LOCKED.

        Idempotent: a next day that has already moved on (available, started,
        or forced MISSED by the sweeper) is left untouched. Returns the next
        day, or None on the last day.
        """
        next_day = exam.day(day_number + 1)
        if next_day is None:
            return None
        if day_status(next_day) == DayStatus.LOCKED:
            await self.transition(exam, next_day, DayStatus.AVAILABLE, now, user_id)
        return next_day

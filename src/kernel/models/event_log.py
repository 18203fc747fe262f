"""
Immutable event log for audit trail.

Every exam and exam-day transition is logged here in the same transaction
as the state change itself.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String, func, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, generate_uuid, utcnow


class EventType(str, Enum):
    """All event types for the audit log."""

    # Campaign events
    EXAM_CREATED = "exam.created"
    EXAM_STARTED = "exam.started"
    EXAM_COMPLETED = "exam.completed"
    EXAM_PAUSED = "exam.paused"
    EXAM_RESUMED = "exam.resumed"
    EXAM_DELETED = "exam.deleted"

    # Day events
    DAY_UNLOCKED = "exam_day.unlocked"
    DAY_STARTED = "exam_day.started"
    DAY_COMPLETED = "exam_day.completed"
    DAY_MISSED = "exam_day.missed"

    # Session events
    ANSWER_RECORDED = "exam_session.answer_recorded"


class EventLog(Base):
    """
    Immutable audit event log.

    This table is append-only - no updates or deletes allowed.
    """

    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )

    event_type: Mapped[EventType] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    # Entity reference
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
        index=True,
    )

    # Actor; None for sweeper-driven transitions
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )

    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
        Index("ix_event_logs_type_time", "event_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.entity_type}:{self.entity_id}>"

"""
Exam campaign models - the exam aggregate, its days and per-day result snapshots.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow

if TYPE_CHECKING:
    from src.kernel.models.question import Subject
    from src.kernel.models.exam_session import ExamSession


class ExamStatus(str, Enum):
    """Campaign lifecycle status."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class DayStatus(str, Enum):
    """Exam day lifecycle status."""
    LOCKED = "locked"
    AVAILABLE = "available"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MISSED = "missed"


LIVE_EXAM_STATUSES = (ExamStatus.NOT_STARTED, ExamStatus.IN_PROGRESS)

# Partial-index predicate shared by PostgreSQL and SQLite
_LIVE_PREDICATE = text("status IN ('not_started', 'in_progress')")


class Exam(Base, TimestampMixin):
    """Multi-day mock examination campaign owned by a single user."""

    __tablename__ = "exams"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    total_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    questions_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=40)
    duration_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=180)
    current_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status: Mapped[ExamStatus] = mapped_column(
        String(20),
        default=ExamStatus.NOT_STARTED,
        nullable=False,
    )

    # Cumulative totals, always recomputed from subject_results
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overall_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    days: Mapped[List["ExamDay"]] = relationship(
        "ExamDay",
        back_populates="exam",
        cascade="all, delete-orphan",
        order_by="ExamDay.day_number",
    )
    results: Mapped[List["SubjectResult"]] = relationship(
        "SubjectResult",
        back_populates="exam",
        cascade="all, delete-orphan",
        order_by="SubjectResult.day_number",
    )

    __table_args__ = (
        # At most one live exam per user
        Index(
            "uq_exams_user_live",
            "user_id",
            unique=True,
            postgresql_where=_LIVE_PREDICATE,
            sqlite_where=_LIVE_PREDICATE,
        ),
    )

    def day(self, day_number: int) -> Optional["ExamDay"]:
        for d in self.days:
            if d.day_number == day_number:
                return d
        return None

    def __repr__(self) -> str:
        return f"<Exam {self.id} status={self.status}>"


class ExamDay(Base):
    """One single-subject day of an exam campaign."""

    __tablename__ = "exam_days"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    exam_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_number: Mapped[int] = mapped_column(Integer, nullable=False)
    subject_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("subjects.id", ondelete="RESTRICT"),
        nullable=False,
    )
    status: Mapped[DayStatus] = mapped_column(
        String(20),
        default=DayStatus.LOCKED,
        nullable=False,
    )
    session_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("exam_sessions.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    total_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    grade: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Optimistic concurrency: bumped on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    exam: Mapped["Exam"] = relationship("Exam", back_populates="days")
    subject: Mapped["Subject"] = relationship("Subject")
    session: Mapped[Optional["ExamSession"]] = relationship("ExamSession")

    __table_args__ = (
        UniqueConstraint("exam_id", "day_number", name="uq_exam_days_exam_day_number"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<ExamDay {self.day_number} status={self.status}>"


class DayOutcome(str, Enum):
    """How a day's result snapshot came to be."""
    COMPLETED = "completed"
    MISSED = "missed"


class SubjectResult(Base):
    """
    Immutable snapshot of a finished exam day.

    Holds its own copy of every question/answer pair so later edits to
    questions or sessions cannot alter historical results.
    """

    __tablename__ = "subject_results"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    exam_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    exam_day_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("exam_days.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    day_number: Mapped[int] = mapped_column(Integer, nullable=False)
    subject_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("subjects.id", ondelete="RESTRICT"),
        nullable=False,
    )
    outcome: Mapped[DayOutcome] = mapped_column(String(20), nullable=False)

    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False)
    wrong_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    grade: Mapped[str] = mapped_column(String(2), nullable=False)
    time_taken_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    answers: Mapped[list] = mapped_column(JSON, nullable=False)

    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    exam: Mapped["Exam"] = relationship("Exam", back_populates="results")

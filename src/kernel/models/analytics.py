"""
Per-user performance rollup keyed by (subject, topic).
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, TimestampMixin, generate_uuid


class PerformanceAnalytics(Base, TimestampMixin):
    """Running totals of a user's answers for one subject/topic pair."""

    __tablename__ = "performance_analytics"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    subject_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("subjects.id", ondelete="CASCADE"),
        nullable=False,
    )
    topic_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("topics.id", ondelete="SET NULL"),
        nullable=True,
    )

    total_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wrong_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accuracy_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_study_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_time_per_question: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_practiced: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "subject_id", "topic_id",
            name="uq_performance_analytics_user_subject_topic",
        ),
    )

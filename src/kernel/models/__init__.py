"""
Kernel Data Models

Core SQLAlchemy models: the question store, exam campaigns and their days,
exam sessions, result snapshots, performance rollups and the audit log.
"""

from src.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow, as_utc
from src.kernel.models.question import (
    Subject,
    Topic,
    Question,
    QuestionOption,
    DifficultyLevel,
)
from src.kernel.models.exam import (
    Exam,
    ExamDay,
    ExamStatus,
    DayStatus,
    DayOutcome,
    SubjectResult,
    LIVE_EXAM_STATUSES,
)
from src.kernel.models.exam_session import ExamSession, ExamAnswer, SessionStatus
from src.kernel.models.analytics import PerformanceAnalytics
from src.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    "as_utc",
    # Question store
    "Subject",
    "Topic",
    "Question",
    "QuestionOption",
    "DifficultyLevel",
    # Exam
    "Exam",
    "ExamDay",
    "ExamStatus",
    "DayStatus",
    "DayOutcome",
    "SubjectResult",
    "LIVE_EXAM_STATUSES",
    # Session
    "ExamSession",
    "ExamAnswer",
    "SessionStatus",
    # Analytics
    "PerformanceAnalytics",
    # Event Log
    "EventLog",
    "EventType",
]

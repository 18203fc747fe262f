"""
Stable Kernel Layer

Persistence models, the audit event log, identity resolution and the error
taxonomy shared by every engine.

Invariants:
- All state changes logged before commit; logs immutable
- Ownership failures surface as NotFound, never as Forbidden
"""

from src.kernel.models import (
    Exam,
    ExamDay,
    ExamStatus,
    DayStatus,
    ExamSession,
    ExamAnswer,
    SubjectResult,
    EventLog,
    EventType,
)

__all__ = [
    "Exam",
    "ExamDay",
    "ExamStatus",
    "DayStatus",
    "ExamSession",
    "ExamAnswer",
    "SubjectResult",
    "EventLog",
    "EventType",
]

"""
Pydantic schemas for API request/response validation.
"""

from src.schemas.exam import (
    ExamCreate,
    CompleteDayRequest,
    AnswerSubmit,
    AnswerResponse,
    ExamResponse,
    ExamListItem,
    ExamDayResponse,
    StartDayResponse,
    CompleteDayResponse,
    GradeReportResponse,
)
from src.schemas.common import (
    ErrorResponse,
    ValidationErrorResponse,
    HealthResponse,
)

__all__ = [
    # Exam
    "ExamCreate",
    "CompleteDayRequest",
    "AnswerSubmit",
    "AnswerResponse",
    "ExamResponse",
    "ExamListItem",
    "ExamDayResponse",
    "StartDayResponse",
    "CompleteDayResponse",
    "GradeReportResponse",
    # Common
    "ErrorResponse",
    "ValidationErrorResponse",
    "HealthResponse",
]

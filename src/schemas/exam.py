"""
Pydantic schemas for the exam API.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ExamCreate(BaseModel):
    """Exam creation request: one subject per day, in day order."""

    subject_ids: List[uuid.UUID] = Field(..., min_length=1)
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class CompleteDayRequest(BaseModel):
    """Body for completing a day."""

    session_id: uuid.UUID


class AnswerSubmit(BaseModel):
    """Single answer on a day's sheet. ``selected_option=None`` clears it."""

    question_id: uuid.UUID
    selected_option: Optional[str] = Field(None, min_length=1, max_length=5)
    time_spent_seconds: int = Field(0, ge=0)


class SubjectSummary(BaseModel):
    id: uuid.UUID
    name: str
    code: str


class AnswerResponse(BaseModel):
    """One slot on an answer sheet. Correctness is hidden until the day ends."""

    question_id: uuid.UUID
    position: int
    selected_option: Optional[str] = None
    is_correct: Optional[bool] = None
    time_spent_seconds: int = 0
    answered_at: Optional[datetime] = None


class ExamSessionResponse(BaseModel):
    id: uuid.UUID
    name: str
    status: str
    question_count: int
    duration_minutes: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    answers: List[AnswerResponse] = []


class ExamDayResponse(BaseModel):
    id: uuid.UUID
    day_number: int
    subject_id: uuid.UUID
    subject: Optional[SubjectSummary] = None
    status: str
    deadline: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_questions: int
    correct_answers: int
    score: Optional[float] = None
    grade: Optional[str] = None
    time_spent_seconds: int = 0
    session: Optional[ExamSessionResponse] = None


class ExamResponse(BaseModel):
    """Exam aggregate with its days."""

    id: uuid.UUID
    name: str
    status: str
    subject_ids: List[uuid.UUID]
    start_date: datetime
    total_days: int
    questions_per_day: int
    duration_per_day: int
    current_day: int
    total_questions: int
    correct_answers: int
    overall_score: Optional[float] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    days: List[ExamDayResponse]


class ExamListItem(BaseModel):
    """Exam list item response."""

    id: uuid.UUID
    name: str
    status: str
    start_date: datetime
    total_days: int
    current_day: int
    overall_score: Optional[float] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    days: List[ExamDayResponse] = []


class QuestionOptionSchema(BaseModel):
    label: str
    content: str


class ExamQuestionSchema(BaseModel):
    """Question as served for a day: no correct-answer flag."""

    id: uuid.UUID
    subject_id: uuid.UUID
    topic_id: Optional[uuid.UUID] = None
    content: str
    difficulty: Optional[str] = None
    options: List[QuestionOptionSchema]


class StartDayResponse(BaseModel):
    exam_id: uuid.UUID
    day_number: int
    subject_id: uuid.UUID
    session_id: uuid.UUID
    started_at: datetime
    deadline: datetime
    duration_minutes: int
    questions: List[ExamQuestionSchema]


class DayResultResponse(BaseModel):
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


class NextDayResponse(BaseModel):
    day_number: int
    subject_id: uuid.UUID
    status: str
    deadline: datetime


class ProgressResponse(BaseModel):
    completed_days: int
    total_days: int
    overall_score: Optional[float] = None
    is_complete: bool


class CompleteDayResponse(BaseModel):
    day_result: DayResultResponse
    next_day: Optional[NextDayResponse] = None
    progress: ProgressResponse


class GradeReportResponse(BaseModel):
    """Per-day results and the overall grade."""

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
    days: List[DayResultResponse]

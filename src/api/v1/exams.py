"""
Exam endpoints - campaign lifecycle, day sittings and grade reports.
"""

import uuid
from typing import List

from fastapi import APIRouter, Response, status

from src.api.deps import CurrentUserId, Orchestrator
from src.engines.exam.day_state_machine import deadline_for
from src.engines.exam.orchestrator import DayResultSummary
from src.kernel.models.base import as_utc
from src.kernel.models.exam import Exam, ExamDay
from src.kernel.models.exam_session import ExamSession, SessionStatus
from src.schemas.exam import (
    AnswerResponse,
    AnswerSubmit,
    CompleteDayRequest,
    CompleteDayResponse,
    DayResultResponse,
    ExamCreate,
    ExamDayResponse,
    ExamListItem,
    ExamResponse,
    ExamSessionResponse,
    GradeReportResponse,
    NextDayResponse,
    ProgressResponse,
    StartDayResponse,
    SubjectSummary,
)

router = APIRouter()


def _enum_val(e) -> str:
    """Safely get enum value (SQLite may return str)."""
    return e.value if hasattr(e, "value") else str(e)


def _session_to_schema(exam_session: ExamSession) -> ExamSessionResponse:
    finished = SessionStatus(exam_session.status) != SessionStatus.IN_PROGRESS
    return ExamSessionResponse(
        id=exam_session.id,
        name=exam_session.name,
        status=_enum_val(exam_session.status),
        question_count=exam_session.question_count,
        duration_minutes=exam_session.duration_minutes,
        started_at=as_utc(exam_session.started_at),
        completed_at=as_utc(exam_session.completed_at),
        answers=[
            AnswerResponse(
                question_id=a.question_id,
                position=a.position,
                selected_option=a.selected_option,
                is_correct=a.is_correct if finished else None,
                time_spent_seconds=a.time_spent_seconds,
                answered_at=as_utc(a.answered_at),
            )
            for a in exam_session.answers
        ],
    )


def _day_to_schema(exam: Exam, day: ExamDay, include_session: bool = True) -> ExamDayResponse:
    subject = day.subject
    return ExamDayResponse(
        id=day.id,
        day_number=day.day_number,
        subject_id=day.subject_id,
        subject=SubjectSummary(id=subject.id, name=subject.name, code=subject.code) if subject else None,
        status=_enum_val(day.status),
        deadline=deadline_for(exam.start_date, day.day_number),
        started_at=as_utc(day.started_at),
        completed_at=as_utc(day.completed_at),
        total_questions=day.total_questions,
        correct_answers=day.correct_answers,
        score=day.score,
        grade=day.grade,
        time_spent_seconds=day.time_spent_seconds,
        session=_session_to_schema(day.session) if include_session and day.session else None,
    )


def _exam_to_schema(exam: Exam) -> ExamResponse:
    return ExamResponse(
        id=exam.id,
        name=exam.name,
        status=_enum_val(exam.status),
        subject_ids=[uuid.UUID(str(s)) for s in exam.subject_ids],
        start_date=as_utc(exam.start_date),
        total_days=exam.total_days,
        questions_per_day=exam.questions_per_day,
        duration_per_day=exam.duration_per_day,
        current_day=exam.current_day,
        total_questions=exam.total_questions,
        correct_answers=exam.correct_answers,
        overall_score=exam.overall_score,
        completed_at=as_utc(exam.completed_at),
        created_at=as_utc(exam.created_at),
        days=[_day_to_schema(exam, d) for d in exam.days],
    )


def _result_to_schema(result: DayResultSummary) -> DayResultResponse:
    return DayResultResponse(**result.model_dump())


@router.post("", response_model=ExamResponse, status_code=status.HTTP_201_CREATED)
async def create_exam(body: ExamCreate, user_id: CurrentUserId, orchestrator: Orchestrator):
    """Create a campaign; day 1 is available immediately."""
    exam = await orchestrator.create_exam(user_id, body.subject_ids, name=body.name)
    return _exam_to_schema(exam)


@router.get("", response_model=List[ExamListItem])
async def list_exams(user_id: CurrentUserId, orchestrator: Orchestrator):
    """List the caller's exams, newest first."""
    exams = await orchestrator.list_user_exams(user_id)
    return [
        ExamListItem(
            id=e.id,
            name=e.name,
            status=_enum_val(e.status),
            start_date=as_utc(e.start_date),
            total_days=e.total_days,
            current_day=e.current_day,
            overall_score=e.overall_score,
            completed_at=as_utc(e.completed_at),
            created_at=as_utc(e.created_at),
            days=[_day_to_schema(e, d, include_session=False) for d in e.days],
        )
        for e in exams
    ]


@router.get("/{exam_id}", response_model=ExamResponse)
async def get_exam(exam_id: uuid.UUID, user_id: CurrentUserId, orchestrator: Orchestrator):
    exam = await orchestrator.get_exam(exam_id, user_id)
    return _exam_to_schema(exam)


@router.get("/{exam_id}/results", response_model=GradeReportResponse)
async def get_exam_results(exam_id: uuid.UUID, user_id: CurrentUserId, orchestrator: Orchestrator):
    """Grade report: per-day snapshots plus overall score and grade."""
    report = await orchestrator.get_exam_results(exam_id, user_id)
    return GradeReportResponse(
        **report.model_dump(exclude={"days"}),
        days=[_result_to_schema(d) for d in report.days],
    )


@router.post("/{exam_id}/days/{day_number}/start", response_model=StartDayResponse)
async def start_day(
    exam_id: uuid.UUID,
    day_number: int,
    user_id: CurrentUserId,
    orchestrator: Orchestrator,
):
    """Open an available day and return its questions (without answers)."""
    started = await orchestrator.start_day(exam_id, day_number, user_id)
    return StartDayResponse(**started.model_dump())


@router.post("/{exam_id}/days/{day_number}/answers", response_model=AnswerResponse)
async def record_answer(
    exam_id: uuid.UUID,
    day_number: int,
    body: AnswerSubmit,
    user_id: CurrentUserId,
    orchestrator: Orchestrator,
):
    answer = await orchestrator.record_answer(
        exam_id,
        day_number,
        user_id,
        body.question_id,
        body.selected_option,
        body.time_spent_seconds,
    )
    return AnswerResponse(
        question_id=answer.question_id,
        position=answer.position,
        selected_option=answer.selected_option,
        time_spent_seconds=answer.time_spent_seconds,
        answered_at=as_utc(answer.answered_at),
    )


@router.post("/{exam_id}/days/{day_number}/complete", response_model=CompleteDayResponse)
async def complete_day(
    exam_id: uuid.UUID,
    day_number: int,
    body: CompleteDayRequest,
    user_id: CurrentUserId,
    orchestrator: Orchestrator,
):
    """Score the day, unlock the next one and report progress."""
    completion = await orchestrator.complete_day(exam_id, day_number, body.session_id, user_id)
    return CompleteDayResponse(
        day_result=_result_to_schema(completion.day_result),
        next_day=NextDayResponse(**completion.next_day.model_dump()) if completion.next_day else None,
        progress=ProgressResponse(**completion.progress.model_dump()),
    )


@router.post("/{exam_id}/pause", response_model=ExamResponse)
async def pause_exam(exam_id: uuid.UUID, user_id: CurrentUserId, orchestrator: Orchestrator):
    exam = await orchestrator.pause_exam(exam_id, user_id)
    return _exam_to_schema(exam)


@router.post("/{exam_id}/resume", response_model=ExamResponse)
async def resume_exam(exam_id: uuid.UUID, user_id: CurrentUserId, orchestrator: Orchestrator):
    exam = await orchestrator.resume_exam(exam_id, user_id)
    return _exam_to_schema(exam)


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam(exam_id: uuid.UUID, user_id: CurrentUserId, orchestrator: Orchestrator):
    await orchestrator.delete_exam(exam_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

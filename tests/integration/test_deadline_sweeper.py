"""
Deadline sweeper: forced MISSED transitions, cascading unlocks, partial
credit for abandoned sittings and per-exam failure isolation.
"""

import uuid

import pytest
from sqlalchemy import select

from src.engines.exam.deadline_sweeper import DeadlineSweeper
from src.engines.exam.orchestrator import ExamOrchestrator
from src.kernel.models import (
    DayOutcome,
    DayStatus,
    ExamStatus,
    SessionStatus,
    SubjectResult,
)


async def _create_exam(session_maker, clock, exam_settings, subjects, user_id):
    async with session_maker() as session:
        orchestrator = ExamOrchestrator(session, clock=clock, settings=exam_settings)
        exam = await orchestrator.create_exam(user_id, [s.id for s in subjects])
        await session.commit()
        return exam.id


async def _load(session_maker, clock, exam_settings, exam_id, user_id):
    async with session_maker() as session:
        orchestrator = ExamOrchestrator(session, clock=clock, settings=exam_settings)
        exam = await orchestrator.get_exam(exam_id, user_id)
        await session.commit()
        return exam


def _statuses(exam):
    return [DayStatus(d.status) for d in exam.days]


@pytest.fixture
def sweeper(session_maker, clock) -> DeadlineSweeper:
    return DeadlineSweeper(session_factory=session_maker, clock=clock, interval_seconds=60)


class TestSweep:
    @pytest.mark.asyncio
    async def test_nothing_due_before_first_deadline(self, sweeper, session_maker, clock, exam_settings, subjects, user_id):
        await _create_exam(session_maker, clock, exam_settings, subjects, user_id)
        clock.advance(hours=14)  # 23:00 on the first day

        report = await sweeper.sweep_all()

        assert report.exams_checked == 0
        assert report.days_missed == 0

    @pytest.mark.asyncio
    async def test_overdue_day_missed_and_next_unlocked(self, sweeper, session_maker, clock, exam_settings, subjects, user_id):
        exam_id = await _create_exam(session_maker, clock, exam_settings, subjects, user_id)
        clock.advance(days=1)

        report = await sweeper.sweep_all()

        assert report.days_missed == 1
        exam = await _load(session_maker, clock, exam_settings, exam_id, user_id)
        assert _statuses(exam)[:3] == [DayStatus.MISSED, DayStatus.AVAILABLE, DayStatus.LOCKED]
        assert exam.day(1).correct_answers == 0
        assert exam.day(1).score == 0.0
        assert exam.current_day == 2

    @pytest.mark.asyncio
    async def test_cascades_over_several_elapsed_days(self, sweeper, session_maker, clock, exam_settings, subjects, user_id):
        exam_id = await _create_exam(session_maker, clock, exam_settings, subjects, user_id)
        clock.advance(days=4)

        report = await sweeper.sweep_all()

        assert report.days_missed == 4
        exam = await _load(session_maker, clock, exam_settings, exam_id, user_id)
        assert _statuses(exam) == [DayStatus.MISSED] * 4 + [DayStatus.AVAILABLE] + [DayStatus.LOCKED] * 2

    @pytest.mark.asyncio
    async def test_second_sweep_is_a_no_op(self, sweeper, session_maker, clock, exam_settings, subjects, user_id):
        await _create_exam(session_maker, clock, exam_settings, subjects, user_id)
        clock.advance(days=2)

        first = await sweeper.sweep_all()
        second = await sweeper.sweep_all()

        assert first.days_missed == 2
        assert second.days_missed == 0

    @pytest.mark.asyncio
    async def test_in_progress_day_keeps_partial_credit(self, sweeper, session_maker, clock, exam_settings, subjects, user_id):
        exam_id = await _create_exam(session_maker, clock, exam_settings, subjects, user_id)
        async with session_maker() as session:
            orchestrator = ExamOrchestrator(session, clock=clock, settings=exam_settings)
            started = await orchestrator.start_day(exam_id, 1, user_id)
            await orchestrator.record_answer(exam_id, 1, user_id, started.questions[0].id, "B")
            await session.commit()

        clock.advance(days=1)
        await sweeper.sweep_all()

        exam = await _load(session_maker, clock, exam_settings, exam_id, user_id)
        day = exam.day(1)
        assert DayStatus(day.status) == DayStatus.MISSED
        assert day.correct_answers == 1
        assert day.score == 33.33
        assert SessionStatus(day.session.status) == SessionStatus.EXPIRED
        assert exam.correct_answers == 1
        assert exam.total_questions == 3

        async with session_maker() as session:
            snapshot = (await session.execute(select(SubjectResult))).scalar_one()
        assert DayOutcome(snapshot.outcome) == DayOutcome.MISSED
        assert snapshot.skipped_questions == 2

    @pytest.mark.asyncio
    async def test_all_days_elapsed_completes_exam(self, sweeper, session_maker, clock, exam_settings, subjects, user_id):
        exam_id = await _create_exam(session_maker, clock, exam_settings, subjects, user_id)
        clock.advance(days=8)

        report = await sweeper.sweep_all()

        assert report.days_missed == 7
        exam = await _load(session_maker, clock, exam_settings, exam_id, user_id)
        assert ExamStatus(exam.status) == ExamStatus.COMPLETED
        assert exam.completed_at is not None
        assert exam.current_day == 7
        assert exam.overall_score is None

    @pytest.mark.asyncio
    async def test_paused_exam_days_still_expire(self, sweeper, session_maker, clock, exam_settings, subjects, user_id):
        exam_id = await _create_exam(session_maker, clock, exam_settings, subjects, user_id)
        async with session_maker() as session:
            await ExamOrchestrator(session, clock=clock, settings=exam_settings).pause_exam(exam_id, user_id)
            await session.commit()

        clock.advance(days=8)
        await sweeper.sweep_all()

        exam = await _load(session_maker, clock, exam_settings, exam_id, user_id)
        assert ExamStatus(exam.status) == ExamStatus.ABANDONED
        assert _statuses(exam) == [DayStatus.MISSED] * 7

        async with session_maker() as session:
            resumed = await ExamOrchestrator(session, clock=clock, settings=exam_settings).resume_exam(exam_id, user_id)
            await session.commit()
        assert ExamStatus(resumed.status) == ExamStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failure_on_one_exam_does_not_stop_others(
        self, sweeper, session_maker, clock, exam_settings, subjects, monkeypatch
    ):
        broken_user, healthy_user = uuid.uuid4(), uuid.uuid4()
        broken_id = await _create_exam(session_maker, clock, exam_settings, subjects, broken_user)
        healthy_id = await _create_exam(session_maker, clock, exam_settings, subjects, healthy_user)
        clock.advance(days=1)

        original = DeadlineSweeper.sweep_exam

        async def flaky_sweep(self, exam_id, now=None):
            if exam_id == broken_id:
                raise RuntimeError("lock timeout")
            return await original(self, exam_id, now)

        monkeypatch.setattr(DeadlineSweeper, "sweep_exam", flaky_sweep)

        report = await sweeper.sweep_all()

        assert report.exams_checked == 2
        assert report.failures == [broken_id]
        assert report.days_missed == 1
        healthy = await _load(session_maker, clock, exam_settings, healthy_id, healthy_user)
        assert DayStatus(healthy.day(1).status) == DayStatus.MISSED


class TestLazySweep:
    @pytest.mark.asyncio
    async def test_get_exam_reconciles_without_background_sweep(self, session_maker, clock, exam_settings, subjects, user_id):
        exam_id = await _create_exam(session_maker, clock, exam_settings, subjects, user_id)
        clock.advance(days=1)

        exam = await _load(session_maker, clock, exam_settings, exam_id, user_id)

        assert _statuses(exam)[:2] == [DayStatus.MISSED, DayStatus.AVAILABLE]

    @pytest.mark.asyncio
    async def test_overdue_day_cannot_be_completed(self, session_maker, clock, exam_settings, subjects, user_id):
        from src.kernel.errors import InvalidStateError

        exam_id = await _create_exam(session_maker, clock, exam_settings, subjects, user_id)
        async with session_maker() as session:
            orchestrator = ExamOrchestrator(session, clock=clock, settings=exam_settings)
            started = await orchestrator.start_day(exam_id, 1, user_id)
            await session.commit()

        clock.advance(days=1)
        async with session_maker() as session:
            orchestrator = ExamOrchestrator(session, clock=clock, settings=exam_settings)
            with pytest.raises(InvalidStateError):
                await orchestrator.complete_day(exam_id, 1, started.session_id, user_id)

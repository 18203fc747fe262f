"""Answer recorder and the per-topic performance rollup."""

import uuid

import pytest
from sqlalchemy import select

from src.engines.exam.answer_recorder import AnswerRecorder
from src.engines.exam.orchestrator import ExamOrchestrator
from src.engines.exam.performance_rollup import tally_answers
from src.engines.exam.question_pool import QuestionPool, SqlQuestionStore
from src.kernel.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from src.kernel.models import PerformanceAnalytics


@pytest.fixture
def orchestrator(db_session, clock, exam_settings) -> ExamOrchestrator:
    return ExamOrchestrator(db_session, clock=clock, settings=exam_settings)


@pytest.fixture
def recorder(db_session) -> AnswerRecorder:
    return AnswerRecorder(db_session, QuestionPool(SqlQuestionStore(db_session)))


async def _start_first_day(orchestrator, subject_ids, user_id):
    exam = await orchestrator.create_exam(user_id, subject_ids)
    started = await orchestrator.start_day(exam.id, 1, user_id)
    return exam, started


class TestAnswerRecorder:
    @pytest.mark.asyncio
    async def test_correctness_from_store(self, orchestrator, recorder, subjects, user_id):
        _, started = await _start_first_day(orchestrator, [s.id for s in subjects], user_id)
        question_id = started.questions[0].id

        right = await recorder.record(started.session_id, user_id, question_id, "b", 12)
        assert right.selected_option == "B"
        assert right.is_correct is True
        assert right.time_spent_seconds == 12
        assert right.answered_at is not None

        wrong = await recorder.record(started.session_id, user_id, question_id, "C", 20)
        assert wrong.id == right.id
        assert wrong.is_correct is False

    @pytest.mark.asyncio
    async def test_clearing_an_answer(self, orchestrator, recorder, subjects, user_id):
        _, started = await _start_first_day(orchestrator, [s.id for s in subjects], user_id)
        question_id = started.questions[0].id
        await recorder.record(started.session_id, user_id, question_id, "B")

        cleared = await recorder.record(started.session_id, user_id, question_id, None)

        assert cleared.selected_option is None
        assert cleared.is_correct is False
        assert cleared.answered_at is None

    @pytest.mark.asyncio
    async def test_question_outside_session(self, orchestrator, recorder, subjects, user_id):
        _, started = await _start_first_day(orchestrator, [s.id for s in subjects], user_id)
        with pytest.raises(NotFoundError):
            await recorder.record(started.session_id, user_id, uuid.uuid4(), "A")

    @pytest.mark.asyncio
    async def test_unknown_option_label(self, orchestrator, recorder, subjects, user_id):
        _, started = await _start_first_day(orchestrator, [s.id for s in subjects], user_id)
        with pytest.raises(InvalidArgumentError):
            await recorder.record(started.session_id, user_id, started.questions[0].id, "E")

    @pytest.mark.asyncio
    async def test_foreign_session_is_not_found(self, orchestrator, recorder, subjects, user_id):
        _, started = await _start_first_day(orchestrator, [s.id for s in subjects], user_id)
        with pytest.raises(NotFoundError):
            await recorder.record(started.session_id, uuid.uuid4(), started.questions[0].id, "B")

    @pytest.mark.asyncio
    async def test_closed_session_rejects_answers(self, orchestrator, recorder, subjects, user_id):
        exam, started = await _start_first_day(orchestrator, [s.id for s in subjects], user_id)
        await orchestrator.complete_day(exam.id, 1, started.session_id, user_id)

        with pytest.raises(InvalidStateError):
            await recorder.record(started.session_id, user_id, started.questions[0].id, "B")


class TestPerformanceRollup:
    def test_tally_skips_unanswered_slots(self):
        subject_id, topic_id = uuid.uuid4(), uuid.uuid4()
        sheet = [
            {"topic_id": str(topic_id), "selected_option": "B", "is_correct": True, "time_spent_seconds": 10},
            {"topic_id": str(topic_id), "selected_option": "A", "is_correct": False, "time_spent_seconds": 20},
            {"topic_id": str(topic_id), "selected_option": None, "is_correct": False, "time_spent_seconds": 0},
            {"topic_id": None, "selected_option": "C", "is_correct": False, "time_spent_seconds": 5},
        ]

        tallies = {t.topic_id: t for t in tally_answers(subject_id, sheet)}

        assert tallies[topic_id].attempts == 2
        assert tallies[topic_id].correct == 1
        assert tallies[topic_id].wrong == 1
        assert tallies[topic_id].time_spent_seconds == 30
        assert tallies[None].attempts == 1

    @pytest.mark.asyncio
    async def test_completed_days_accumulate_per_topic(self, orchestrator, db_session, subjects, user_id):
        subject = subjects[0]
        exam = await orchestrator.create_exam(user_id, [subject.id] * 7)

        for day_number, choices in ((1, ["B", "B", "A"]), (2, ["B", None, None])):
            started = await orchestrator.start_day(exam.id, day_number, user_id)
            for q, choice in zip(started.questions, choices):
                await orchestrator.record_answer(exam.id, day_number, user_id, q.id, choice, 40)
            await orchestrator.complete_day(exam.id, day_number, started.session_id, user_id)

        rows = (
            await db_session.execute(
                select(PerformanceAnalytics).where(PerformanceAnalytics.user_id == user_id)
            )
        ).scalars().all()

        assert len(rows) == 1
        row = rows[0]
        assert row.subject_id == subject.id
        assert row.total_attempts == 4
        assert row.correct_answers == 3
        assert row.wrong_answers == 1
        assert row.accuracy_rate == 75.0
        assert row.total_study_time == 160
        assert row.average_time_per_question == 40
        assert row.last_practiced is not None

    @pytest.mark.asyncio
    async def test_day_without_answers_adds_no_rollup(self, orchestrator, db_session, subjects, user_id):
        exam, started = await _start_first_day(orchestrator, [s.id for s in subjects], user_id)
        await orchestrator.complete_day(exam.id, 1, started.session_id, user_id)

        rows = (await db_session.execute(select(PerformanceAnalytics))).scalars().all()
        assert rows == []

"""Unit tests for the question pool over an in-memory store."""

import uuid
from typing import Collection, Dict, List, Set

import pytest

from src.engines.exam.question_pool import (
    OptionRecord,
    QuestionPool,
    QuestionRecord,
    QuestionStore,
    dedupe,
    to_public,
)
from src.kernel.errors import InsufficientContentError


def _record(subject_id: uuid.UUID, correct: str = "C") -> QuestionRecord:
    return QuestionRecord(
        id=uuid.uuid4(),
        subject_id=subject_id,
        content="What is tested?",
        options=[
            OptionRecord(label=label, content=f"Option {label}", is_correct=(label == correct))
            for label in ("A", "B", "C", "D")
        ],
    )


class InMemoryStore(QuestionStore):
    def __init__(self, records: List[QuestionRecord]):
        self.records = records
        self.requested_limits: List[int] = []

    async def existing_subject_ids(self, subject_ids: Collection[uuid.UUID]) -> Set[uuid.UUID]:
        known = {r.subject_id for r in self.records}
        return {s for s in subject_ids if s in known}

    async def fetch_active_questions(self, subject_id: uuid.UUID, limit: int) -> List[QuestionRecord]:
        self.requested_limits.append(limit)
        return [r for r in self.records if r.subject_id == subject_id][:limit]

    async def get_questions(self, question_ids: Collection[uuid.UUID]) -> List[QuestionRecord]:
        wanted = set(question_ids)
        return [r for r in self.records if r.id in wanted]


class TestDraw:
    @pytest.mark.asyncio
    async def test_returns_exact_count_in_store_order(self):
        subject = uuid.uuid4()
        records = [_record(subject) for _ in range(5)]
        pool = QuestionPool(InMemoryStore(records))

        drawn = await pool.draw(subject, 3)

        assert [q.id for q in drawn] == [r.id for r in records[:3]]

    @pytest.mark.asyncio
    async def test_duplicates_from_store_are_dropped(self):
        subject = uuid.uuid4()
        first, second, third = (_record(subject) for _ in range(3))
        pool = QuestionPool(InMemoryStore([first, first, second, second, third]))

        drawn = await pool.draw(subject, 3)

        assert [q.id for q in drawn] == [first.id, second.id, third.id]

    @pytest.mark.asyncio
    async def test_short_pool_raises_with_counts(self):
        subject = uuid.uuid4()
        pool = QuestionPool(InMemoryStore([_record(subject), _record(subject)]))

        with pytest.raises(InsufficientContentError) as exc_info:
            await pool.draw(subject, 3)

        assert exc_info.value.details["available"] == 2
        assert exc_info.value.details["required"] == 3
        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_other_subjects_do_not_count(self):
        subject, other = uuid.uuid4(), uuid.uuid4()
        pool = QuestionPool(InMemoryStore([_record(other) for _ in range(5)]))

        with pytest.raises(InsufficientContentError):
            await pool.draw(subject, 1)


class TestLookup:
    @pytest.mark.asyncio
    async def test_lookup_keeps_correct_label(self):
        subject = uuid.uuid4()
        record = _record(subject, correct="D")
        pool = QuestionPool(InMemoryStore([record]))

        found: Dict[uuid.UUID, QuestionRecord] = await pool.lookup([record.id, uuid.uuid4()])

        assert list(found) == [record.id]
        assert found[record.id].correct_label == "D"

    @pytest.mark.asyncio
    async def test_missing_subjects_preserves_input_order(self):
        known = uuid.uuid4()
        unknown_a, unknown_b = uuid.uuid4(), uuid.uuid4()
        pool = QuestionPool(InMemoryStore([_record(known)]))

        missing = await pool.missing_subjects([unknown_b, known, unknown_a])

        assert missing == [unknown_b, unknown_a]


def test_public_question_hides_correct_flag():
    record = _record(uuid.uuid4())
    public = to_public(record).model_dump()

    assert [o["label"] for o in public["options"]] == ["A", "B", "C", "D"]
    assert all("is_correct" not in o for o in public["options"])


def test_dedupe_keeps_first_occurrence():
    subject = uuid.uuid4()
    a, b = _record(subject), _record(subject)
    assert dedupe([a, b, a]) == [a, b]

"""
Question Pool - draws the fixed-size question set for an exam day.

The pool sits in front of a QuestionStore. Callers only ever see options
(label + content); the correct option stays inside the store and is consulted
by the answer recorder after submission.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Collection, Dict, List, Optional, Set

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.kernel.errors import InsufficientContentError
from src.kernel.models.question import Question, Subject


class OptionRecord(BaseModel):
    """Answer option as held by the store."""

    label: str
    content: str
    is_correct: bool = False


class QuestionRecord(BaseModel):
    """Question as held by the store, including the correct option."""

    id: uuid.UUID
    subject_id: uuid.UUID
    topic_id: Optional[uuid.UUID] = None
    content: str
    difficulty: Optional[str] = None
    options: List[OptionRecord]

    @property
    def correct_label(self) -> Optional[str]:
        for option in self.options:
            if option.is_correct:
                return option.label
        return None


class PublicOption(BaseModel):
    """Option as shown to the candidate."""

    label: str
    content: str


class PublicQuestion(BaseModel):
    """Question as shown to the candidate: no correct-answer flag."""

    id: uuid.UUID
    subject_id: uuid.UUID
    topic_id: Optional[uuid.UUID] = None
    content: str
    difficulty: Optional[str] = None
    options: List[PublicOption]


class QuestionStore(ABC):
    """Read-only access to authored questions."""

    @abstractmethod
    async def existing_subject_ids(self, subject_ids: Collection[uuid.UUID]) -> Set[uuid.UUID]:
        """Return the subset of ``subject_ids`` that exist."""

    @abstractmethod
    async def fetch_active_questions(self, subject_id: uuid.UUID, limit: int) -> List[QuestionRecord]:
        """Return up to ``limit`` active questions for a subject, newest first."""

    @abstractmethod
    async def get_questions(self, question_ids: Collection[uuid.UUID]) -> List[QuestionRecord]:
        """Return the given questions (any order, missing ids omitted)."""


class SqlQuestionStore(QuestionStore):
    """QuestionStore backed by the subjects/questions tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def existing_subject_ids(self, subject_ids: Collection[uuid.UUID]) -> Set[uuid.UUID]:
        if not subject_ids:
            return set()
        q = select(Subject.id).where(Subject.id.in_(list(set(subject_ids))))
        result = await self.session.execute(q)
        return set(result.scalars().all())

    async def fetch_active_questions(self, subject_id: uuid.UUID, limit: int) -> List[QuestionRecord]:
        q = (
            select(Question)
            .options(selectinload(Question.options))
            .where(Question.subject_id == subject_id, Question.is_active.is_(True))
            .order_by(Question.created_at.desc(), Question.id)
            .limit(limit)
        )
        result = await self.session.execute(q)
        return [self._to_record(row) for row in result.scalars().all()]

    async def get_questions(self, question_ids: Collection[uuid.UUID]) -> List[QuestionRecord]:
        if not question_ids:
            return []
        q = (
            select(Question)
            .options(selectinload(Question.options))
            .where(Question.id.in_(list(set(question_ids))))
        )
        result = await self.session.execute(q)
        return [self._to_record(row) for row in result.scalars().all()]

    @staticmethod
    def _to_record(question: Question) -> QuestionRecord:
        difficulty = question.difficulty
        return QuestionRecord(
            id=question.id,
            subject_id=question.subject_id,
            topic_id=question.topic_id,
            content=question.content,
            difficulty=difficulty.value if hasattr(difficulty, "value") else difficulty,
            options=[
                OptionRecord(label=o.label, content=o.content, is_correct=o.is_correct)
                for o in sorted(question.options, key=lambda o: o.label)
            ],
        )


class QuestionPool:
    """
    Adapter over a QuestionStore used by the exam orchestrator.

    ``draw`` is all-or-nothing: it either returns exactly ``count`` distinct
    questions or raises InsufficientContentError without side effects.
    """

    def __init__(self, store: QuestionStore):
        self.store = store

    async def draw(self, subject_id: uuid.UUID, count: int) -> List[QuestionRecord]:
        """Return ``count`` distinct active questions for the subject, store order kept."""
        # Over-fetch slightly so duplicate rows from the store cannot starve the draw
        records = await self.store.fetch_active_questions(subject_id, count * 2)
        unique = dedupe(records)
        if len(unique) < count:
            raise InsufficientContentError(
                f"Subject has {len(unique)} active questions, {count} required",
                subject_id=subject_id,
                available=len(unique),
                required=count,
            )
        return unique[:count]

    async def lookup(self, question_ids: Collection[uuid.UUID]) -> Dict[uuid.UUID, QuestionRecord]:
        """Map question id -> QuestionRecord for grading and snapshots."""
        records = await self.store.get_questions(question_ids)
        return {r.id: r for r in records}

    async def missing_subjects(self, subject_ids: Collection[uuid.UUID]) -> List[uuid.UUID]:
        existing = await self.store.existing_subject_ids(subject_ids)
        return [s for s in subject_ids if s not in existing]


def dedupe(records: List[QuestionRecord]) -> List[QuestionRecord]:
    """Drop repeated question ids, keeping first occurrence."""
    seen: Set[uuid.UUID] = set()
    unique = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


def to_public(record: QuestionRecord) -> PublicQuestion:
    """Strip the correct-answer flag."""
    return PublicQuestion(
        id=record.id,
        subject_id=record.subject_id,
        topic_id=record.topic_id,
        content=record.content,
        difficulty=record.difficulty,
        options=[PublicOption(label=o.label, content=o.content) for o in record.options],
    )

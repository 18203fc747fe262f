"""
Pytest fixtures for exam progression tests.
"""

import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, List

# Environment must be in place before anything reads settings
_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_tmp.name}")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("EXAM_QUESTIONS_PER_DAY", "3")
os.environ.setdefault("SWEEP_ENABLED", "false")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.config import Settings, get_settings

get_settings.cache_clear()

from src.database import build_session_maker
from src.kernel.models import Base, Question, QuestionOption, Subject, Topic


class FakeClock:
    """Settable clock passed to engines in place of utcnow."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at 09:00 UTC; the campaign start is midnight of that day."""
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def exam_settings() -> Settings:
    return Settings(
        exam_total_days=7,
        exam_questions_per_day=3,
        exam_duration_minutes=60,
        sweep_enabled=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """File-backed SQLite so every connection sees the same database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'exam_test.db'}",
        echo=False,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker:
    return build_session_maker(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


async def create_subject(
    session: AsyncSession,
    index: int,
    questions: int = 4,
    correct_label: str = "B",
) -> Subject:
    """A subject with one topic and ``questions`` active four-option questions."""
    subject = Subject(
        id=uuid.uuid4(),
        name=f"Subject {index}",
        code=f"SUB{index}-{uuid.uuid4().hex[:6]}",
    )
    topic = Topic(id=uuid.uuid4(), name=f"Topic {index}", subject_id=subject.id)
    session.add_all([subject, topic])
    for q in range(questions):
        question = Question(
            id=uuid.uuid4(),
            content=f"Subject {index} question {q + 1}?",
            subject_id=subject.id,
            topic_id=topic.id,
        )
        question.options = [
            QuestionOption(label=label, content=f"Option {label}", is_correct=(label == correct_label))
            for label in ("A", "B", "C", "D")
        ]
        session.add(question)
    await session.flush()
    return subject


@pytest.fixture
def seed_subjects() -> Callable:
    """Factory: ``await seed_subjects(session, count, questions)`` returns committed subjects."""

    async def _seed(session: AsyncSession, count: int = 7, questions: int = 4) -> List[Subject]:
        subjects = [await create_subject(session, i + 1, questions) for i in range(count)]
        await session.commit()
        return subjects

    return _seed


@pytest_asyncio.fixture
async def subjects(db_session: AsyncSession, seed_subjects) -> List[Subject]:
    """Seven subjects with four questions each (correct option B)."""
    return await seed_subjects(db_session)


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()

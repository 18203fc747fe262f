"""
System test: exam API flow in-process over a temp-file SQLite database.

Covers auth, create/start/answer/complete, grade report, error mapping,
pause/resume and delete through the HTTP surface.
"""

import tempfile
import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
TEST_DB_PATH = _tmp.name

from src.config import get_settings

get_settings.cache_clear()

from src.database import build_session_maker, get_db
from src.kernel.identity.jwt import create_access_token
from src.kernel.models import Base
from src.main import app


TEST_ENGINE = create_async_engine(
    f"sqlite+aiosqlite:///{TEST_DB_PATH}",
    echo=False,
    connect_args={"check_same_thread": False},
)
TEST_SESSION_MAKER = build_session_maker(TEST_ENGINE)

API = "/api/v1/exams"


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TEST_SESSION_MAKER() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@pytest_asyncio.fixture
async def client():
    """Async client wired to the test database."""
    async with TEST_ENGINE.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest_asyncio.fixture
async def subject_ids(client, seed_subjects):
    async with TEST_SESSION_MAKER() as session:
        subjects = await seed_subjects(session)
    return [str(s.id) for s in subjects]


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {create_access_token(uuid.uuid4())}"}


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    r = await client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["sweeper"] == "disabled"


@pytest.mark.asyncio
async def test_requires_bearer_token(client: AsyncClient):
    r = await client.get(API)
    assert r.status_code == 401

    r = await client.get(API, headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_day_one_flow(client: AsyncClient, subject_ids, auth_headers):
    r = await client.post(API, json={"subject_ids": subject_ids}, headers=auth_headers)
    assert r.status_code == 201, r.text
    exam = r.json()
    exam_id = exam["id"]
    assert exam["status"] == "not_started"
    assert [d["status"] for d in exam["days"]][:2] == ["available", "locked"]
    assert exam["days"][0]["subject"]["name"] == "Subject 1"

    r = await client.post(f"{API}/{exam_id}/days/1/start", headers=auth_headers)
    assert r.status_code == 200, r.text
    started = r.json()
    assert len(started["questions"]) == 3
    assert all("is_correct" not in o for o in started["questions"][0]["options"])

    for i, q in enumerate(started["questions"]):
        r = await client.post(
            f"{API}/{exam_id}/days/1/answers",
            json={"question_id": q["id"], "selected_option": "B" if i < 2 else "D", "time_spent_seconds": 15},
            headers=auth_headers,
        )
        assert r.status_code == 200, r.text
        assert r.json()["is_correct"] is None

    r = await client.get(f"{API}/{exam_id}", headers=auth_headers)
    answers = r.json()["days"][0]["session"]["answers"]
    assert [a["selected_option"] for a in answers] == ["B", "B", "D"]
    assert all(a["is_correct"] is None for a in answers)

    r = await client.post(
        f"{API}/{exam_id}/days/1/complete",
        json={"session_id": started["session_id"]},
        headers=auth_headers,
    )
    assert r.status_code == 200, r.text
    completion = r.json()
    assert completion["day_result"]["score"] == 66.67
    assert completion["day_result"]["grade"] == "D"
    assert completion["next_day"]["day_number"] == 2
    assert completion["next_day"]["status"] == "available"
    assert completion["progress"] == {
        "completed_days": 1,
        "total_days": 7,
        "overall_score": 66.67,
        "is_complete": False,
    }

    r = await client.get(f"{API}/{exam_id}/results", headers=auth_headers)
    assert r.status_code == 200
    report = r.json()
    assert report["overall_grade"] == "D"
    assert report["completed_days"] == 1
    assert len(report["days"][0]["answers"]) == 3

    r = await client.get(API, headers=auth_headers)
    assert [e["id"] for e in r.json()] == [exam_id]


@pytest.mark.asyncio
async def test_error_mapping(client: AsyncClient, subject_ids, auth_headers):
    r = await client.post(API, json={"subject_ids": subject_ids[:3]}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_argument"

    r = await client.post(API, json={"subject_ids": subject_ids[:6] + [str(uuid.uuid4())]}, headers=auth_headers)
    assert r.status_code == 404

    r = await client.post(API, json={"subject_ids": subject_ids}, headers=auth_headers)
    exam_id = r.json()["id"]

    r = await client.post(API, json={"subject_ids": subject_ids}, headers=auth_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "conflict"

    r = await client.post(f"{API}/{exam_id}/days/2/start", headers=auth_headers)
    assert r.status_code == 409
    body = r.json()
    assert body["code"] == "invalid_state"
    assert body["context"]["current"] == "locked"

    r = await client.post(f"{API}/{exam_id}/days/1/start", headers=auth_headers)
    r = await client.post(
        f"{API}/{exam_id}/days/1/complete",
        json={"session_id": str(uuid.uuid4())},
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert r.json()["code"] == "mismatch"

    r = await client.post(f"{API}/{exam_id}/days/1/complete", json={}, headers=auth_headers)
    assert r.status_code == 422
    assert r.json()["detail"] == "Validation error"

    other = {"Authorization": f"Bearer {create_access_token(uuid.uuid4())}"}
    r = await client.get(f"{API}/{exam_id}", headers=other)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_pause_resume_and_delete(client: AsyncClient, subject_ids, auth_headers):
    r = await client.post(API, json={"subject_ids": subject_ids, "name": "Spring mock"}, headers=auth_headers)
    exam_id = r.json()["id"]
    assert r.json()["name"] == "Spring mock"

    r = await client.post(f"{API}/{exam_id}/pause", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "abandoned"

    r = await client.post(f"{API}/{exam_id}/days/1/start", headers=auth_headers)
    assert r.status_code == 409

    r = await client.post(f"{API}/{exam_id}/resume", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "in_progress"

    r = await client.delete(f"{API}/{exam_id}", headers=auth_headers)
    assert r.status_code == 204

    r = await client.get(f"{API}/{exam_id}", headers=auth_headers)
    assert r.status_code == 404

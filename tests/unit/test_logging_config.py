"""Log record rendering and backend-specific engine options."""

import json
import logging
import uuid

from sqlalchemy.pool import NullPool

from src.database import build_engine, is_sqlite_url
from src.logging_config import ContextFilter, JsonFormatter, request_id_var


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("src.engines.exam", logging.INFO, __file__, 1, "Exam day %s", ("missed",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestContextFilter:
    def test_renders_known_fields_in_order(self):
        record = _record(day_number=3, exam_id="e-1", unrelated="x")
        ContextFilter().filter(record)

        assert record.request_id == "-"
        assert record.context == " exam_id=e-1 day_number=3"

    def test_no_fields_renders_empty(self):
        record = _record()
        ContextFilter().filter(record)
        assert record.context == ""

    def test_picks_up_request_id(self):
        token = request_id_var.set("req-42")
        try:
            record = _record()
            ContextFilter().filter(record)
        finally:
            request_id_var.reset(token)
        assert record.request_id == "req-42"


class TestJsonFormatter:
    def test_emits_context_fields_only(self):
        exam_id = uuid.uuid4()
        record = _record(exam_id=exam_id, days_missed=2, unrelated="x")
        ContextFilter().filter(record)

        entry = json.loads(JsonFormatter().format(record))

        assert entry["message"] == "Exam day missed"
        assert entry["level"] == "INFO"
        assert entry["exam_id"] == str(exam_id)
        assert entry["days_missed"] == 2
        assert "unrelated" not in entry
        assert "request_id" not in entry


def test_sqlite_engine_is_unpooled():
    url = "sqlite+aiosqlite:///./unused.db"
    assert is_sqlite_url(url)
    assert not is_sqlite_url("postgresql+asyncpg://u:p@localhost/db")

    engine = build_engine(url)
    assert isinstance(engine.pool, NullPool)
    engine.sync_engine.dispose()

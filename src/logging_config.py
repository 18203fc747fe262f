"""
Logging for the exam progression service.

Engines log with ``extra=`` fields drawn from ``CONTEXT_FIELDS`` (exam_id,
day_number, ...). In development those fields are appended to the line as
``key=value`` pairs; in production each record is one JSON object.

Usage:
    from src.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Day started", extra={"exam_id": str(exam.id), "day_number": 3})
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Set by RequestIdMiddleware; background sweeps leave it unset
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Structured fields the service emits, in display order
CONTEXT_FIELDS = (
    "exam_id",
    "day_number",
    "session_id",
    "user_id",
    "position",
    "status",
    "overall_score",
    "exams_checked",
    "days_missed",
    "failures",
    "interval_seconds",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "code",
)

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite")


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def context_of(record: logging.LogRecord) -> Dict[str, Any]:
    """Known structured fields present on ``record``."""
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class ContextFilter(logging.Filter):
    """Stamp the request id and a ``key=value`` rendering of the context fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"  # type: ignore[attr-defined]
        fields = context_of(record)
        record.context = (  # type: ignore[attr-defined]
            " " + " ".join(f"{k}={v}" for k, v in fields.items()) if fields else ""
        )
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        req_id = getattr(record, "request_id", "-")
        if req_id != "-":
            entry["request_id"] = req_id
        for key, value in context_of(record).items():
            entry[key] = value if isinstance(value, (str, int, float, bool)) else str(value)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


DEV_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] req=%(request_id)s %(message)s%(context)s"


def configure_logging(
    *,
    log_level: str = "INFO",
    environment: str = "development",
    debug: bool = False,
) -> None:
    """
    Install a single stderr handler on the root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        environment: 'production' selects the JSON formatter
        debug: force DEBUG regardless of log_level
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(ContextFilter())
    if environment == "production":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%H:%M:%S"))

    root = logging.getLogger()
    root.setLevel(level)
    # Replace handlers so a reload does not duplicate output
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)

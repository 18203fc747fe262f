"""
Error taxonomy for the exam engines.

Engines raise these; the HTTP layer maps them to status codes in one place
(see ``src.main``). None of them are retried inside the engines.
"""

from typing import Any, Dict, Optional


class ExamError(Exception):
    """Base class for all exam engine errors."""

    code = "exam_error"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            body["context"] = {k: _jsonable(v) for k, v in self.details.items()}
        return body


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "value"):
        return value.value
    return str(value)


class InvalidArgumentError(ExamError):
    """Malformed input, e.g. wrong number of subjects."""

    code = "invalid_argument"
    status_code = 400


class NotFoundError(ExamError):
    """Unknown entity, or one the caller does not own."""

    code = "not_found"
    status_code = 404


class ConflictError(ExamError):
    """The user already has a live exam."""

    code = "conflict"
    status_code = 409


class InvalidStateError(ExamError):
    """Operation attempted against an exam or day in the wrong state."""

    code = "invalid_state"
    status_code = 409

    def __init__(
        self,
        message: str,
        current: Optional[Any] = None,
        expected: Optional[Any] = None,
        **details: Any,
    ):
        super().__init__(message, current=current, expected=expected, **details)


class InsufficientContentError(ExamError):
    """The question pool cannot supply the required number of questions."""

    code = "insufficient_content"
    status_code = 422


class MismatchError(ExamError):
    """A supplied identifier does not match the one linked to the day."""

    code = "mismatch"
    status_code = 400

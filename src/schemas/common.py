"""
Common schema types used across the API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None


class FieldError(BaseModel):
    field: str
    message: str
    type: str


class ValidationErrorResponse(BaseModel):
    """Request validation failure."""

    detail: str = "Validation error"
    errors: List[FieldError] = []
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    database: str = "connected"
    sweeper: str = "disabled"

"""
Exam Progression Engine

FastAPI application entry point.
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.deps import get_request_id
from src.api.middleware.request_id import RequestIdMiddleware
from src.api.v1 import router as api_v1_router
from src.config import get_settings
from src.database import close_db, init_db
from src.engines.exam.deadline_sweeper import DeadlineSweeper
from src.kernel.errors import ExamError
from src.logging_config import configure_logging, get_logger
from src.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)

_sweeper_task: Optional[asyncio.Task] = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Startup: logging, schema, deadline sweeper loop.
    Shutdown: cancel the sweeper, dispose the engine.
    """
    global _sweeper_task

    # Configure logging first
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")

    if settings.sweep_enabled:
        sweeper = DeadlineSweeper(interval_seconds=settings.sweep_interval_seconds)
        _sweeper_task = asyncio.create_task(sweeper.run(), name="deadline-sweeper")

    yield

    logger.info("Shutting down...")
    if _sweeper_task is not None:
        _sweeper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await _sweeper_task
        _sweeper_task = None
        logger.info("Deadline sweeper stopped")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Exam Progression Engine

    Multi-day mock examination campaigns: one subject per day, sequential
    unlocking, deadline forfeiture and a final grade report.

    ## Lifecycle

    - **Days**: LOCKED -> AVAILABLE -> IN_PROGRESS -> COMPLETED, or MISSED on deadline
    - **Exams**: NOT_STARTED -> IN_PROGRESS -> COMPLETED, pause/resume via ABANDONED
    - **Deadlines**: day N closes at start_date + N days
    - **Grades**: >=90 A, >=80 B, >=70 C, >=60 D, else F
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first: CORS last so it wraps every response
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_headers(request: Request) -> dict:
    req_id = get_request_id(request)
    return {"X-Request-ID": req_id} if req_id else {}


@app.exception_handler(ExamError)
async def exam_error_handler(request: Request, exc: ExamError):
    """Map engine errors to their HTTP status."""
    logger.info(
        "Request rejected: %s",
        exc.message,
        extra={"code": exc.code, "status_code": exc.status_code, "path": request.url.path},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=_error_headers(request),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    headers = _error_headers(request)
    if exc.headers:
        headers.update(exc.headers)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    content = {"detail": "Validation error", "errors": errors}
    req_id = get_request_id(request)
    if req_id:
        content["request_id"] = req_id
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content,
        headers=_error_headers(request),
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    req_id = get_request_id(request)
    if settings.debug:
        content = {
            "detail": str(exc),
            "type": type(exc).__name__,
            "request_id": req_id,
        }
    else:
        content = {"detail": "Internal server error", "request_id": req_id}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=_error_headers(request),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    if not settings.sweep_enabled:
        sweeper = "disabled"
    elif _sweeper_task is not None and not _sweeper_task.done():
        sweeper = "running"
    else:
        sweeper = "stopped"
    return HealthResponse(
        status="ok",
        version=settings.version,
        database="connected",
        sweeper=sweeper,
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


# Main entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )

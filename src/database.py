"""
Async engine and session factory.

SQLite (development and tests) runs without a pool so the deadline sweeper
and request handlers never share a connection. PostgreSQL gets a pooled
engine; that is where the exam row locks actually take effect.
"""

from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.config import get_settings

SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA foreign_keys=ON",
    "PRAGMA busy_timeout=5000",
)


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


def _apply_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    cursor = dbapi_conn.cursor()
    for pragma in SQLITE_PRAGMAS:
        cursor.execute(pragma)
    cursor.close()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Engine for ``url`` with the options its backend needs."""
    if not is_sqlite_url(url):
        return create_async_engine(url, echo=echo, pool_pre_ping=True, pool_size=5, max_overflow=10)

    sqlite_engine = create_async_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
    )
    event.listen(sqlite_engine.sync_engine, "connect", _apply_sqlite_pragmas)
    return sqlite_engine


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    """Sessions never autoflush; engines flush explicitly after each state change."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


settings = get_settings()
engine = build_engine(settings.database_url, echo=settings.debug)
async_session_maker = build_session_maker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session and one transaction per request: committed on success, rolled back on error."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create any missing tables (Alembic owns schema changes in production)."""
    from src.kernel.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()

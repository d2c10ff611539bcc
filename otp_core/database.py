"""
Database Module
===============
Async SQLAlchemy engine and session factory for the OTP tables.
"""

from typing import Any, AsyncGenerator, Dict
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    create_async_engine as sa_create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.orm import DeclarativeBase
import structlog

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


def create_async_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_pre_ping: bool = True,
    echo: bool = False,
) -> AsyncEngine:
    """
    Create and configure the async database engine.

    Call this once during application startup and pass the engine (or the
    session factory built from it) to whatever needs it.

    Args:
        database_url: Async connection string (postgresql+asyncpg://..., sqlite+aiosqlite://...)
        pool_size: Connection pool size (ignored for SQLite)
        max_overflow: Max overflow connections (ignored for SQLite)
        pool_pre_ping: Enable connection health checks
        echo: Log SQL statements

    Returns:
        Configured AsyncEngine instance
    """
    options: Dict[str, Any] = {"echo": echo, "pool_pre_ping": pool_pre_ping}
    if not database_url.startswith("sqlite"):
        options.update(pool_size=pool_size, max_overflow=max_overflow)

    engine = sa_create_async_engine(database_url, **options)
    logger.info("Database engine initialized", dialect=engine.dialect.name)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Build the session factory used by the repository.

    Usage:
        factory = create_session_factory(engine)
        async with factory() as session:
            ...
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for a session wrapped in a single transaction.

    Commits on success and rolls back on exception.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_models(engine: AsyncEngine) -> None:
    """Create the OTP tables if they do not exist."""
    from .storage import tables  # noqa: F401  (registers the models)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_engine(engine: AsyncEngine) -> None:
    """Dispose the engine. Call during application shutdown."""
    await engine.dispose()
    logger.info("Database engine closed")

"""
Async session management for SQLAlchemy.

Provides:
- Async engine and session factory
- FastAPI dependency for injecting sessions
- Lifecycle management (init_db, close_db)
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bankgame.data.config import get_settings
from bankgame.data.models import Base

logger = logging.getLogger(__name__)

# Global engine and session factory (initialized once)
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Get the global async engine.

    Raises:
        RuntimeError: If engine not initialized (call init_db first)
    """
    if _engine is None:
        raise RuntimeError(
            "Database engine not initialized. Call init_db() first."
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the global async session factory.

    Raises:
        RuntimeError: If session factory not initialized
    """
    if _async_session_factory is None:
        raise RuntimeError(
            "Session factory not initialized. Call init_db() first."
        )
    return _async_session_factory


async def init_db(database_url: Optional[str] = None) -> None:
    """
    Initialize the database engine and session factory.

    This should be called once at application startup (e.g., in FastAPI lifespan).

    Args:
        database_url: Overrides DATABASE_URL (tests use an in-memory SQLite URL)
    """
    global _engine, _async_session_factory

    if database_url is None:
        settings = get_settings()
        url = settings.database_url
        engine_kwargs = settings.get_engine_kwargs()
    else:
        url = database_url
        engine_kwargs = {}
    logger.info(f"Initializing database connection: {url.split('@')[-1]}")

    if url.startswith("sqlite") and ":memory:" in url:
        # One shared connection, or every session would see its own empty database.
        engine_kwargs = {**engine_kwargs, "poolclass": StaticPool}
    _engine = create_async_engine(url, **engine_kwargs)

    _async_session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Records are converted to plain dataclasses right away
        autoflush=False,
    )

    logger.info("Database initialized successfully")


async def close_db() -> None:
    """
    Close the database engine and cleanup resources.

    This should be called at application shutdown (e.g., in FastAPI lifespan).
    """
    global _engine, _async_session_factory

    if _engine is not None:
        logger.info("Closing database connection")
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connection closed")


async def create_tables() -> None:
    """
    Create all tables defined in Base.metadata.

    Used for local SQLite databases and tests.
    """
    engine = get_engine()
    logger.warning("Creating tables directly from model metadata")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Tables created successfully")


# ---- FastAPI Dependency ----


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    The repository commits its own transactions; anything left open is
    rolled back when the request finishes.
    """
    factory = get_session_factory()

    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()

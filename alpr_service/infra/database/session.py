"""Async database engine and session management (psycopg3 in production).

The engine is created lazily on first use so that importing this module never
opens a connection and tests can point ``DATABASE_URL`` at SQLite before
anything touches the store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from alpr_service.core.settings import get_db_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from alpr_service.core.settings.postgres import PostgresSettings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(settings: PostgresSettings | None = None) -> AsyncEngine:
    """Create a new async engine from database settings."""
    settings = settings or get_db_settings()
    return create_async_engine(
        settings.get_sqlalchemy_url(),
        **settings.sqlalchemy_engine_kwargs(),
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``engine`` with the service's defaults."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
    return _session_factory


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Example:
        async with get_async_session() as session:
            result = await session.execute(select(AnprEvent))
    """
    async with get_session_factory()() as session:
        yield session


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """Create all mapped tables that do not exist yet.

    Development/test fallback for environments where Alembic has not run.
    """
    # Register models on Base.metadata
    from alpr_service.core.database import Base
    from alpr_service.features.anpr import models as _anpr_models  # noqa: F401
    from alpr_service.infra.events.outbox import models as _outbox_models  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_database() -> None:
    """Verify connectivity and optionally create tables.

    Raises:
        Exception: Whatever the driver raises when the store is unreachable.
    """
    settings = get_db_settings()
    engine = get_engine()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(
            "Failed to connect to database",
            extra={"host": settings.host, "database": settings.name, "error": str(e)},
        )
        raise

    if settings.create_tables or settings.is_sqlite:
        await create_tables(engine)

    logger.info(
        "Database connection established successfully",
        extra={"host": settings.host, "database": settings.name},
    )


async def close_database() -> None:
    """Dispose the engine and forget the cached factory.

    This should be called during application shutdown.
    """
    global _engine, _session_factory
    if _engine is None:
        return

    logger.info("Closing database connection")
    try:
        await _engine.dispose()
        logger.info("Database connection closed successfully")
    except Exception as e:
        logger.exception("Error closing database connection", extra={"error": str(e)})
    finally:
        _engine = None
        _session_factory = None


__all__ = [
    "build_engine",
    "build_session_factory",
    "close_database",
    "create_tables",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_database",
]

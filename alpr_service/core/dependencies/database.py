"""Database dependencies for FastAPI route handlers.

Two session getters share one session factory:

1. ``get_db_session()`` (this module): FastAPI dependency, session lifetime
   tied to the HTTP request.
2. ``get_async_session()`` (infra.database): plain async context manager for
   workers and CLI commands.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from alpr_service.infra.database import get_async_session


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency for database session.

    Example:
        @router.get("/items")
        async def list_items(session: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with get_async_session() as session:
        yield session

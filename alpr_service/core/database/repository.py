"""Minimal generic repository for SQLAlchemy models.

Session is always explicit: repositories never commit or open transactions
themselves, callers own the unit of work. For queries not covered here, use
the session directly.

Example:
    class AnprEventRepository(BaseRepository[AnprEvent]):
        async def find_by_camera(self, session, camera_id): ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Thin CRUD convenience layer.

    Provides:
        - get(session, id) -> T | None
        - create(session, instance) -> T
    """

    __slots__ = ("model", "_logger")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        self._logger = logging.getLogger(f"repository.{model.__name__}")

    async def get(self, session: AsyncSession, id: Any) -> T | None:  # noqa: A002
        """Get entity by primary key."""
        instance = await session.get(self.model, id)
        self._logger.debug(
            "db.get: %s(%s) -> %s",
            self.model.__name__,
            id,
            "found" if instance else "not found",
        )
        return instance

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Add a new entity and flush so server-side state is visible.

        The caller owns the transaction; nothing is committed here.
        """
        session.add(instance)
        await session.flush()
        return instance

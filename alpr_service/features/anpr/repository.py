"""Repository for ALPR events."""

from __future__ import annotations

from alpr_service.core.database.repository import BaseRepository
from alpr_service.features.anpr.models import AnprEvent


class AnprEventRepository(BaseRepository[AnprEvent]):
    def __init__(self) -> None:
        super().__init__(AnprEvent)


__all__ = ["AnprEventRepository"]

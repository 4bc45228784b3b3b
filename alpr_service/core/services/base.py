"""Base service class for business logic."""

from __future__ import annotations

import logging


class BaseService:
    """Base class for all service classes.

    Example:
        class AnprEventWriter(BaseService):
            async def record_event(self, ...):
                self.logger.info("ALPR event recorded", extra={"event_id": event.id})
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

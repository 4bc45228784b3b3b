"""Event Writer: atomic event + outbox insert for ingested plate reads."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from alpr_service.core.database import new_id, utcnow
from alpr_service.core.exceptions import StoreError
from alpr_service.core.services.base import BaseService
from alpr_service.features.anpr.models import AnprEvent
from alpr_service.features.anpr.repository import AnprEventRepository
from alpr_service.features.anpr.schemas import AnprEventMessage
from alpr_service.infra.events.outbox.models import OutboxRecord, OutboxStatus
from alpr_service.infra.events.outbox.repository import OutboxRepository
from alpr_service.infra.metrics import prometheus as metrics

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


def build_message(event: AnprEvent) -> AnprEventMessage:
    """Canonical v1 message for a stored event."""
    return AnprEventMessage(
        event_id=event.id,
        camera_id=event.camera_id,
        plate=event.plate,
        confidence=event.confidence,
        image_url=event.image_url,
        created_at=event.created_at,
    )


class AnprEventWriter(BaseService):
    """Persists an ALPR event and its outbox record in one transaction.

    The broker is never touched here; delivery is left to the outbox
    publisher.
    """

    def __init__(
        self,
        session: AsyncSession,
        events: AnprEventRepository | None = None,
        outbox: OutboxRepository | None = None,
    ) -> None:
        super().__init__()
        self._session = session
        self._events = events or AnprEventRepository()
        self._outbox = outbox or OutboxRepository()

    async def record_event(
        self,
        plate: str,
        confidence: float,
        camera_id: str,
        image_url: str | None = None,
    ) -> AnprEvent:
        """Insert the event and a PENDING outbox record, or neither.

        Raises:
            StoreError: The transaction failed and was rolled back.
        """
        if not math.isfinite(confidence):
            confidence = 0.0

        event = AnprEvent(
            id=new_id(),
            plate=plate.strip(),
            confidence=float(confidence),
            image_url=image_url,
            camera_id=camera_id,
            created_at=utcnow(),
        )

        try:
            async with self._session.begin():
                await self._events.create(self._session, event)
                record = OutboxRecord(
                    event_id=event.id,
                    payload=build_message(event).to_payload(),
                    status=OutboxStatus.PENDING.value,
                    attempts=0,
                )
                await self._outbox.create(self._session, record)
        except Exception as e:
            metrics.anpr_events_ingest_failures_total.inc()
            self.logger.exception(
                "Failed to persist ALPR event",
                extra={"camera_id": camera_id, "operation": "service.record_event"},
            )
            raise StoreError(extra={"camera_id": camera_id}) from e

        metrics.anpr_events_ingested_total.labels(camera_id=camera_id).inc()
        self.logger.info(
            "ALPR event recorded",
            extra={
                "event_id": event.id,
                "outbox_id": record.id,
                "camera_id": camera_id,
                "plate": event.plate,
                "operation": "service.record_event",
            },
        )
        return event


__all__ = ["AnprEventWriter", "build_message"]

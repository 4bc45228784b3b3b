"""Standalone queue consumer process."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from alpr_service.features.anpr.repository import AnprEventRepository
from alpr_service.infra.database import close_database, get_async_session, init_database
from alpr_service.infra.logging import setup_logging
from alpr_service.infra.messaging.client import close_broker_client, get_broker_client
from alpr_service.infra.messaging.consumer import OutboxConsumer
from alpr_service.workers.runtime import install_stop_signals

if TYPE_CHECKING:
    from alpr_service.features.anpr.schemas import AnprEventMessage
    from alpr_service.infra.messaging.consumer import EventHandler

logger = logging.getLogger(__name__)

_events = AnprEventRepository()


async def log_event_handler(message: AnprEventMessage) -> None:
    """Look the event up in the store and log it.

    A message whose event is missing is logged and still acknowledged;
    redelivering it would not make the row appear.
    """
    async with get_async_session() as session:
        event = await _events.get(session, message.event_id)

    if event is None:
        logger.warning(
            "Consumed event not found in store",
            extra={"event_id": message.event_id, "camera_id": message.camera_id},
        )
        return

    logger.info(
        "ALPR event consumed",
        extra={
            "event_id": event.id,
            "plate": event.plate,
            "confidence": event.confidence,
            "camera_id": event.camera_id,
            "image_url": event.image_url,
        },
    )


async def run_consumer(
    handler: EventHandler = log_event_handler,
    stop: asyncio.Event | None = None,
) -> None:
    """Consume until ``stop`` is set or a signal arrives."""
    setup_logging()
    stop = stop or asyncio.Event()
    install_stop_signals(stop)

    await init_database()
    client = get_broker_client()
    consumer = OutboxConsumer(client, handler)
    await consumer.start()

    try:
        await stop.wait()
    finally:
        await consumer.stop()
        await close_broker_client()
        await close_database()
        logger.info("Consumer worker exited")

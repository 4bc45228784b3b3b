"""Standalone outbox publisher process."""

from __future__ import annotations

import asyncio
import logging

from alpr_service.core.settings import get_outbox_settings
from alpr_service.infra.database import close_database, get_session_factory, init_database
from alpr_service.infra.events.outbox.processor import OutboxPublisher
from alpr_service.infra.logging import set_log_context, setup_logging
from alpr_service.infra.messaging.client import close_broker_client, get_broker_client
from alpr_service.workers.runtime import install_stop_signals

logger = logging.getLogger(__name__)


async def run_publisher(stop: asyncio.Event | None = None) -> None:
    """Run the claim/publish loop until ``stop`` is set or a signal arrives.

    Shutdown stops the ticker, waits for the pass in progress, then closes
    the broker connection and the database engine.
    """
    setup_logging()
    stop = stop or asyncio.Event()
    install_stop_signals(stop)

    await init_database()
    client = get_broker_client()
    client.connect_in_background()

    publisher = OutboxPublisher(get_session_factory(), client, get_outbox_settings())
    set_log_context(worker_id=publisher.worker_id)
    await publisher.start()

    try:
        await stop.wait()
    finally:
        await publisher.stop()
        await close_broker_client()
        await close_database()
        logger.info("Publisher worker exited")

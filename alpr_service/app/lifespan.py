"""Application lifespan management.

Startup Order:
1. Core (logging) - always runs first
2. Database (PostgreSQL) - required; ingestion cannot work without it
3. Messaging (RabbitMQ) - connect loop started in the background, never blocks
4. Outbox publisher - requires database and messaging, optional per process

Shutdown Order: Reverse of startup (what starts first, shuts down last)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from alpr_service.core.settings import (
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_outbox_settings,
    get_rabbit_settings,
)
from alpr_service.infra.logging.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


# =============================================================================
# Startup functions - organized by service
# =============================================================================


async def _startup_core() -> None:
    """Configure logging."""
    app = get_app_settings()
    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Application starting",
        extra={
            "service": app.service_name,
            "version": app.version,
            "environment": app.environment,
        },
    )


async def _startup_database() -> None:
    """Initialize database connection."""
    from alpr_service.infra.database.session import init_database

    await init_database()
    logger.info("Database connection initialized")


async def _startup_messaging() -> None:
    """Start connecting to RabbitMQ without blocking startup.

    The client retries forever; the API keeps accepting events meanwhile and
    the outbox absorbs them.
    """
    from alpr_service.infra.messaging.client import get_broker_client

    if not get_rabbit_settings().is_configured:
        logger.info("RabbitMQ not configured, delivery disabled")
        return

    get_broker_client().connect_in_background()
    logger.info("RabbitMQ client connecting in background")


async def _startup_outbox() -> None:
    """Start the outbox publisher loop in this process."""
    from alpr_service.infra.database.session import get_session_factory
    from alpr_service.infra.events.outbox.processor import start_outbox_publisher
    from alpr_service.infra.messaging.client import get_broker_client

    if not get_app_settings().run_outbox_publisher:
        logger.info("Outbox publisher not run in API process")
        return
    if not get_rabbit_settings().is_configured:
        return

    try:
        await start_outbox_publisher(
            get_session_factory(),
            get_broker_client(),
            get_outbox_settings(),
        )
    except Exception as e:
        logger.warning(
            "Failed to start outbox publisher, events will not be published",
            extra={"error": str(e)},
        )


# =============================================================================
# Shutdown functions
# =============================================================================


async def _shutdown_outbox() -> None:
    """Stop the publisher, waiting for the pass in progress."""
    from alpr_service.infra.events.outbox.processor import stop_outbox_publisher

    await stop_outbox_publisher()


async def _shutdown_messaging() -> None:
    from alpr_service.infra.messaging.client import close_broker_client

    try:
        await close_broker_client()
    except Exception as e:
        logger.warning("Error closing RabbitMQ client", extra={"error": str(e)})


async def _shutdown_database() -> None:
    from alpr_service.infra.database.session import close_database

    await close_database()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    _ = app

    await _startup_core()
    await _startup_database()
    await _startup_messaging()
    await _startup_outbox()

    logger.info(
        "Application startup complete",
        extra={"db_url_is_sqlite": get_db_settings().is_sqlite},
    )

    try:
        yield
    finally:
        logger.info("Application shutting down")
        await _shutdown_outbox()
        await _shutdown_messaging()
        await _shutdown_database()
        logger.info("Application shutdown complete")

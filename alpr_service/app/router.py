"""Router registry and setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from alpr_service.core.settings import get_app_settings
from alpr_service.features.anpr.router import router as anpr_router
from alpr_service.features.health.router import router as health_router
from alpr_service.features.metrics.router import router as metrics_router
from alpr_service.features.outbox.router import router as outbox_router

if TYPE_CHECKING:
    from fastapi import FastAPI

    from alpr_service.core.settings.app import AppSettings

logger = logging.getLogger(__name__)


def setup_routers(app: FastAPI, app_settings: AppSettings | None = None) -> None:
    """Register all feature routers with the application.

    Args:
        app: FastAPI application instance.
        app_settings: Optional application settings override for the API prefix.
    """
    app_settings = app_settings or get_app_settings()
    api_prefix = app_settings.api_prefix

    # Include metrics endpoint (no prefix - accessible at /metrics)
    app.include_router(metrics_router, tags=["observability"])

    app.include_router(anpr_router, prefix=api_prefix, tags=["anpr"])
    app.include_router(outbox_router, prefix=api_prefix, tags=["outbox-admin"])
    app.include_router(health_router, prefix=api_prefix, tags=["health"])

    logger.debug("Routers registered", extra={"api_prefix": api_prefix})

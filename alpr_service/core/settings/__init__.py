"""Modular Pydantic Settings v2 configuration.

One settings class per domain, each bound to its own environment prefix:

    APP_     application / HTTP server
    DB_      PostgreSQL store
    RABBIT_  broker connection and topology
    OUTBOX_  claim/publish loop
    LOG_     logging

Import settings via cached loaders:
    from alpr_service.core.settings import get_outbox_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .app import AppSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_outbox_settings,
    get_rabbit_settings,
)
from .logs import LoggingSettings
from .outbox import OutboxSettings
from .postgres import PostgresSettings
from .rabbit import RabbitSettings

__all__ = [
    "AppSettings",
    "LoggingSettings",
    "OutboxSettings",
    "PostgresSettings",
    "RabbitSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_outbox_settings",
    "get_rabbit_settings",
]

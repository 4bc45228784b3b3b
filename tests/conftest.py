"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings that keep tests off real infrastructure
    - Database Fixtures: in-memory SQLite engine and session factory
    - Messaging Fixtures: fake brokers and a BrokerClient wired to them
    - Application Fixtures: FastAPI app with overridden dependencies and client
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from alpr_service.infra.messaging.client import BrokerClient

# Ensure tests run without external infrastructure
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_RUN_OUTBOX_PUBLISHER", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RABBIT_ENABLED", "false")
os.environ.setdefault("LOG_CONSOLE_ENABLED", "false")


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Reload settings for every test so monkeypatched env vars apply."""
    from alpr_service.core.settings import clear_all_caches

    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """In-memory SQLite shared by every connection of the test, with tables created."""
    from alpr_service.infra.database import create_tables

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    from alpr_service.infra.database import build_session_factory

    return build_session_factory(db_engine)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


# ============================================================================
# Messaging Fixtures
# ============================================================================


@pytest.fixture
def rabbit_settings():
    from alpr_service.core.settings import RabbitSettings

    return RabbitSettings(enabled=True, connection_timeout=1.0)


@pytest.fixture
def broker_factory():
    from tests.utils import FakeBrokerFactory

    return FakeBrokerFactory()


@pytest.fixture
async def broker_client(rabbit_settings, broker_factory) -> AsyncGenerator[BrokerClient]:
    """BrokerClient on fake brokers; reconnect sleeps are instant."""
    from alpr_service.infra.messaging.client import BrokerClient

    client = BrokerClient(rabbit_settings, broker_factory=broker_factory, sleep=AsyncMock())
    try:
        yield client
    finally:
        await client.close()


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def app(session_factory, broker_client) -> FastAPI:
    """FastAPI app bound to the test database and the fake broker client.

    Lifespan is not run by ASGITransport, so nothing connects on startup.
    """
    from alpr_service.app.main import create_app
    from alpr_service.core.dependencies import get_broker, get_db_session

    application = create_app()

    async def _session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db_session] = _session
    application.dependency_overrides[get_broker] = lambda: broker_client
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client for the test app.

    Example:
        async def test_live(client):
            response = await client.get("/api/v1/health/live")
            assert response.status_code == 200
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

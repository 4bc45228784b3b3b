"""Test doubles and data helpers.

Usage:
    from tests.utils import FakeBroker, FakeBrokerFactory, insert_event

    factory = FakeBrokerFactory()
    client = BrokerClient(settings, broker_factory=factory, sleep=AsyncMock())
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from alpr_service.core.database import new_id
from alpr_service.features.anpr.models import AnprEvent
from alpr_service.features.anpr.service import build_message
from alpr_service.infra.events.outbox.models import OutboxRecord, OutboxStatus

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


# ============================================================================
# Broker doubles (FastStream RabbitBroker / aio-pika surface)
# ============================================================================


class FakeExchange:
    def __init__(self, name: str) -> None:
        self.name = name


class FakeQueue:
    def __init__(self, name: str, arguments: dict[str, Any] | None = None) -> None:
        self.name = name
        self.arguments = arguments or {}
        self.bindings: list[tuple[str, str]] = []
        self.consumers: list[Any] = []
        self.cancelled: list[str] = []

    async def bind(self, exchange: FakeExchange, routing_key: str | None = None) -> None:
        self.bindings.append((exchange.name, routing_key or ""))

    async def consume(self, callback: Any) -> str:
        self.consumers.append(callback)
        return f"ctag-{len(self.consumers)}"

    async def cancel(self, tag: str) -> None:
        self.cancelled.append(tag)


class FakeConnection:
    def __init__(self) -> None:
        self.close_callbacks: set[Any] = set()

    def fire_close(self, exc: BaseException | None = None) -> None:
        for cb in list(self.close_callbacks):
            cb(self, exc)


class FakeBroker:
    """Records declarations and publishes; failures are opt-in."""

    def __init__(
        self,
        *,
        connect_error: BaseException | None = None,
        connect_gate: asyncio.Event | None = None,
        publish_error: BaseException | None = None,
    ) -> None:
        self.connect_error = connect_error
        self.connect_gate = connect_gate
        self.publish_error = publish_error
        self.connection = FakeConnection()
        self.declared: list[tuple[str, str]] = []
        self.exchanges: dict[str, FakeExchange] = {}
        self.queues: dict[str, FakeQueue] = {}
        self.published: list[tuple[Any, dict[str, Any]]] = []
        self.closed = False

    async def connect(self) -> FakeConnection:
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.connect_error is not None:
            raise self.connect_error
        return self.connection

    async def declare_exchange(self, exchange: Any) -> FakeExchange:
        self.declared.append(("exchange", exchange.name))
        ex = self.exchanges.setdefault(exchange.name, FakeExchange(exchange.name))
        return ex

    async def declare_queue(self, queue: Any) -> FakeQueue:
        self.declared.append(("queue", queue.name))
        q = self.queues.setdefault(queue.name, FakeQueue(queue.name, dict(queue.arguments or {})))
        return q

    async def publish(self, message: Any, **kwargs: Any) -> None:
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((message, kwargs))

    async def close(self) -> None:
        self.closed = True


class FakeBrokerFactory:
    """Hands out prepared brokers in order, then healthy ones."""

    def __init__(self, *brokers: FakeBroker) -> None:
        self._queue = list(brokers)
        self.created: list[FakeBroker] = []

    def __call__(self, settings: Any) -> FakeBroker:
        broker = self._queue.pop(0) if self._queue else FakeBroker()
        self.created.append(broker)
        return broker


class RecordingClient:
    """Stand-in for BrokerClient.publish used by publisher tests."""

    def __init__(self, fail_for: set[str] | None = None, error: Exception | None = None) -> None:
        self.fail_for = fail_for or set()
        self.error = error
        self.published: list[dict[str, Any]] = []
        self.is_connected = True

    async def publish(
        self,
        payload: dict[str, Any],
        *,
        message_id: str,
        message_type: str,
        timeout: float | None = None,
    ) -> None:
        if self.error is not None or message_id in self.fail_for:
            raise self.error or ConnectionError(f"publish rejected for {message_id}")
        self.published.append(
            {"payload": payload, "message_id": message_id, "message_type": message_type}
        )


# ============================================================================
# Data helpers
# ============================================================================


async def insert_event(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    plate: str = "ABC1234",
    confidence: float = 0.92,
    camera_id: str = "cam-1",
    created_at: datetime = BASE_TIME,
    status: OutboxStatus = OutboxStatus.PENDING,
    attempts: int = 0,
    next_retry_at: datetime | None = None,
    locked_at: datetime | None = None,
    locked_by: str | None = None,
) -> OutboxRecord:
    """Insert an event and its outbox record with explicit bookkeeping fields."""
    event = AnprEvent(
        id=new_id(),
        plate=plate,
        confidence=confidence,
        camera_id=camera_id,
        image_url=None,
        created_at=created_at,
    )
    record = OutboxRecord(
        event_id=event.id,
        payload=build_message(event).to_payload(),
        status=status.value,
        attempts=attempts,
        next_retry_at=next_retry_at,
        locked_at=locked_at,
        locked_by=locked_by,
        created_at=created_at,
    )
    async with session_factory() as session, session.begin():
        session.add(event)
        await session.flush()
        session.add(record)
    return record


async def fetch_record(
    session_factory: async_sessionmaker[AsyncSession],
    record_id: str,
) -> OutboxRecord:
    async with session_factory() as session:
        record = await session.get(OutboxRecord, record_id)
        assert record is not None
        return record


def naive(value: datetime) -> datetime:
    """SQLite returns naive UTC datetimes."""
    return value.astimezone(UTC).replace(tzinfo=None)


def minutes(n: float) -> timedelta:
    return timedelta(minutes=n)

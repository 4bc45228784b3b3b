"""Tests for BrokerClient connect, reconnect and publish behavior."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from alpr_service.infra.messaging import BrokerClient, ConnectionState, TransientBrokerError
from alpr_service.infra.metrics.prometheus import REGISTRY
from tests.utils import FakeBroker, FakeBrokerFactory


@pytest.mark.unit
class TestConnecting:
    async def test_connect_declares_topology(self, broker_client, broker_factory) -> None:
        broker = await broker_client.ensure_connected(timeout=1)

        assert broker is broker_factory.created[0]
        assert broker_client.is_connected
        assert broker_client.state is ConnectionState.CONNECTED
        assert broker_client.declared is not None
        assert broker_client.declared.queue.name == "lpr.events"
        assert ("queue", "lpr.events.dlq") in broker.declared

    async def test_concurrent_callers_share_one_attempt(self, rabbit_settings) -> None:
        gate = asyncio.Event()
        factory = FakeBrokerFactory(FakeBroker(connect_gate=gate))
        client = BrokerClient(rabbit_settings, broker_factory=factory, sleep=AsyncMock())

        waiters = [asyncio.create_task(client.ensure_connected(timeout=1)) for _ in range(3)]
        await asyncio.sleep(0)
        assert client.state is ConnectionState.CONNECTING
        gate.set()
        brokers = await asyncio.gather(*waiters)

        assert len(factory.created) == 1
        assert all(b is factory.created[0] for b in brokers)
        await client.close()

    async def test_retries_with_backoff_until_connected(self, rabbit_settings) -> None:
        sleep = AsyncMock()
        refused = FakeBroker(connect_error=ConnectionError("refused"))
        refused_again = FakeBroker(connect_error=ConnectionError("refused"))
        factory = FakeBrokerFactory(refused, refused_again)
        client = BrokerClient(rabbit_settings, broker_factory=factory, sleep=sleep)

        broker = await client.ensure_connected(timeout=1)

        assert broker is factory.created[2]
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]
        assert refused.closed and refused_again.closed
        health = client.health()
        assert health["connect_count"] == 1
        assert health["last_error"] is None
        await client.close()

    async def test_timeout_raises_transient_error(self, rabbit_settings) -> None:
        factory = FakeBrokerFactory(FakeBroker(connect_gate=asyncio.Event()))
        client = BrokerClient(rabbit_settings, broker_factory=factory, sleep=AsyncMock())

        with pytest.raises(TransientBrokerError):
            await client.ensure_connected(timeout=0.05)

        # Still trying in the background
        assert client.state is ConnectionState.CONNECTING
        await client.close()
        assert client.state is ConnectionState.DISCONNECTED

    async def test_connect_in_background_does_not_block(self, broker_client) -> None:
        broker_client.connect_in_background()
        assert broker_client.state is ConnectionState.CONNECTING

        await broker_client.ensure_connected(timeout=1)
        assert broker_client.is_connected

    async def test_connect_listener_runs_after_connect(self, broker_client) -> None:
        listener = AsyncMock()
        broker_client.add_connect_listener(listener)

        broker = await broker_client.ensure_connected(timeout=1)

        listener.assert_awaited_once_with(broker, broker_client.declared)

    async def test_connection_close_triggers_reconnect(
        self, broker_client, broker_factory
    ) -> None:
        first = await broker_client.ensure_connected(timeout=1)

        first.connection.fire_close(ConnectionError("heartbeat missed"))
        assert not broker_client.is_connected
        assert "heartbeat missed" in broker_client.health()["last_error"]

        second = await broker_client.ensure_connected(timeout=1)
        assert second is not first
        assert broker_client.health()["connect_count"] == 2


@pytest.mark.unit
class TestPublishing:
    async def test_publish_is_persistent_json_with_message_id(
        self, broker_client, broker_factory
    ) -> None:
        await broker_client.publish(
            {"eventId": "e-1"},
            message_id="e-1",
            message_type="lpr.event.created.v1",
        )

        [(body, kwargs)] = broker_factory.created[0].published
        assert body == {"eventId": "e-1"}
        assert kwargs["exchange"].name == "lpr"
        assert kwargs["routing_key"] == "lpr.event.created"
        assert kwargs["persist"] is True
        assert kwargs["content_type"] == "application/json"
        assert kwargs["message_id"] == "e-1"
        assert kwargs["message_type"] == "lpr.event.created.v1"

    async def test_publish_failure_drops_connection(self, rabbit_settings) -> None:
        broken = FakeBroker(publish_error=RuntimeError("channel closed"))
        factory = FakeBrokerFactory(broken)
        client = BrokerClient(rabbit_settings, broker_factory=factory, sleep=AsyncMock())

        with pytest.raises(TransientBrokerError, match="channel closed"):
            await client.publish({}, message_id="e-1", message_type="t")

        assert client.state is ConnectionState.CONNECTING
        await client.publish({}, message_id="e-2", message_type="t")
        assert len(factory.created) == 2
        assert factory.created[1].published[0][1]["message_id"] == "e-2"
        await client.close()
        assert broken.closed


@pytest.mark.unit
class TestLifecycle:
    async def test_health_when_disconnected(self, broker_client) -> None:
        assert broker_client.health() == {
            "status": "unhealthy",
            "state": "disconnected",
            "is_connected": False,
            "connect_count": 0,
            "last_error": None,
        }

    async def test_health_when_connected(self, broker_client) -> None:
        await broker_client.ensure_connected(timeout=1)
        health = broker_client.health()
        assert health["status"] == "healthy"
        assert health["is_connected"] is True

    async def test_close_stops_client(self, broker_client, broker_factory) -> None:
        await broker_client.ensure_connected(timeout=1)
        await broker_client.close()

        assert broker_factory.created[0].closed
        assert not broker_client.is_connected
        with pytest.raises(TransientBrokerError, match="closed"):
            await broker_client.ensure_connected(timeout=1)


def reconnects_total() -> float:
    return REGISTRY.get_sample_value("rabbitmq_reconnects_total") or 0.0


@pytest.mark.unit
async def test_reconnect_metric_skips_first_connect(broker_client) -> None:
    before = reconnects_total()

    first = await broker_client.ensure_connected(timeout=1)
    assert reconnects_total() == before

    first.connection.fire_close(ConnectionError("connection reset"))
    await broker_client.ensure_connected(timeout=1)
    assert reconnects_total() == before + 1

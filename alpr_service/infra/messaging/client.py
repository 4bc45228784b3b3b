"""Process-wide RabbitMQ client built on FastStream.

One ``BrokerClient`` owns one FastStream ``RabbitBroker`` (a single AMQP
connection and channel) per process. It is created lazily and kept alive by
an unbounded reconnect loop:

    DISCONNECTED --ensure_connected()--> CONNECTING --ok--> CONNECTED
         ^                                                      |
         +------------- transport error / publish error --------+

Concurrent callers share one in-flight connect task. Callers that cannot wait
forever (the outbox publisher) pass a timeout and get ``TransientBrokerError``
when it expires, while the loop keeps trying in the background. Only
``close()`` stops it.

Topology is declared after every successful connect, and registered connect
listeners (the consumer) run against the fresh channel before the client
reports CONNECTED.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from faststream.rabbit import RabbitBroker

from alpr_service.core.settings import get_rabbit_settings
from alpr_service.infra.messaging.exceptions import TransientBrokerError
from alpr_service.infra.messaging.topology import DeclaredTopology, Topology, declare_topology
from alpr_service.infra.metrics import prometheus as metrics
from alpr_service.utils.backoff import backoff_seconds

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from alpr_service.core.settings.rabbit import RabbitSettings

    BrokerFactory = Callable[[RabbitSettings], RabbitBroker]
    ConnectListener = Callable[[RabbitBroker, DeclaredTopology], Awaitable[None]]
    Sleep = Callable[[float], Awaitable[Any]]

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection states for the RabbitMQ client."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


_STATE_GAUGE_VALUES = {
    ConnectionState.DISCONNECTED: 0,
    ConnectionState.CONNECTING: 1,
    ConnectionState.CONNECTED: 2,
}


def default_broker_factory(settings: RabbitSettings) -> RabbitBroker:
    """Build an unconnected RabbitBroker from settings.

    ``max_consumers`` becomes the channel QoS prefetch count.
    """
    return RabbitBroker(
        settings.get_url(),
        max_consumers=settings.prefetch_count,
        client_properties={"connection_name": settings.connection_name},
        logger=logger,
    )


class BrokerClient:
    """Shared connection, topology and publishing for one process."""

    def __init__(
        self,
        settings: RabbitSettings | None = None,
        *,
        broker_factory: BrokerFactory | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_rabbit_settings()
        self.topology = Topology.from_settings(self.settings)
        self._broker_factory = broker_factory or default_broker_factory
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._broker: RabbitBroker | None = None
        self._connection: Any = None
        self._declared: DeclaredTopology | None = None
        self._connecting: asyncio.Task[RabbitBroker] | None = None
        self._listeners: list[ConnectListener] = []
        self._background: set[asyncio.Task[Any]] = set()
        self._closed = False

        self._connect_count = 0
        self._last_error: str | None = None
        metrics.rabbitmq_connection_state.set(_STATE_GAUGE_VALUES[self._state])

    # ──────────────────────────────────────────────────────────────
    # State
    # ──────────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._broker is not None

    @property
    def declared(self) -> DeclaredTopology | None:
        """Declared exchange/queue handles of the current connection."""
        return self._declared

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug(
                "Broker connection state changed",
                extra={"from_state": self._state.value, "to_state": state.value},
            )
        self._state = state
        metrics.rabbitmq_connection_state.set(_STATE_GAUGE_VALUES[state])

    def add_connect_listener(self, listener: ConnectListener) -> None:
        """Run ``listener`` after every successful (re)connect.

        If the client is already connected the listener is not invoked
        retroactively; call it yourself with ``declared``.
        """
        self._listeners.append(listener)

    def remove_connect_listener(self, listener: ConnectListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    # ──────────────────────────────────────────────────────────────
    # Connecting
    # ──────────────────────────────────────────────────────────────

    async def ensure_connected(self, timeout: float | None = None) -> RabbitBroker:
        """Return a connected broker, joining or starting the shared connect task.

        Args:
            timeout: Seconds to wait. None waits until connected.

        Raises:
            TransientBrokerError: Not connected within ``timeout`` or the
                client was closed.
        """
        if self._closed:
            raise TransientBrokerError("Broker client is closed")
        if self.is_connected:
            return self._broker  # type: ignore[return-value]

        task = self._start_connecting()
        # shield: a caller timing out must not cancel the shared task
        try:
            if timeout is None:
                return await asyncio.shield(task)
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except TimeoutError as e:
            raise TransientBrokerError(
                f"RabbitMQ not connected after {timeout}s: {self._last_error or 'connecting'}"
            ) from e
        except asyncio.CancelledError:
            if task.cancelled() and self._closed:
                raise TransientBrokerError("Broker client is closed") from None
            raise

    def connect_in_background(self) -> None:
        """Start the connect loop without waiting for it (startup path)."""
        if self._closed or self.is_connected:
            return
        self._start_connecting()

    def _start_connecting(self) -> asyncio.Task[RabbitBroker]:
        if self._connecting is None or self._connecting.done():
            self._set_state(ConnectionState.CONNECTING)
            self._connecting = asyncio.create_task(
                self._connect_loop(), name="rabbitmq-connect"
            )
        return self._connecting

    async def _connect_loop(self) -> RabbitBroker:
        attempt = 0
        while True:
            broker = self._broker_factory(self.settings)
            try:
                connection = await broker.connect()
                declared = await declare_topology(broker, self.topology)
                for listener in list(self._listeners):
                    await listener(broker, declared)
            except asyncio.CancelledError:
                await self._close_quietly(broker)
                raise
            except Exception as e:
                await self._close_quietly(broker)
                self._last_error = f"{type(e).__name__}: {e}"
                delay = backoff_seconds(attempt)
                metrics.rabbitmq_connect_failures_total.inc()
                logger.warning(
                    "RabbitMQ connect attempt failed, retrying",
                    extra={
                        "attempt": attempt + 1,
                        "retry_in_seconds": delay,
                        "error": self._last_error,
                    },
                )
                attempt += 1
                await self._sleep(delay)
                continue

            self._broker = broker
            self._connection = connection
            self._declared = declared
            self._watch(connection)
            self._connect_count += 1
            self._last_error = None
            self._set_state(ConnectionState.CONNECTED)
            if self._connect_count > 1:
                metrics.rabbitmq_reconnects_total.inc()
            logger.info(
                "RabbitMQ connected and topology declared",
                extra={
                    "exchange": self.settings.exchange_name,
                    "queue": self.settings.queue_name,
                    "connect_count": self._connect_count,
                    "attempts": attempt + 1,
                },
            )
            return broker

    def _watch(self, connection: Any) -> None:
        close_callbacks = getattr(connection, "close_callbacks", None)
        if close_callbacks is None:
            return

        def _on_close(*args: Any) -> None:
            if connection is not self._connection:
                return
            reason = next((repr(a) for a in args[1:] if a is not None), "connection closed")
            self.mark_disconnected(reason)

        close_callbacks.add(_on_close)

    def mark_disconnected(self, reason: str, *, broker: RabbitBroker | None = None) -> None:
        """Drop the current connection and start reconnecting in the background.

        Ignored unless connected, and ignored when ``broker`` is given but is
        no longer the current one (a stale failure after a reconnect).
        """
        if self._closed or self._state is not ConnectionState.CONNECTED:
            return
        if broker is not None and broker is not self._broker:
            return

        old = self._broker
        self._broker = None
        self._connection = None
        self._declared = None
        self._connecting = None
        self._last_error = reason
        self._set_state(ConnectionState.DISCONNECTED)
        logger.warning("RabbitMQ connection lost", extra={"reason": reason})

        if old is not None:
            self._spawn(self._close_quietly(old))
        self._start_connecting()

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _close_quietly(self, broker: RabbitBroker) -> None:
        try:
            await broker.close()
        except Exception as e:
            logger.debug("Ignoring error while closing broker", extra={"error": str(e)})

    # ──────────────────────────────────────────────────────────────
    # Publishing
    # ──────────────────────────────────────────────────────────────

    async def publish(
        self,
        payload: dict[str, Any],
        *,
        message_id: str,
        message_type: str,
        timeout: float | None = None,
    ) -> None:
        """Publish a persistent JSON message to the main exchange.

        Resolves once the broker has confirmed the message.

        Raises:
            TransientBrokerError: Not connected in time, or the publish failed.
                A failed publish drops the connection so the next caller
                reconnects.
        """
        timeout = self.settings.connection_timeout if timeout is None else timeout
        broker = await self.ensure_connected(timeout=timeout)

        try:
            await broker.publish(
                payload,
                exchange=self.topology.exchange,
                routing_key=self.topology.routing_key,
                persist=True,
                content_type="application/json",
                message_id=message_id,
                message_type=message_type,
                timestamp=datetime.now(UTC),
                timeout=timeout,
            )
        except Exception as e:
            self.mark_disconnected(f"publish failed: {type(e).__name__}: {e}", broker=broker)
            raise TransientBrokerError(f"Publish failed: {e}") from e

        metrics.rabbitmq_messages_published_total.labels(
            exchange=self.settings.exchange_name
        ).inc()

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Stop reconnecting and close the connection (best-effort)."""
        self._closed = True

        task, self._connecting = self._connecting, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task

        broker, self._broker = self._broker, None
        self._connection = None
        self._declared = None
        if broker is not None:
            await self._close_quietly(broker)

        for pending in list(self._background):
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await pending

        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("RabbitMQ client closed")

    def health(self) -> dict[str, Any]:
        """Connection status for health endpoints."""
        return {
            "status": "healthy" if self.is_connected else "unhealthy",
            "state": self._state.value,
            "is_connected": self.is_connected,
            "connect_count": self._connect_count,
            "last_error": self._last_error,
        }


# Process-wide instance
_client: BrokerClient | None = None


def get_broker_client() -> BrokerClient:
    """Return the process-wide client, creating it on first use."""
    global _client
    if _client is None:
        _client = BrokerClient()
    return _client


async def close_broker_client() -> None:
    """Close and forget the process-wide client."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None


__all__ = [
    "BrokerClient",
    "ConnectionState",
    "close_broker_client",
    "default_broker_factory",
    "get_broker_client",
]

"""Queue consumer with explicit ack / dead-letter semantics.

Every delivery from the main queue ends in exactly one of:

- ack:  body parsed as a v1 event and the handler returned
- nack (requeue=False): body unparseable or the handler raised; RabbitMQ
  routes the message to the dead-letter queue

Dead-lettered messages are never replayed automatically. The subscription is
re-established after every broker reconnect through a connect listener.
Prefetch is the channel QoS configured by ``RabbitSettings.prefetch_count``.

The subscription goes through the aio-pika queue handle rather than a FastStream
``@broker.subscriber``: ``BrokerClient`` builds a new ``RabbitBroker`` on every
reconnect, so the consumer is re-attached to each fresh channel by a connect
listener and settles messages itself.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from alpr_service.features.anpr.schemas import AnprEventMessage
from alpr_service.infra.logging import log_context
from alpr_service.infra.messaging.exceptions import HandlerError, MessageParseError
from alpr_service.infra.metrics import prometheus as metrics

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from aio_pika.abc import AbstractIncomingMessage
    from faststream.rabbit import RabbitBroker

    from alpr_service.infra.messaging.client import BrokerClient
    from alpr_service.infra.messaging.topology import DeclaredTopology

    EventHandler = Callable[[AnprEventMessage], Awaitable[None]]

logger = logging.getLogger(__name__)


def parse_message(body: bytes | str, *, message_id: str | None = None) -> AnprEventMessage:
    """Decode and validate a message body against the v1 contract.

    Raises:
        MessageParseError: Not JSON, or JSON that does not match the schema.
    """
    try:
        return AnprEventMessage.model_validate_json(body)
    except ValidationError as e:
        raise MessageParseError(
            f"Invalid lpr.event.created.v1 message: {e.error_count()} error(s)",
            message_id=message_id,
        ) from e


class OutboxConsumer:
    """Subscribes a handler to the main queue of a ``BrokerClient``."""

    def __init__(self, client: BrokerClient, handler: EventHandler) -> None:
        self._client = client
        self._handler = handler
        self._queue: Any = None
        self._consumer_tag: str | None = None
        self._started = False

    @property
    def queue_name(self) -> str:
        return self._client.settings.queue_name

    @property
    def is_subscribed(self) -> bool:
        return self._consumer_tag is not None

    async def start(self) -> None:
        """Subscribe now if connected, and again after every reconnect."""
        if self._started:
            return
        self._started = True
        self._client.add_connect_listener(self._subscribe)

        declared = self._client.declared
        if self._client.is_connected and declared is not None:
            await self._subscribe(None, declared)
        else:
            # Listener subscribes as part of the connect sequence
            self._client.connect_in_background()

        logger.info("Consumer started", extra={"queue": self.queue_name})

    async def stop(self) -> None:
        """Cancel the subscription. In-flight messages finish first."""
        if not self._started:
            return
        self._started = False
        self._client.remove_connect_listener(self._subscribe)

        queue, tag = self._queue, self._consumer_tag
        self._queue = None
        self._consumer_tag = None
        if queue is not None and tag is not None:
            try:
                await queue.cancel(tag)
            except Exception as e:
                logger.debug("Ignoring error while cancelling consumer", extra={"error": str(e)})

        logger.info("Consumer stopped", extra={"queue": self.queue_name})

    async def _subscribe(self, broker: RabbitBroker | None, declared: DeclaredTopology) -> None:
        self._queue = declared.queue
        self._consumer_tag = await declared.queue.consume(self._on_message)
        logger.debug(
            "Subscribed to queue",
            extra={"queue": self.queue_name, "consumer_tag": self._consumer_tag},
        )

    async def _on_message(self, message: AbstractIncomingMessage) -> None:
        message_id = message.message_id

        try:
            event = parse_message(message.body, message_id=message_id)
        except MessageParseError as e:
            logger.warning(
                "Rejecting unparseable message",
                extra={"message_id": message_id, "error": str(e)},
            )
            await self._settle(message, ack=False, outcome="rejected")
            return

        with log_context(event_id=event.event_id, message_id=message_id):
            try:
                await self._handler(event)
            except Exception as e:
                error = HandlerError(f"Handler failed: {type(e).__name__}: {e}", message_id=message_id)
                logger.exception(str(error), extra={"queue": self.queue_name})
                await self._settle(message, ack=False, outcome="failed")
                return

            await self._settle(message, ack=True, outcome="acked")

    async def _settle(self, message: AbstractIncomingMessage, *, ack: bool, outcome: str) -> None:
        try:
            if ack:
                await message.ack()
            else:
                await message.nack(requeue=False)
        except Exception:
            # Channel gone; the broker redelivers unacked messages
            logger.exception(
                "Failed to settle message",
                extra={"message_id": message.message_id, "outcome": outcome},
            )
            return
        metrics.rabbitmq_messages_consumed_total.labels(
            queue=self.queue_name, outcome=outcome
        ).inc()


__all__ = ["OutboxConsumer", "parse_message"]

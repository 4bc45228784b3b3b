"""FastStream exchange and queue definitions with dead-letter routing.

Layout (names come from RabbitSettings):

    lpr (direct) --lpr.event.created--> lpr.events
                                           |  x-dead-letter-exchange: lpr.dlx
                                           |  x-dead-letter-routing-key: lpr.events.dead
                                           v
    lpr.dlx (direct) --lpr.events.dead--> lpr.events.dlq

Everything is durable and declared idempotently on every (re)connect, so
declaring against an existing identical layout is a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from faststream.rabbit import ExchangeType, RabbitExchange, RabbitQueue

if TYPE_CHECKING:
    from faststream.rabbit import RabbitBroker

    from alpr_service.core.settings.rabbit import RabbitSettings


@dataclass(frozen=True, slots=True)
class Topology:
    """Declarative description of the exchanges, queues and bindings."""

    exchange: RabbitExchange
    queue: RabbitQueue
    routing_key: str
    dlx: RabbitExchange
    dlq: RabbitQueue
    dlq_routing_key: str

    @classmethod
    def from_settings(cls, settings: RabbitSettings) -> Topology:
        return cls(
            exchange=RabbitExchange(
                name=settings.exchange_name,
                type=ExchangeType.DIRECT,
                durable=True,
                auto_delete=False,
            ),
            queue=RabbitQueue(
                name=settings.queue_name,
                durable=True,
                auto_delete=False,
                arguments={
                    "x-dead-letter-exchange": settings.dlx_exchange_name,
                    "x-dead-letter-routing-key": settings.dlq_routing_key,
                },
            ),
            routing_key=settings.routing_key,
            dlx=RabbitExchange(
                name=settings.dlx_exchange_name,
                type=ExchangeType.DIRECT,
                durable=True,
                auto_delete=False,
            ),
            dlq=RabbitQueue(
                name=settings.dlq_name,
                durable=True,
                auto_delete=False,
            ),
            dlq_routing_key=settings.dlq_routing_key,
        )


@dataclass(frozen=True, slots=True)
class DeclaredTopology:
    """aio-pika handles returned by the declarations."""

    exchange: Any
    queue: Any
    dlx: Any
    dlq: Any


async def declare_topology(broker: RabbitBroker, topology: Topology) -> DeclaredTopology:
    """Declare the dead-letter side first, then the main exchange and queue.

    The main queue references the dead-letter exchange by name, so the DLX
    must exist before any message can be rejected.

    Args:
        broker: A connected FastStream RabbitBroker.
        topology: What to declare.

    Returns:
        The declared aio-pika exchange and queue objects.
    """
    dlx = await broker.declare_exchange(topology.dlx)
    dlq = await broker.declare_queue(topology.dlq)
    await dlq.bind(dlx, routing_key=topology.dlq_routing_key)

    exchange = await broker.declare_exchange(topology.exchange)
    queue = await broker.declare_queue(topology.queue)
    await queue.bind(exchange, routing_key=topology.routing_key)

    return DeclaredTopology(exchange=exchange, queue=queue, dlx=dlx, dlq=dlq)


__all__ = ["DeclaredTopology", "Topology", "declare_topology"]

"""RabbitMQ messaging: shared client, topology and consumer."""

from .client import (
    BrokerClient,
    ConnectionState,
    close_broker_client,
    default_broker_factory,
    get_broker_client,
)
from .consumer import OutboxConsumer, parse_message
from .exceptions import HandlerError, MessageParseError, MessagingError, TransientBrokerError
from .topology import DeclaredTopology, Topology, declare_topology

__all__ = [
    "BrokerClient",
    "ConnectionState",
    "DeclaredTopology",
    "HandlerError",
    "MessageParseError",
    "MessagingError",
    "OutboxConsumer",
    "Topology",
    "TransientBrokerError",
    "close_broker_client",
    "declare_topology",
    "default_broker_factory",
    "get_broker_client",
    "parse_message",
]

"""Prometheus metrics for the ingestion and delivery pipeline."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Custom registry so tests and multiple app instances don't collide with
# the default global one.
REGISTRY = CollectorRegistry()

# Ingestion
anpr_events_ingested_total = Counter(
    "anpr_events_ingested_total",
    "ALPR events written together with their outbox record",
    ["camera_id"],
    registry=REGISTRY,
)

anpr_events_ingest_failures_total = Counter(
    "anpr_events_ingest_failures_total",
    "ALPR ingestion transactions that were rolled back",
    registry=REGISTRY,
)

# Outbox publisher
outbox_records_claimed_total = Counter(
    "outbox_records_claimed_total",
    "Outbox records claimed by this worker",
    registry=REGISTRY,
)

outbox_records_published_total = Counter(
    "outbox_records_published_total",
    "Outbox records successfully published to the broker",
    registry=REGISTRY,
)

outbox_records_retried_total = Counter(
    "outbox_records_retried_total",
    "Outbox publish failures rescheduled for retry",
    registry=REGISTRY,
)

outbox_records_failed_total = Counter(
    "outbox_records_failed_total",
    "Outbox records moved to FAILED after exhausting attempts",
    registry=REGISTRY,
)

outbox_result_conflicts_total = Counter(
    "outbox_result_conflicts_total",
    "Publish results discarded because the lock had been reclaimed",
    registry=REGISTRY,
)

outbox_ticks_skipped_total = Counter(
    "outbox_ticks_skipped_total",
    "Publisher ticks skipped because a pass was still running",
    registry=REGISTRY,
)

outbox_pass_duration_seconds = Histogram(
    "outbox_pass_duration_seconds",
    "Duration of one claim/publish pass",
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=REGISTRY,
)

# Broker connection
rabbitmq_connection_state = Gauge(
    "rabbitmq_connection_state",
    "Broker connection state (0=disconnected, 1=connecting, 2=connected)",
    registry=REGISTRY,
)

rabbitmq_reconnects_total = Counter(
    "rabbitmq_reconnects_total",
    "Successful broker reconnections after the first connect",
    registry=REGISTRY,
)

rabbitmq_connect_failures_total = Counter(
    "rabbitmq_connect_failures_total",
    "Failed broker connection attempts",
    registry=REGISTRY,
)

rabbitmq_messages_published_total = Counter(
    "rabbitmq_messages_published_total",
    "Total number of messages published to RabbitMQ",
    ["exchange"],
    registry=REGISTRY,
)

# Consumer
rabbitmq_messages_consumed_total = Counter(
    "rabbitmq_messages_consumed_total",
    "Messages consumed from RabbitMQ by outcome",
    ["queue", "outcome"],
    registry=REGISTRY,
)

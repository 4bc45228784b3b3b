"""Transactional outbox for ALPR event delivery.

1. The ingestion transaction writes the event and its outbox record together
2. Publishers in any number of processes claim due records and publish them
3. Each record ends PUBLISHED, or FAILED once its attempts are exhausted

This guarantees at-least-once delivery semantics.
"""

from alpr_service.infra.events.outbox.exceptions import (
    ClaimConflict,
    OutboxError,
    PermanentDeliveryFailure,
)
from alpr_service.infra.events.outbox.models import OutboxRecord, OutboxStatus
from alpr_service.infra.events.outbox.processor import (
    OutboxPublisher,
    PublishReport,
    default_worker_id,
    start_outbox_publisher,
    stop_outbox_publisher,
)
from alpr_service.infra.events.outbox.repository import OutboxRepository

__all__ = [
    "ClaimConflict",
    "OutboxError",
    "OutboxPublisher",
    "OutboxRecord",
    "OutboxRepository",
    "OutboxStatus",
    "PermanentDeliveryFailure",
    "PublishReport",
    "default_worker_id",
    "start_outbox_publisher",
    "stop_outbox_publisher",
]

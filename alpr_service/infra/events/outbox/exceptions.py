"""Outbox delivery errors."""

from __future__ import annotations


class OutboxError(Exception):
    """Base class for outbox bookkeeping errors."""


class ClaimConflict(OutboxError):
    """A result update found the record no longer locked by this worker.

    Happens when a pass outlives the lock TTL and another worker reclaims the
    record. The other worker's outcome wins; this one is discarded.
    """

    def __init__(self, record_id: str, worker_id: str) -> None:
        self.record_id = record_id
        self.worker_id = worker_id
        super().__init__(f"Outbox record {record_id} is no longer locked by {worker_id}")


class PermanentDeliveryFailure(OutboxError):
    """A record exhausted its publish attempts and was moved to FAILED.

    Only an operator reset brings it back to PENDING.
    """

    def __init__(self, record_id: str, attempts: int, last_error: str | None) -> None:
        self.record_id = record_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Outbox record {record_id} failed permanently after {attempts} attempts: {last_error}"
        )

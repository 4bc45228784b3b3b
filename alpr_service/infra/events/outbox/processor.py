"""Background outbox publisher for reliable event delivery.

Each process runs one ``OutboxPublisher``. A ticker fires every
``tick_interval`` seconds; each tick starts one claim/publish pass unless the
previous pass is still running, in which case the tick is skipped (not
queued). A pass:

1. Claims up to ``batch_size`` eligible records in its own short transaction
2. Publishes each stored payload through the shared ``BrokerClient``
3. Records the outcome per record (PUBLISHED, rescheduled, or FAILED)

Any number of processes may run against the same store; the claim statement
guarantees a record is held by one worker at a time. Records left PROCESSING
by a crashed worker are reclaimed after the lock TTL, so delivery is
at-least-once.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import socket
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from alpr_service.core.settings import get_outbox_settings
from alpr_service.features.anpr.schemas import MESSAGE_TYPE
from alpr_service.infra.events.outbox.exceptions import ClaimConflict, PermanentDeliveryFailure
from alpr_service.infra.events.outbox.models import OutboxStatus
from alpr_service.infra.events.outbox.repository import OutboxRepository, truncate_error
from alpr_service.infra.logging import log_context
from alpr_service.infra.messaging.exceptions import TransientBrokerError
from alpr_service.infra.metrics import prometheus as metrics

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from alpr_service.core.settings.outbox import OutboxSettings
    from alpr_service.infra.events.outbox.models import OutboxRecord
    from alpr_service.infra.messaging.client import BrokerClient

logger = logging.getLogger(__name__)

# Global publisher instance
_publisher: OutboxPublisher | None = None


def default_worker_id() -> str:
    """``host:pid:random`` so restarts never reuse a previous lock owner."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


@dataclass(slots=True)
class PublishReport:
    """Outcome counts of one claim/publish pass."""

    claimed: int = 0
    published: int = 0
    retried: int = 0
    failed: int = 0
    conflicts: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class OutboxPublisher:
    """Claims outbox records and publishes them to RabbitMQ.

    Attributes:
        worker_id: Lock owner written to ``locked_by`` on claimed records.
        settings: Tick interval, batch size, attempts and lock TTL.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: BrokerClient,
        settings: OutboxSettings | None = None,
        *,
        worker_id: str | None = None,
        repository: OutboxRepository | None = None,
    ) -> None:
        self.settings = settings or get_outbox_settings()
        self.worker_id = worker_id or self.settings.worker_id or default_worker_id()
        self._session_factory = session_factory
        self._client = client
        self._repo = repository or OutboxRepository()

        self._busy = False
        self._stopping = False
        self._broker_down = False
        self._ticker: asyncio.Task[None] | None = None
        self._current: asyncio.Task[PublishReport | None] | None = None

    @property
    def is_running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    @property
    def is_busy(self) -> bool:
        """True while a pass is in progress."""
        return self._busy

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the ticker. Calling it twice is a no-op."""
        if self.is_running:
            logger.warning("Outbox publisher already running")
            return

        self._stopping = False
        self._ticker = asyncio.create_task(self._run_loop(), name="outbox-ticker")
        logger.info(
            "Outbox publisher started",
            extra={
                "worker_id": self.worker_id,
                "tick_interval": self.settings.tick_interval,
                "batch_size": self.settings.batch_size,
                "max_attempts": self.settings.max_attempts,
                "lock_ttl_seconds": self.settings.lock_ttl_seconds,
            },
        )

    async def stop(self) -> None:
        """Stop ticking and wait for the pass in progress to finish."""
        self._stopping = True

        ticker, self._ticker = self._ticker, None
        if ticker is not None and not ticker.done():
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker

        current, self._current = self._current, None
        if current is not None and not current.done():
            with contextlib.suppress(asyncio.CancelledError):
                await current

        logger.info("Outbox publisher stopped", extra={"worker_id": self.worker_id})

    async def _run_loop(self) -> None:
        while not self._stopping:
            self.tick()
            await asyncio.sleep(self.settings.tick_interval)

    def tick(self) -> asyncio.Task[PublishReport | None] | None:
        """Start a pass in the background unless one is already running.

        Returns:
            The started pass task, or None if the tick was skipped.
        """
        if self._busy or self._stopping:
            if self._busy:
                metrics.outbox_ticks_skipped_total.inc()
                logger.debug(
                    "Outbox pass still running, tick skipped",
                    extra={"worker_id": self.worker_id},
                )
            return None

        # Set before the task is scheduled so back-to-back ticks see it
        self._busy = True
        self._current = asyncio.create_task(self._guarded_pass(), name="outbox-pass")
        return self._current

    async def _guarded_pass(self) -> PublishReport | None:
        try:
            return await self.run_once()
        except Exception:
            # Store unreachable during claim; the next tick tries again
            logger.exception("Outbox pass failed", extra={"worker_id": self.worker_id})
            return None
        finally:
            self._busy = False

    # ──────────────────────────────────────────────────────────────
    # One pass
    # ──────────────────────────────────────────────────────────────

    async def run_once(self) -> PublishReport:
        """Claim one batch and publish every claimed record.

        A failure on one record never stops the rest of the batch.

        Raises:
            Exception: Only if the claim itself fails.
        """
        report = PublishReport()
        started = time.perf_counter()
        self._broker_down = False

        async with self._session_factory() as session, session.begin():
            records = await self._repo.claim_batch(
                session,
                worker_id=self.worker_id,
                batch_size=self.settings.batch_size,
                lock_ttl=timedelta(seconds=self.settings.lock_ttl_seconds),
            )

        report.claimed = len(records)
        if records:
            metrics.outbox_records_claimed_total.inc(len(records))

        for record in records:
            with log_context(
                worker_id=self.worker_id,
                record_id=record.id,
                event_id=record.event_id,
            ):
                await self._deliver(record, report)

        metrics.outbox_pass_duration_seconds.observe(time.perf_counter() - started)

        if report.claimed:
            logger.info(
                "Outbox batch processed",
                extra={"worker_id": self.worker_id, **report.as_dict()},
            )
        return report

    async def _deliver(self, record: OutboxRecord, report: PublishReport) -> None:
        # One connect timeout per pass; the rest of the batch fails fast
        if self._broker_down and not self._client.is_connected:
            await self._record_failure(
                record,
                TransientBrokerError("RabbitMQ unavailable, skipped for this pass"),
                report,
            )
            return

        try:
            await self._client.publish(
                record.payload,
                message_id=record.event_id,
                message_type=MESSAGE_TYPE,
            )
        except Exception as e:
            if isinstance(e, TransientBrokerError) and not self._client.is_connected:
                self._broker_down = True
            await self._record_failure(record, e, report)
            return

        try:
            async with self._session_factory() as session, session.begin():
                await self._repo.mark_published(session, record.id, worker_id=self.worker_id)
        except ClaimConflict as e:
            self._record_conflict(e, report)
            return
        except Exception:
            # Message is out; the record is redelivered once its lock expires
            report.errors += 1
            logger.exception(
                "Published but failed to mark outbox record",
                extra={"record_id": record.id, "event_id": record.event_id},
            )
            return

        report.published += 1
        metrics.outbox_records_published_total.inc()
        logger.debug(
            "Outbox record published",
            extra={"record_id": record.id, "event_id": record.event_id},
        )

    async def _record_failure(
        self,
        record: OutboxRecord,
        error: Exception,
        report: PublishReport,
    ) -> None:
        message = f"{type(error).__name__}: {error}"
        try:
            async with self._session_factory() as session, session.begin():
                status = await self._repo.mark_failed(
                    session,
                    record,
                    worker_id=self.worker_id,
                    error=message,
                    max_attempts=self.settings.max_attempts,
                    error_max_length=self.settings.error_max_length,
                )
        except ClaimConflict as e:
            self._record_conflict(e, report)
            return
        except Exception:
            report.errors += 1
            logger.exception(
                "Failed to record outbox publish failure",
                extra={"record_id": record.id, "event_id": record.event_id},
            )
            return

        attempts = record.attempts + 1
        if status is OutboxStatus.FAILED:
            report.failed += 1
            metrics.outbox_records_failed_total.inc()
            failure = PermanentDeliveryFailure(
                record.id,
                attempts,
                truncate_error(message, self.settings.error_max_length),
            )
            logger.error(
                str(failure),
                extra={
                    "record_id": record.id,
                    "event_id": record.event_id,
                    "attempts": attempts,
                },
            )
        else:
            report.retried += 1
            metrics.outbox_records_retried_total.inc()
            logger.warning(
                "Failed to publish outbox record, scheduled for retry",
                extra={
                    "record_id": record.id,
                    "event_id": record.event_id,
                    "attempts": attempts,
                    "error": message,
                },
            )

    def _record_conflict(self, conflict: ClaimConflict, report: PublishReport) -> None:
        report.conflicts += 1
        metrics.outbox_result_conflicts_total.inc()
        logger.warning(
            "Outbox result discarded, lock was reclaimed",
            extra={"record_id": conflict.record_id, "worker_id": conflict.worker_id},
        )


async def start_outbox_publisher(
    session_factory: async_sessionmaker[AsyncSession],
    client: BrokerClient,
    settings: OutboxSettings | None = None,
) -> OutboxPublisher | None:
    """Create and start the global publisher unless disabled by settings."""
    global _publisher

    settings = settings or get_outbox_settings()
    if not settings.enabled:
        logger.info("Outbox publisher disabled, skipping")
        return None

    if _publisher is None:
        _publisher = OutboxPublisher(session_factory, client, settings)
    await _publisher.start()
    return _publisher


async def stop_outbox_publisher() -> None:
    """Stop the global publisher."""
    global _publisher

    if _publisher is not None:
        await _publisher.stop()
        _publisher = None


__all__ = [
    "OutboxPublisher",
    "PublishReport",
    "default_worker_id",
    "start_outbox_publisher",
    "stop_outbox_publisher",
]

"""Repository for outbox records.

Provides:
- Atomic multi-worker claiming of eligible records
- Lock-guarded result updates (published / retry / failed)
- Operator queries: per-status summary, recent records, manual reset
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import and_, func, or_, select, update

from alpr_service.core.database import utcnow
from alpr_service.core.database.repository import BaseRepository
from alpr_service.infra.events.outbox.exceptions import ClaimConflict
from alpr_service.infra.events.outbox.models import OutboxRecord, OutboxStatus
from alpr_service.utils.backoff import next_retry_at

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.elements import ColumnElement

RECENT_LIMIT_MIN = 1
RECENT_LIMIT_MAX = 200
DEFAULT_ERROR_MAX_LENGTH = 1500


def truncate_error(message: str, max_length: int = DEFAULT_ERROR_MAX_LENGTH) -> str:
    """Cut an error message down to what the ``last_error`` column keeps."""
    return message[:max_length]


def clamp_recent_limit(limit: int) -> int:
    return max(RECENT_LIMIT_MIN, min(RECENT_LIMIT_MAX, limit))


class OutboxRepository(BaseRepository[OutboxRecord]):
    """Outbox queries used by the publisher and the admin surface.

    Methods never commit; callers own the transaction.
    """

    def __init__(self) -> None:
        super().__init__(OutboxRecord)

    @staticmethod
    def _eligible(now: datetime, cutoff: datetime) -> ColumnElement[bool]:
        """Claimable: due PENDING rows, or PROCESSING rows whose lock went stale."""
        return or_(
            and_(
                OutboxRecord.status == OutboxStatus.PENDING.value,
                or_(
                    OutboxRecord.next_retry_at.is_(None),
                    OutboxRecord.next_retry_at <= now,
                ),
            ),
            and_(
                OutboxRecord.status == OutboxStatus.PROCESSING.value,
                OutboxRecord.locked_at < cutoff,
            ),
        )

    async def claim_batch(
        self,
        session: AsyncSession,
        *,
        worker_id: str,
        batch_size: int,
        lock_ttl: timedelta,
        now: datetime | None = None,
    ) -> list[OutboxRecord]:
        """Atomically claim up to ``batch_size`` eligible records.

        One UPDATE ... WHERE id IN (SELECT ... FOR UPDATE SKIP LOCKED) ...
        RETURNING statement. Concurrent claimers skip rows another transaction
        has locked, and the outer WHERE re-checks eligibility so a row that
        changed state between selection and update is never double-claimed,
        even on engines that ignore SKIP LOCKED.

        Returns:
            Claimed records, oldest first, now PROCESSING and locked by
            ``worker_id``.
        """
        now = now or utcnow()
        cutoff = now - lock_ttl
        eligible = self._eligible(now, cutoff)

        candidates = (
            select(OutboxRecord.id)
            .where(eligible)
            .order_by(OutboxRecord.created_at.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )

        stmt = (
            update(OutboxRecord)
            .where(OutboxRecord.id.in_(candidates), eligible)
            .values(
                status=OutboxStatus.PROCESSING.value,
                locked_at=now,
                locked_by=worker_id,
            )
            .returning(OutboxRecord)
            .execution_options(synchronize_session=False, populate_existing=True)
        )

        result = await session.execute(stmt)
        records = list(result.scalars().all())
        # RETURNING order is unspecified
        records.sort(key=lambda r: (r.created_at, r.id))

        self._logger.debug(
            "Claimed outbox records",
            extra={"worker_id": worker_id, "claimed": len(records), "operation": "outbox.claim"},
        )
        return records

    async def mark_published(
        self,
        session: AsyncSession,
        record_id: str,
        *,
        worker_id: str,
        now: datetime | None = None,
    ) -> None:
        """Transition a claimed record to PUBLISHED.

        Raises:
            ClaimConflict: The record is no longer PROCESSING under ``worker_id``.
        """
        now = now or utcnow()
        stmt = (
            update(OutboxRecord)
            .where(
                OutboxRecord.id == record_id,
                OutboxRecord.status == OutboxStatus.PROCESSING.value,
                OutboxRecord.locked_by == worker_id,
            )
            .values(
                status=OutboxStatus.PUBLISHED.value,
                published_at=now,
                next_retry_at=None,
                locked_at=None,
                locked_by=None,
                last_error=None,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount != 1:
            raise ClaimConflict(record_id, worker_id)

    async def mark_failed(
        self,
        session: AsyncSession,
        record: OutboxRecord,
        *,
        worker_id: str,
        error: str,
        max_attempts: int,
        error_max_length: int = DEFAULT_ERROR_MAX_LENGTH,
        now: datetime | None = None,
    ) -> OutboxStatus:
        """Record a failed publish attempt for a claimed record.

        ``attempts`` is incremented from the value seen at claim time and the
        next retry is scheduled with exponential backoff. The record becomes
        FAILED once attempts reach ``max_attempts``, PENDING otherwise; the
        lock is released either way.

        Returns:
            The status the record was moved to.

        Raises:
            ClaimConflict: The record is no longer PROCESSING under ``worker_id``.
        """
        now = now or utcnow()
        attempts = record.attempts + 1
        status = OutboxStatus.FAILED if attempts >= max_attempts else OutboxStatus.PENDING

        stmt = (
            update(OutboxRecord)
            .where(
                OutboxRecord.id == record.id,
                OutboxRecord.status == OutboxStatus.PROCESSING.value,
                OutboxRecord.locked_by == worker_id,
                OutboxRecord.attempts == record.attempts,
            )
            .values(
                status=status.value,
                attempts=attempts,
                next_retry_at=next_retry_at(now, attempts),
                locked_at=None,
                locked_by=None,
                last_error=truncate_error(error, error_max_length),
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount != 1:
            raise ClaimConflict(record.id, worker_id)
        return status

    async def summary(self, session: AsyncSession) -> dict[str, int]:
        """Count records per status; every status is present, zero if empty."""
        stmt = select(OutboxRecord.status, func.count()).group_by(OutboxRecord.status)
        result = await session.execute(stmt)
        counts = {status.value: 0 for status in OutboxStatus}
        for status, count in result.all():
            counts[status] = count
        return counts

    async def recent(
        self,
        session: AsyncSession,
        *,
        status: OutboxStatus | None = None,
        limit: int = 50,
    ) -> Sequence[OutboxRecord]:
        """Newest records first, optionally filtered by status.

        ``limit`` is clamped to 1..200.
        """
        stmt = select(OutboxRecord).order_by(
            OutboxRecord.created_at.desc(), OutboxRecord.id.desc()
        )
        if status is not None:
            stmt = stmt.where(OutboxRecord.status == OutboxStatus(status).value)
        stmt = stmt.limit(clamp_recent_limit(limit))
        result = await session.execute(stmt)
        return result.scalars().all()

    async def reset_for_retry(
        self,
        session: AsyncSession,
        record_id: str,
    ) -> OutboxRecord | None:
        """Operator reset: back to PENDING with zero attempts.

        Clears retry schedule, lock and last error. Works from any status.

        Returns:
            The updated record, or None if it does not exist.
        """
        stmt = (
            update(OutboxRecord)
            .where(OutboxRecord.id == record_id)
            .values(
                status=OutboxStatus.PENDING.value,
                attempts=0,
                next_retry_at=None,
                locked_at=None,
                locked_by=None,
                last_error=None,
            )
            .returning(OutboxRecord)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        result = await session.execute(stmt)
        record = result.scalar_one_or_none()
        if record is not None:
            self._logger.info(
                "Outbox record reset for retry",
                extra={"record_id": record_id, "operation": "outbox.reset"},
            )
        return record


__all__ = ["OutboxRepository", "clamp_recent_limit", "truncate_error"]

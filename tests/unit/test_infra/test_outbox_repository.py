"""Tests for OutboxRepository claim and result transitions against SQLite."""

from __future__ import annotations

from datetime import timedelta

import pytest

from alpr_service.infra.events.outbox import ClaimConflict, OutboxRepository, OutboxStatus
from alpr_service.infra.events.outbox.repository import clamp_recent_limit
from tests.utils import BASE_TIME, fetch_record, insert_event, minutes, naive

LOCK_TTL = timedelta(minutes=5)
NOW = BASE_TIME + minutes(30)


@pytest.fixture
def repo() -> OutboxRepository:
    return OutboxRepository()


async def claim(session_factory, repo, worker_id="w1", batch_size=50, now=NOW):
    async with session_factory() as session, session.begin():
        return await repo.claim_batch(
            session,
            worker_id=worker_id,
            batch_size=batch_size,
            lock_ttl=LOCK_TTL,
            now=now,
        )


@pytest.mark.unit
class TestClaimBatch:
    async def test_claims_only_eligible_records(self, session_factory, repo) -> None:
        due = await insert_event(session_factory)
        retry_passed = await insert_event(
            session_factory, next_retry_at=NOW - timedelta(seconds=1), attempts=1
        )
        stale = await insert_event(
            session_factory,
            status=OutboxStatus.PROCESSING,
            locked_at=NOW - minutes(10),
            locked_by="dead-worker",
        )
        await insert_event(session_factory, next_retry_at=NOW + minutes(1), attempts=2)
        await insert_event(
            session_factory,
            status=OutboxStatus.PROCESSING,
            locked_at=NOW - minutes(1),
            locked_by="live-worker",
        )
        await insert_event(session_factory, status=OutboxStatus.PUBLISHED)
        await insert_event(session_factory, status=OutboxStatus.FAILED, attempts=10)

        claimed = await claim(session_factory, repo)

        assert {r.id for r in claimed} == {due.id, retry_passed.id, stale.id}
        for record in claimed:
            assert record.status == OutboxStatus.PROCESSING.value
            assert record.locked_by == "w1"
            assert naive(record.locked_at) == naive(NOW)

    async def test_oldest_first_within_batch_size(self, session_factory, repo) -> None:
        offsets = [3, 0, 4, 1, 2]
        inserted = {
            offset: await insert_event(session_factory, created_at=BASE_TIME + minutes(offset))
            for offset in offsets
        }

        claimed = await claim(session_factory, repo, batch_size=2)

        assert [r.id for r in claimed] == [inserted[0].id, inserted[1].id]
        untouched = await fetch_record(session_factory, inserted[2].id)
        assert untouched.status == OutboxStatus.PENDING.value

    async def test_claimed_records_not_claimed_again_while_lock_fresh(
        self, session_factory, repo
    ) -> None:
        await insert_event(session_factory)
        await insert_event(session_factory)

        first = await claim(session_factory, repo, worker_id="w1")
        second = await claim(session_factory, repo, worker_id="w2", now=NOW + minutes(1))

        assert len(first) == 2
        assert second == []

    async def test_stale_lock_reclaimed_by_other_worker(self, session_factory, repo) -> None:
        await insert_event(session_factory)
        await claim(session_factory, repo, worker_id="w1")

        later = NOW + LOCK_TTL + timedelta(seconds=1)
        reclaimed = await claim(session_factory, repo, worker_id="w2", now=later)

        assert len(reclaimed) == 1
        assert reclaimed[0].locked_by == "w2"

    async def test_empty_store(self, session_factory, repo) -> None:
        assert await claim(session_factory, repo) == []


@pytest.mark.unit
class TestResultTransitions:
    async def test_mark_published(self, session_factory, repo) -> None:
        inserted = await insert_event(session_factory)
        [record] = await claim(session_factory, repo)

        async with session_factory() as session, session.begin():
            await repo.mark_published(session, record.id, worker_id="w1", now=NOW)

        stored = await fetch_record(session_factory, inserted.id)
        assert stored.status == OutboxStatus.PUBLISHED.value
        assert naive(stored.published_at) == naive(NOW)
        assert stored.locked_at is None
        assert stored.locked_by is None
        assert stored.is_terminal

    async def test_mark_published_conflict_after_reclaim(self, session_factory, repo) -> None:
        await insert_event(session_factory)
        [record] = await claim(session_factory, repo, worker_id="w1")
        await claim(session_factory, repo, worker_id="w2", now=NOW + LOCK_TTL + minutes(1))

        with pytest.raises(ClaimConflict) as exc_info:
            async with session_factory() as session, session.begin():
                await repo.mark_published(session, record.id, worker_id="w1")

        assert exc_info.value.record_id == record.id
        stored = await fetch_record(session_factory, record.id)
        assert stored.status == OutboxStatus.PROCESSING.value
        assert stored.locked_by == "w2"

    async def test_mark_failed_schedules_retry(self, session_factory, repo) -> None:
        await insert_event(session_factory)
        [record] = await claim(session_factory, repo)

        async with session_factory() as session, session.begin():
            status = await repo.mark_failed(
                session,
                record,
                worker_id="w1",
                error="ConnectionError: broker down",
                max_attempts=3,
                now=NOW,
            )

        assert status is OutboxStatus.PENDING
        stored = await fetch_record(session_factory, record.id)
        assert stored.status == OutboxStatus.PENDING.value
        assert stored.attempts == 1
        assert naive(stored.next_retry_at) == naive(NOW + timedelta(seconds=2))
        assert stored.last_error == "ConnectionError: broker down"
        assert stored.locked_by is None

    async def test_mark_failed_at_max_attempts(self, session_factory, repo) -> None:
        await insert_event(session_factory, attempts=2)
        [record] = await claim(session_factory, repo)

        async with session_factory() as session, session.begin():
            status = await repo.mark_failed(
                session, record, worker_id="w1", error="boom", max_attempts=3, now=NOW
            )

        assert status is OutboxStatus.FAILED
        stored = await fetch_record(session_factory, record.id)
        assert stored.status == OutboxStatus.FAILED.value
        assert stored.attempts == 3

        # Terminal records are never claimed again
        assert await claim(session_factory, repo, now=NOW + minutes(60)) == []

    async def test_mark_failed_truncates_error(self, session_factory, repo) -> None:
        await insert_event(session_factory)
        [record] = await claim(session_factory, repo)

        async with session_factory() as session, session.begin():
            await repo.mark_failed(
                session,
                record,
                worker_id="w1",
                error="x" * 5000,
                max_attempts=3,
                error_max_length=100,
            )

        stored = await fetch_record(session_factory, record.id)
        assert len(stored.last_error) == 100

    async def test_mark_failed_conflict_for_other_worker(self, session_factory, repo) -> None:
        await insert_event(session_factory)
        [record] = await claim(session_factory, repo, worker_id="w1")

        with pytest.raises(ClaimConflict):
            async with session_factory() as session, session.begin():
                await repo.mark_failed(
                    session, record, worker_id="intruder", error="boom", max_attempts=3
                )


@pytest.mark.unit
class TestOperatorQueries:
    async def test_summary_zero_filled(self, session_factory, repo) -> None:
        async with session_factory() as session:
            counts = await repo.summary(session)
        assert counts == {"PENDING": 0, "PROCESSING": 0, "PUBLISHED": 0, "FAILED": 0}

    async def test_summary_counts(self, session_factory, repo) -> None:
        await insert_event(session_factory)
        await insert_event(session_factory)
        await insert_event(session_factory, status=OutboxStatus.FAILED, attempts=10)

        async with session_factory() as session:
            counts = await repo.summary(session)
        assert counts["PENDING"] == 2
        assert counts["FAILED"] == 1
        assert counts["PUBLISHED"] == 0

    async def test_recent_newest_first_and_filtered(self, session_factory, repo) -> None:
        old = await insert_event(session_factory, created_at=BASE_TIME)
        new = await insert_event(session_factory, created_at=BASE_TIME + minutes(5))
        failed = await insert_event(
            session_factory,
            created_at=BASE_TIME + minutes(1),
            status=OutboxStatus.FAILED,
        )

        async with session_factory() as session:
            everything = await repo.recent(session)
            only_failed = await repo.recent(session, status=OutboxStatus.FAILED)
            one = await repo.recent(session, limit=0)

        assert [r.id for r in everything] == [new.id, failed.id, old.id]
        assert [r.id for r in only_failed] == [failed.id]
        assert [r.id for r in one] == [new.id]

    @pytest.mark.parametrize(("limit", "expected"), [(-5, 1), (0, 1), (1, 1), (50, 50), (999, 200)])
    def test_clamp_recent_limit(self, limit: int, expected: int) -> None:
        assert clamp_recent_limit(limit) == expected

    async def test_reset_for_retry(self, session_factory, repo) -> None:
        inserted = await insert_event(
            session_factory,
            status=OutboxStatus.FAILED,
            attempts=10,
            next_retry_at=NOW,
        )

        async with session_factory() as session, session.begin():
            record = await repo.reset_for_retry(session, inserted.id)

        assert record is not None
        assert record.status == OutboxStatus.PENDING.value
        assert record.attempts == 0
        assert record.next_retry_at is None
        assert record.last_error is None

        claimed = await claim(session_factory, repo)
        assert [r.id for r in claimed] == [inserted.id]

    async def test_reset_for_retry_unknown(self, session_factory, repo) -> None:
        async with session_factory() as session, session.begin():
            assert await repo.reset_for_retry(session, "does-not-exist") is None

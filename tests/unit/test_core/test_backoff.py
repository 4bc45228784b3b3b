"""Tests for the shared exponential backoff schedule."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from alpr_service.utils.backoff import backoff_ms, backoff_seconds, next_retry_at


@pytest.mark.unit
class TestBackoff:
    @pytest.mark.parametrize(
        ("attempt", "expected"),
        [(0, 1_000), (1, 2_000), (2, 4_000), (5, 32_000), (6, 60_000), (10, 60_000), (50, 60_000)],
    )
    def test_schedule_doubles_and_caps(self, attempt: int, expected: int) -> None:
        assert backoff_ms(attempt) == expected

    def test_negative_attempt_treated_as_zero(self) -> None:
        assert backoff_ms(-3) == 1_000

    def test_seconds(self) -> None:
        assert backoff_seconds(0) == 1.0
        assert backoff_seconds(3) == 8.0

    def test_next_retry_at(self) -> None:
        now = datetime(2026, 1, 1, tzinfo=UTC)
        assert next_retry_at(now, 1) == now + timedelta(seconds=2)
        assert next_retry_at(now, 20) == now + timedelta(seconds=60)

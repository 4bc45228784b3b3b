"""Exponential backoff shared by outbox retries and broker reconnects.

The schedule is deterministic (no jitter) so that ``next_retry_at`` values
stored on outbox records are predictable:

    attempt:  0    1    2    3    4     5     6+
    delay:    1s   2s   4s   8s   16s   32s   60s (cap)
"""

from __future__ import annotations

from datetime import datetime, timedelta

BASE_DELAY_MS = 1_000
MAX_DELAY_MS = 60_000
MAX_EXPONENT = 10


def backoff_ms(attempt: int) -> int:
    """Return the delay in milliseconds for the given attempt number.

    ``min(60000, 1000 * 2 ** min(10, attempt))``. Negative attempts are
    treated as zero.
    """
    exponent = min(MAX_EXPONENT, max(0, attempt))
    return min(MAX_DELAY_MS, BASE_DELAY_MS * (2**exponent))


def backoff_seconds(attempt: int) -> float:
    """Delay for ``attempt`` in seconds, for use with ``asyncio.sleep``."""
    return backoff_ms(attempt) / 1000


def next_retry_at(now: datetime, attempt: int) -> datetime:
    """Moment the record may be claimed again after ``attempt`` failures."""
    return now + timedelta(milliseconds=backoff_ms(attempt))

"""Utility modules for common operations."""

from alpr_service.utils.backoff import backoff_ms, backoff_seconds, next_retry_at

__all__ = [
    "backoff_ms",
    "backoff_seconds",
    "next_retry_at",
]

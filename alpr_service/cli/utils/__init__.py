"""CLI utilities for running async operations and formatting output."""

from alpr_service.cli.utils.async_runner import coro
from alpr_service.cli.utils.formatters import (
    error,
    header,
    info,
    print_json,
    print_table,
    success,
    warning,
)

__all__ = [
    "coro",
    "error",
    "header",
    "info",
    "print_json",
    "print_table",
    "success",
    "warning",
]

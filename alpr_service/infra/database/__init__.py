"""Database infrastructure."""

from .session import (
    build_engine,
    build_session_factory,
    close_database,
    create_tables,
    get_async_session,
    get_engine,
    get_session_factory,
    init_database,
)

__all__ = [
    "build_engine",
    "build_session_factory",
    "close_database",
    "create_tables",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_database",
]

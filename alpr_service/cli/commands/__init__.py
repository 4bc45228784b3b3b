"""CLI command modules."""

from alpr_service.cli.commands import broker, db, outbox, server, worker

__all__ = ["broker", "db", "outbox", "server", "worker"]

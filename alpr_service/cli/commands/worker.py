"""Worker process commands."""

import asyncio

import click

from alpr_service.cli.utils import info


@click.group(name="worker")
def worker() -> None:
    """Run background workers."""


@worker.command()
def publisher() -> None:
    """Run the outbox publisher loop without the HTTP API."""
    from alpr_service.workers.publisher import run_publisher

    info("Starting outbox publisher (Ctrl+C to stop)...")
    asyncio.run(run_publisher())


@worker.command()
def consumer() -> None:
    """Consume ALPR events from the main queue and log them."""
    from alpr_service.workers.consumer import run_consumer

    info("Starting consumer (Ctrl+C to stop)...")
    asyncio.run(run_consumer())

"""Main CLI entry point for alpr-service management commands."""

import click

from alpr_service.cli.commands import broker, db, outbox, server, worker
from alpr_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="1.0.0", prog_name="alpr-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """ALPR Service CLI - run the API and workers, operate the outbox.

    \b
    Command Groups:
      server     Development and production HTTP servers
      worker     Outbox publisher and queue consumer processes
      outbox     Inspect, retry and drain outbox records
      broker     RabbitMQ topology
      db         Database connectivity

    \b
    Quick Start:
      alpr-service db init                 # Test database connection
      alpr-service broker declare          # Create exchanges and queues
      alpr-service server dev              # API with in-process publisher
      alpr-service worker consumer         # Log consumed events
      alpr-service outbox summary          # Counts per status
    """
    ctx.ensure_object(dict)


cli.add_command(server.server)
cli.add_command(worker.worker)
cli.add_command(outbox.outbox)
cli.add_command(broker.broker)
cli.add_command(db.db)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()

"""RabbitMQ topology commands."""

import sys

import click

from alpr_service.cli.utils import coro, error, header, info, success


@click.group(name="broker")
def broker() -> None:
    """RabbitMQ management."""


@broker.command()
@click.option("--timeout", default=30.0, show_default=True, type=float, help="Connect timeout")
@coro
async def declare(timeout: float) -> None:
    """Declare exchanges, queues and bindings, then exit."""
    from alpr_service.infra.messaging.client import BrokerClient
    from alpr_service.infra.messaging.exceptions import TransientBrokerError

    client = BrokerClient()
    settings = client.settings
    info(f"Connecting to {settings.host}:{settings.port}{settings.vhost}...")

    try:
        await client.ensure_connected(timeout=timeout)
    except TransientBrokerError as e:
        error(str(e))
        sys.exit(1)
    finally:
        await client.close()

    header("Topology declared")
    click.echo(f"  exchange  {settings.exchange_name} (direct)")
    click.echo(f"  queue     {settings.queue_name} <- {settings.routing_key}")
    click.echo(f"  dlx       {settings.dlx_exchange_name} (direct)")
    click.echo(f"  dlq       {settings.dlq_name} <- {settings.dlq_routing_key}")
    success("Done")

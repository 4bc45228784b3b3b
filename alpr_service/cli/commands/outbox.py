"""Outbox inspection and recovery commands."""

import sys

import click

from alpr_service.cli.utils import coro, error, header, info, print_json, print_table, success, warning
from alpr_service.infra.events.outbox.models import OutboxStatus

RECENT_COLUMNS = [
    "id",
    "event_id",
    "status",
    "attempts",
    "next_retry_at",
    "locked_by",
    "created_at",
    "last_error",
]


@click.group(name="outbox")
def outbox() -> None:
    """Inspect and re-drive the event outbox."""


@outbox.command()
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of text")
@coro
async def summary(as_json: bool) -> None:
    """Show record counts per status."""
    from alpr_service.infra.database import close_database, get_async_session
    from alpr_service.infra.events.outbox.repository import OutboxRepository

    try:
        async with get_async_session() as session:
            counts = await OutboxRepository().summary(session)
    finally:
        await close_database()

    if as_json:
        print_json({"counts": counts, "total": sum(counts.values())})
        return

    header("Outbox summary")
    for status, count in counts.items():
        click.echo(f"  {status:<11} {count}")
    click.echo(f"  {'TOTAL':<11} {sum(counts.values())}")
    if counts[OutboxStatus.FAILED.value]:
        warning(f"{counts[OutboxStatus.FAILED.value]} record(s) FAILED; see `outbox recent --status FAILED`")


@outbox.command()
@click.option(
    "--status",
    type=click.Choice([s.value for s in OutboxStatus], case_sensitive=False),
    default=None,
    help="Only records in this status",
)
@click.option("--limit", default=20, show_default=True, type=int, help="Max rows (1..200)")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@coro
async def recent(status: str | None, limit: int, as_json: bool) -> None:
    """List the newest outbox records."""
    from alpr_service.features.outbox.schemas import OutboxRecordResponse
    from alpr_service.infra.database import close_database, get_async_session
    from alpr_service.infra.events.outbox.repository import OutboxRepository

    try:
        async with get_async_session() as session:
            records = await OutboxRepository().recent(
                session,
                status=OutboxStatus(status.upper()) if status else None,
                limit=limit,
            )
            rows = [OutboxRecordResponse.model_validate(r).model_dump(mode="json") for r in records]
    finally:
        await close_database()

    if as_json:
        print_json(rows)
    else:
        print_table(rows, RECENT_COLUMNS)


@outbox.command()
@click.argument("record_id")
@coro
async def retry(record_id: str) -> None:
    """Reset RECORD_ID to PENDING with zero attempts."""
    from alpr_service.infra.database import close_database, get_async_session
    from alpr_service.infra.events.outbox.repository import OutboxRepository

    try:
        async with get_async_session() as session, session.begin():
            record = await OutboxRepository().reset_for_retry(session, record_id)
    finally:
        await close_database()

    if record is None:
        error(f"Outbox record {record_id} not found")
        sys.exit(1)
    success(f"Outbox record {record_id} reset to PENDING")


@outbox.command()
@click.option(
    "--max-passes",
    default=100,
    show_default=True,
    type=int,
    help="Stop after this many claim/publish passes",
)
@click.option(
    "--timeout",
    default=30.0,
    show_default=True,
    type=float,
    help="Seconds to wait for the broker before giving up",
)
@coro
async def drain(max_passes: int, timeout: float) -> None:
    """Publish due records now, pass after pass, until none are claimable."""
    from alpr_service.infra.database import close_database, get_session_factory
    from alpr_service.infra.events.outbox.processor import OutboxPublisher
    from alpr_service.infra.messaging.client import close_broker_client, get_broker_client
    from alpr_service.infra.messaging.exceptions import TransientBrokerError

    client = get_broker_client()
    try:
        try:
            await client.ensure_connected(timeout=timeout)
        except TransientBrokerError as e:
            error(str(e))
            sys.exit(1)

        publisher = OutboxPublisher(get_session_factory(), client)
        totals: dict[str, int] = {}
        for n in range(1, max_passes + 1):
            report = await publisher.run_once()
            for key, value in report.as_dict().items():
                totals[key] = totals.get(key, 0) + value
            if report.claimed == 0:
                break
            info(
                f"Pass {n}: claimed={report.claimed} published={report.published} "
                f"retried={report.retried} failed={report.failed}"
            )
    finally:
        await close_broker_client()
        await close_database()

    print_json(totals)
    if totals.get("failed") or totals.get("retried"):
        warning("Some records were not published")
    else:
        success("Outbox drained")

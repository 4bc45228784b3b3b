"""Database commands."""

import sys

import click

from alpr_service.cli.utils import coro, error, info, success
from alpr_service.core.settings import get_db_settings


@click.group(name="db")
def db() -> None:
    """Database management commands."""


@db.command()
@click.option(
    "--create-tables/--no-create-tables",
    default=False,
    help="Create missing tables without Alembic (development only)",
)
@coro
async def init(create_tables: bool) -> None:
    """Verify connectivity and optionally create tables."""
    from alpr_service.infra.database import close_database, create_tables as create_all, init_database

    settings = get_db_settings()
    info(f"Connecting to: {settings.host}:{settings.port}/{settings.name}")

    try:
        await init_database()
        success("Database connected successfully!")
        if create_tables:
            await create_all()
            success("Tables created")
        else:
            info("Apply migrations with: alembic upgrade head")
    except Exception as e:
        error(f"Failed to connect to database: {e}")
        sys.exit(1)
    finally:
        await close_database()

"""
Schema migrations.
Applies the Alembic revisions shipped in jobqueue/migrations before workers start.
"""

import asyncio
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from sqlalchemy.exc import SQLAlchemyError

from jobqueue.config import get_settings
from jobqueue.errors import DatabaseMigrationError

logger = logging.getLogger(__name__)

# Shipped inside the package so installed workers can migrate
MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


def get_alembic_config(database_sync_url: str | None = None) -> Config:
    """
    Build an Alembic config pointing at the packaged migration scripts.

    No ini file is read, so Alembic leaves logging to `setup_logging`.

    Args:
        database_sync_url: Synchronous database URL. Defaults to the configured one.
    """
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    url = database_sync_url or get_settings().database_sync_url
    # configparser interpolation
    config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return config


def upgrade_to_head(database_sync_url: str | None = None) -> None:
    """
    Apply every pending migration.

    Raises:
        DatabaseMigrationError: If Alembic or the database rejects a migration.
    """
    config = get_alembic_config(database_sync_url)
    try:
        command.upgrade(config, "head")
    except (CommandError, SQLAlchemyError, OSError) as e:
        raise DatabaseMigrationError(str(e)) from e
    logger.info("Database migrations applied")


async def run_migrations(database_sync_url: str | None = None) -> None:
    """Apply migrations without blocking the event loop."""
    await asyncio.to_thread(upgrade_to_head, database_sync_url)

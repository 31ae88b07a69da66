"""
Unit tests for database bootstrap: configuration, connection and migrations.
"""

from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.script import ScriptDirectory

import jobqueue
from jobqueue.config import get_settings
from jobqueue.db import close_db, connection, init_db
from jobqueue.db.migrate import (
    MIGRATIONS_DIR,
    get_alembic_config,
    run_migrations,
    upgrade_to_head,
)
from jobqueue.errors import (
    BadConfigError,
    ConnectingToDatabaseError,
    DatabaseMigrationError,
)


@pytest.fixture
def fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Re-read settings from the environment and start without an engine."""
    monkeypatch.setattr(connection, "_engine", None)
    monkeypatch.setattr(connection, "AsyncSessionLocal", None)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestConnection:
    """Tests for init_db error reporting."""

    @pytest.mark.asyncio
    async def test_empty_database_url(self, fresh_settings):
        fresh_settings.setenv("DATABASE_URL", "")

        with pytest.raises(BadConfigError):
            await init_db()

    @pytest.mark.asyncio
    async def test_unreachable_database(self, fresh_settings, tmp_path: Path):
        missing = tmp_path / "missing-dir" / "queue.db"
        fresh_settings.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{missing}")

        try:
            with pytest.raises(ConnectingToDatabaseError):
                await init_db()
        finally:
            await close_db()

    @pytest.mark.asyncio
    async def test_init_and_close(self, fresh_settings, tmp_path: Path):
        fresh_settings.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}")

        session_factory = await init_db()
        assert connection.get_session_factory() is session_factory

        await close_db()
        with pytest.raises(RuntimeError):
            connection.get_session_factory()


class TestMigrations:
    """Tests for applying the Alembic revisions."""

    def test_upgrade_creates_queue_table(self, tmp_path: Path):
        url = f"sqlite:///{tmp_path / 'queue.db'}"

        upgrade_to_head(url)
        # Second run is a no-op
        upgrade_to_head(url)

        engine = sa.create_engine(url)
        try:
            inspector = sa.inspect(engine)
            assert "queue" in inspector.get_table_names()
            columns = {column["name"] for column in inspector.get_columns("queue")}
            assert columns == {
                "id",
                "created_at",
                "updated_at",
                "scheduled_for",
                "failed_attempts",
                "status",
                "message",
                "lease_expires_at",
                "claim_token",
            }
            indexes = {index["name"] for index in inspector.get_indexes("queue")}
            assert {"ix_queue_poll", "ix_queue_lease_expiry"} <= indexes
        finally:
            engine.dispose()

    def test_migrations_ship_inside_package(self):
        """Test that the scripts resolve from the installed package, not the checkout."""
        script = ScriptDirectory.from_config(get_alembic_config("sqlite://"))

        assert MIGRATIONS_DIR.parent == Path(jobqueue.__file__).resolve().parent
        assert Path(script.dir) == MIGRATIONS_DIR
        assert script.get_current_head() == "002"

    def test_upgrade_from_another_directory(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        """Test that migrating needs no alembic.ini in the working directory."""
        monkeypatch.chdir(tmp_path)
        url = f"sqlite:///{tmp_path / 'queue.db'}"

        upgrade_to_head(url)

        engine = sa.create_engine(url)
        try:
            assert sa.inspect(engine).has_table("queue")
        finally:
            engine.dispose()

    @pytest.mark.asyncio
    async def test_run_migrations_async(self, tmp_path: Path):
        url = f"sqlite:///{tmp_path / 'queue.db'}"

        await run_migrations(url)

        engine = sa.create_engine(url)
        try:
            assert sa.inspect(engine).has_table("queue")
        finally:
            engine.dispose()

    def test_unreachable_database_fails(self, tmp_path: Path):
        url = f"sqlite:///{tmp_path / 'missing-dir' / 'queue.db'}"

        with pytest.raises(DatabaseMigrationError):
            upgrade_to_head(url)

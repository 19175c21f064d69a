"""Pytest configuration and fixtures."""

import os
from pathlib import Path
from textwrap import dedent

import pytest
import structlog

from checkpoint.migrations.config import CheckpointConfig, DatabaseConfig


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by the CLI or logging tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def migrations_dir(tmp_path: Path) -> Path:
    """Create an empty migrations directory."""
    path = tmp_path / "migrations"
    path.mkdir()
    return path


@pytest.fixture
def sqlite_config(tmp_path: Path, migrations_dir: Path) -> CheckpointConfig:
    """Configuration pointing at a SQLite file in tmp_path."""
    return CheckpointConfig(
        database=DatabaseConfig(type="sqlite", database=str(tmp_path / "test.db")),
        migrations_dir=migrations_dir,
        table_name="schema_migrations",
    )


@pytest.fixture
def write_migration(migrations_dir: Path):
    """Write a migration file that logs its runs to a ``trace`` table.

    ``up`` creates ``t_<name>`` and appends the identifier to ``trace``;
    ``down`` drops ``t_<name>``. Pass ``fail_up``/``fail_down`` to make
    a direction raise. ``sync`` writes plain functions returning the
    adapter coroutine.
    """

    def _write(
        identifier: str,
        *,
        fail_up: bool = False,
        fail_down: bool = False,
        sync: bool = False,
    ) -> Path:
        table = "t_" + identifier.split("_", 1)[1]
        up_body = (
            'raise RuntimeError("boom")'
            if fail_up
            else f'''await adapter.execute(
        "CREATE TABLE IF NOT EXISTS trace (name TEXT);"
        "CREATE TABLE {table} (id INTEGER);"
        "INSERT INTO trace (name) VALUES ('{identifier}');"
    )'''
        )
        down_body = (
            'raise RuntimeError("boom")'
            if fail_down
            else f'await adapter.execute("DROP TABLE {table}")'
        )
        source = dedent(f'''
            """Migration {identifier}."""


            async def up(adapter):
                {{up}}


            async def down(adapter):
                {{down}}
        ''').strip() + "\n"
        source = source.replace("{up}", up_body).replace("{down}", down_body)
        if sync:
            source = source.replace("async def", "def").replace("await ", "return ")

        path = migrations_dir / f"{identifier}.py"
        path.write_text(source)
        return path

    return _write


@pytest.fixture
def postgres_config(migrations_dir: Path) -> CheckpointConfig:
    """Configuration for a real PostgreSQL database.

    Set CHECKPOINT_PG_DATABASE (and optionally CHECKPOINT_PG_HOST, _PORT,
    _USER, _PASSWORD) to run against PostgreSQL. Otherwise, this fixture
    is skipped.
    """
    return _env_config("postgres", "CHECKPOINT_PG", migrations_dir)


@pytest.fixture
def mysql_config(migrations_dir: Path) -> CheckpointConfig:
    """Configuration for a real MySQL database (CHECKPOINT_MYSQL_*)."""
    return _env_config("mysql", "CHECKPOINT_MYSQL", migrations_dir)


def _env_config(db_type: str, prefix: str, migrations_dir: Path) -> CheckpointConfig:
    database = os.environ.get(f"{prefix}_DATABASE")
    if not database:
        pytest.skip(f"{prefix}_DATABASE not set")

    port = os.environ.get(f"{prefix}_PORT")
    return CheckpointConfig(
        database=DatabaseConfig(
            type=db_type,
            host=os.environ.get(f"{prefix}_HOST", "localhost"),
            port=int(port) if port else None,
            user=os.environ.get(f"{prefix}_USER"),
            password=os.environ.get(f"{prefix}_PASSWORD"),
            database=database,
        ),
        migrations_dir=migrations_dir,
        table_name="checkpoint_test_migrations",
    )


@pytest.fixture
def read_trace(sqlite_config: CheckpointConfig):
    """Return an async callable listing identifiers in ``trace`` in run order."""
    from checkpoint.adapters import connected
    from checkpoint.adapters.sqlite import SqliteAdapter

    async def _read() -> list[str]:
        async with connected(SqliteAdapter(sqlite_config.database)) as adapter:
            tables = await adapter.fetch(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='trace'"
            )
            if not tables:
                return []
            rows = await adapter.fetch("SELECT name FROM trace ORDER BY rowid")
        return [row["name"] for row in rows]

    return _read

"""PostgreSQL adapter backed by asyncpg."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import asyncpg
import structlog

from checkpoint.exceptions import ConnectionError, DuplicateEntry, ExecutionError

if TYPE_CHECKING:
    from checkpoint.migrations.config import DatabaseConfig

logger = structlog.get_logger(__name__)


class PostgresAdapter:
    """Adapter for PostgreSQL.

    Holds a single connection between ``connect()`` and ``close()``.
    Placeholders use asyncpg's ``$1`` style.
    """

    dialect = "postgres"

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self._conn: asyncpg.Connection | None = None

    async def connect(self) -> None:
        try:
            self._conn = await asyncpg.connect(
                host=self.config.host,
                port=self.config.port,
                user=self.config.user,
                password=self.config.password,
                database=self.config.database,
            )
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise ConnectionError(f"PostgreSQL connection failed: {e}") from e
        logger.debug(
            "Connected",
            dialect=self.dialect,
            host=self.config.host,
            port=self.config.port,
            database=self.config.database,
        )

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()

    async def execute(self, statement: str) -> None:
        conn = self._connection()
        try:
            await conn.execute(statement)
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise ExecutionError(f"PostgreSQL statement failed: {e}") from e

    async def fetch(self, statement: str) -> list[dict[str, Any]]:
        conn = self._connection()
        try:
            rows = await conn.fetch(statement)
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise ExecutionError(f"PostgreSQL query failed: {e}") from e
        return [dict(row) for row in rows]

    async def create_ledger_table(self, table: str) -> None:
        await self.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id SERIAL PRIMARY KEY,
                name VARCHAR(255) UNIQUE NOT NULL,
                executed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    async def list_entries(self, table: str) -> list[str]:
        rows = await self.fetch(f"SELECT name FROM {table} ORDER BY executed_at ASC, id ASC")
        return [row["name"] for row in rows]

    async def insert_entry(self, table: str, name: str) -> None:
        conn = self._connection()
        try:
            await conn.execute(f"INSERT INTO {table} (name) VALUES ($1)", name)
        except asyncpg.UniqueViolationError as e:
            raise DuplicateEntry(name, table) from e
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise ExecutionError(f"Failed to record {name} in {table}: {e}") from e

    async def delete_entry(self, table: str, name: str) -> None:
        conn = self._connection()
        try:
            await conn.execute(f"DELETE FROM {table} WHERE name = $1", name)
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise ExecutionError(f"Failed to remove {name} from {table}: {e}") from e

    def _connection(self) -> asyncpg.Connection:
        if self._conn is None:
            raise ExecutionError("PostgreSQL adapter is not connected")
        return self._conn

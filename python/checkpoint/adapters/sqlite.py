"""SQLite adapter backed by aiosqlite."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

import aiosqlite
import structlog

from checkpoint.exceptions import ConnectionError, DuplicateEntry, ExecutionError

if TYPE_CHECKING:
    from checkpoint.migrations.config import DatabaseConfig

logger = structlog.get_logger(__name__)


class SqliteAdapter:
    """Adapter for SQLite.

    ``config.database`` is the database file path (``:memory:`` when
    unset). The connection runs in autocommit mode and ``execute`` accepts
    multi-statement scripts.
    """

    dialect = "sqlite"

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self.path = config.database or ":memory:"
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        try:
            self._conn = await aiosqlite.connect(self.path, isolation_level=None)
        except sqlite3.Error as e:
            raise ConnectionError(f"SQLite connection failed: {e}") from e
        self._conn.row_factory = sqlite3.Row
        logger.debug("Connected", dialect=self.dialect, database=self.path)

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()

    async def execute(self, statement: str) -> None:
        conn = self._connection()
        try:
            await conn.executescript(statement)
        except sqlite3.Error as e:
            raise ExecutionError(f"SQLite statement failed: {e}") from e

    async def fetch(self, statement: str) -> list[dict[str, Any]]:
        conn = self._connection()
        try:
            async with conn.execute(statement) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise ExecutionError(f"SQLite query failed: {e}") from e
        return [dict(row) for row in rows]

    async def create_ledger_table(self, table: str) -> None:
        await self.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name VARCHAR(255) UNIQUE NOT NULL,
                executed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
        """)

    async def list_entries(self, table: str) -> list[str]:
        rows = await self.fetch(f"SELECT name FROM {table} ORDER BY executed_at ASC, id ASC")
        return [row["name"] for row in rows]

    async def insert_entry(self, table: str, name: str) -> None:
        conn = self._connection()
        try:
            await conn.execute(f"INSERT INTO {table} (name) VALUES (?)", (name,))
        except sqlite3.IntegrityError as e:
            raise DuplicateEntry(name, table) from e
        except sqlite3.Error as e:
            raise ExecutionError(f"Failed to record {name} in {table}: {e}") from e

    async def delete_entry(self, table: str, name: str) -> None:
        conn = self._connection()
        try:
            await conn.execute(f"DELETE FROM {table} WHERE name = ?", (name,))
        except sqlite3.Error as e:
            raise ExecutionError(f"Failed to remove {name} from {table}: {e}") from e

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise ExecutionError("SQLite adapter is not connected")
        return self._conn

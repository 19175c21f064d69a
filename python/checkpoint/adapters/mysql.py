"""MySQL adapter backed by aiomysql."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import aiomysql
import structlog
from pymysql.constants import ER
from pymysql.err import IntegrityError, MySQLError

from checkpoint.exceptions import ConnectionError, DuplicateEntry, ExecutionError

if TYPE_CHECKING:
    from checkpoint.migrations.config import DatabaseConfig

logger = structlog.get_logger(__name__)


class MysqlAdapter:
    """Adapter for MySQL.

    Holds a single autocommit connection between ``connect()`` and
    ``close()``. Placeholders use PyMySQL's ``%s`` style.
    """

    dialect = "mysql"

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self._conn: aiomysql.Connection | None = None

    async def connect(self) -> None:
        try:
            conn = await aiomysql.connect(
                host=self.config.host,
                port=self.config.port,
                user=self.config.user,
                password=self.config.password or "",
                db=self.config.database,
                autocommit=True,
            )
        except (OSError, MySQLError) as e:
            raise ConnectionError(f"MySQL connection failed: {e}") from e
        try:
            await conn.ping(reconnect=False)
        except (OSError, MySQLError) as e:
            conn.close()
            raise ConnectionError(f"MySQL connection failed: {e}") from e
        self._conn = conn
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
            conn.close()

    async def execute(self, statement: str) -> None:
        await self._run(statement, None, "MySQL statement failed")

    async def fetch(self, statement: str) -> list[dict[str, Any]]:
        conn = self._connection()
        try:
            async with conn.cursor(aiomysql.DictCursor) as cur:
                await cur.execute(statement)
                rows = await cur.fetchall()
        except MySQLError as e:
            raise ExecutionError(f"MySQL query failed: {e}") from e
        return list(rows)

    async def create_ledger_table(self, table: str) -> None:
        await self.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id INT AUTO_INCREMENT PRIMARY KEY,
                name VARCHAR(255) UNIQUE NOT NULL,
                executed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    async def list_entries(self, table: str) -> list[str]:
        rows = await self.fetch(f"SELECT name FROM {table} ORDER BY executed_at ASC, id ASC")
        return [row["name"] for row in rows]

    async def insert_entry(self, table: str, name: str) -> None:
        try:
            await self._run(
                f"INSERT INTO {table} (name) VALUES (%s)",
                (name,),
                f"Failed to record {name} in {table}",
            )
        except ExecutionError as e:
            cause = e.__cause__
            if isinstance(cause, IntegrityError) and cause.args and cause.args[0] == ER.DUP_ENTRY:
                raise DuplicateEntry(name, table) from cause
            raise

    async def delete_entry(self, table: str, name: str) -> None:
        await self._run(
            f"DELETE FROM {table} WHERE name = %s",
            (name,),
            f"Failed to remove {name} from {table}",
        )

    async def _run(self, statement: str, args: tuple[Any, ...] | None, context: str) -> None:
        conn = self._connection()
        try:
            async with conn.cursor() as cur:
                await cur.execute(statement, args)
        except MySQLError as e:
            raise ExecutionError(f"{context}: {e}") from e

    def _connection(self) -> aiomysql.Connection:
        if self._conn is None:
            raise ExecutionError("MySQL adapter is not connected")
        return self._conn

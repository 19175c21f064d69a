"""Database adapters.

Every adapter exposes the same async surface: connection management, raw
statement execution, and the four ledger primitives written in the
database's own dialect. Migration files only ever see this surface.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from checkpoint.exceptions import ConfigurationError

if TYPE_CHECKING:
    from checkpoint.migrations.config import DatabaseConfig


@runtime_checkable
class Adapter(Protocol):
    """Protocol for database adapters."""

    dialect: str

    async def connect(self) -> None:
        """Open the connection. Raises ConnectionError."""
        ...

    async def close(self) -> None:
        """Release the connection. Safe to call when not connected."""
        ...

    async def execute(self, statement: str) -> None:
        """Run a raw SQL statement. Raises ExecutionError."""
        ...

    async def fetch(self, statement: str) -> list[dict[str, Any]]:
        """Run a raw query and return its rows. Raises ExecutionError."""
        ...

    async def create_ledger_table(self, table: str) -> None:
        ...

    async def list_entries(self, table: str) -> list[str]:
        ...

    async def insert_entry(self, table: str, name: str) -> None:
        """Record a migration. Raises DuplicateEntry if already present."""
        ...

    async def delete_entry(self, table: str, name: str) -> None:
        ...


@asynccontextmanager
async def connected(adapter: Adapter) -> AsyncIterator[Adapter]:
    """Connect for the duration of a block, always closing afterwards."""
    try:
        await adapter.connect()
        yield adapter
    finally:
        await adapter.close()


def create_adapter(config: DatabaseConfig) -> Adapter:
    """Create the adapter matching ``config.type``.

    Raises:
        ConfigurationError: If the database type is not supported
    """
    if config.type == "postgres":
        from checkpoint.adapters.postgres import PostgresAdapter

        return PostgresAdapter(config)
    elif config.type == "mysql":
        from checkpoint.adapters.mysql import MysqlAdapter

        return MysqlAdapter(config)
    elif config.type == "sqlite":
        from checkpoint.adapters.sqlite import SqliteAdapter

        return SqliteAdapter(config)

    raise ConfigurationError(
        f"Unsupported database type: {config.type}. Supported types: postgres, mysql, sqlite"
    )


__all__ = ["Adapter", "connected", "create_adapter"]

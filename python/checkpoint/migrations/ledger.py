"""Ledger of applied migrations."""

from __future__ import annotations

import structlog

from checkpoint.adapters import Adapter
from checkpoint.migrations.config import validate_table_name

logger = structlog.get_logger(__name__)


class Ledger:
    """The table recording which migrations have been applied, in order.

    Example:
        ledger = Ledger(adapter, "schema_migrations")
        await ledger.ensure_table()
        await ledger.record("20250101120000_create_users")
        await ledger.list()  # ["20250101120000_create_users"]
    """

    def __init__(self, adapter: Adapter, table: str) -> None:
        self.adapter = adapter
        self.table = validate_table_name(table)

    async def ensure_table(self) -> None:
        """Create the ledger table if it doesn't exist."""
        await self.adapter.create_ledger_table(self.table)
        logger.debug("Ledger table ready", table=self.table)

    async def list(self) -> list[str]:
        """Applied migration identifiers, oldest first."""
        return list(await self.adapter.list_entries(self.table))

    async def record(self, identifier: str) -> None:
        """Append an entry.

        Raises:
            DuplicateEntry: If the identifier is already recorded
        """
        await self.adapter.insert_entry(self.table, identifier)
        logger.debug("Recorded migration", table=self.table, identifier=identifier)

    async def remove(self, identifier: str) -> None:
        """Delete an entry. Absent identifiers are ignored."""
        await self.adapter.delete_entry(self.table, identifier)
        logger.debug("Removed migration", table=self.table, identifier=identifier)

"""Migration runner - reconciles migration files with the ledger."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from checkpoint.adapters import Adapter, connected, create_adapter
from checkpoint.exceptions import MigrationError, UnitNotFound
from checkpoint.migrations.config import CheckpointConfig
from checkpoint.migrations.ledger import Ledger
from checkpoint.migrations.script import MigrationSource, create_migration_file

logger = structlog.get_logger(__name__)


@dataclass
class MigrationState:
    """Current migration state."""

    executed: list[str] = field(default_factory=list)
    """Applied migrations, in the order they were applied."""

    pending: list[str] = field(default_factory=list)
    """Migrations on disk not yet applied, ascending."""

    missing: list[str] = field(default_factory=list)
    """Applied migrations whose file is no longer on disk."""

    @property
    def current(self) -> str | None:
        """Most recently applied migration."""
        return self.executed[-1] if self.executed else None


def compute_pending(available: list[str], executed: list[str]) -> list[str]:
    """Migrations in ``available`` that are not in ``executed``.

    Keeps ``available``'s order, so pending migrations always run in
    ascending identifier order whatever order the ledger holds.
    """
    done = set(executed)
    return [identifier for identifier in available if identifier not in done]


class MigrationRunner:
    """Apply and roll back migrations against a database.

    This runner:
    - Reads applied migrations from the ledger table
    - Lists migration files from the migrations directory
    - Applies pending migrations one at a time, in identifier order
    - Rolls back the most recently applied migration

    Each command opens its own connection and closes it before returning,
    including on failure. Nothing guards against two processes migrating
    the same database at once; the ledger's unique constraint turns the
    loser of such a race into a DuplicateEntry failure.

    Example:
        runner = MigrationRunner(CheckpointConfig.from_ini("checkpoint.ini"))
        await runner.upgrade()  # Apply all pending
        await runner.downgrade()  # Roll back the last one
    """

    def __init__(
        self,
        config: CheckpointConfig | Mapping[str, Any],
        adapter: Adapter | None = None,
        source: MigrationSource | None = None,
    ) -> None:
        """Initialize the migration runner.

        Args:
            config: Checkpoint configuration, or a mapping to build one from
            adapter: Database adapter (default: chosen from config.database)
            source: Migration files (default: config.migrations_dir)

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        if not isinstance(config, CheckpointConfig):
            config = CheckpointConfig.from_dict(config)
        self.config = config
        self.adapter = adapter if adapter is not None else create_adapter(config.database)
        self.source = source if source is not None else MigrationSource(config.migrations_dir)
        self.ledger = Ledger(self.adapter, config.table_name)
        self._log = logger.bind(table=config.table_name, dialect=config.database.type)

    async def init(self) -> None:
        """Create the ledger table and the migrations directory."""
        async with connected(self.adapter):
            await self.ledger.ensure_table()
        self.config.migrations_dir.mkdir(parents=True, exist_ok=True)
        self._log.info("Initialized", migrations_dir=str(self.config.migrations_dir))

    async def get_state(self) -> MigrationState:
        """Read executed and pending migrations without changing anything.

        Returns:
            MigrationState
        """
        async with connected(self.adapter):
            executed = await self.ledger.list()
        available = self.source.identifiers()

        on_disk = set(available)
        return MigrationState(
            executed=executed,
            pending=compute_pending(available, executed),
            missing=[identifier for identifier in executed if identifier not in on_disk],
        )

    async def get_pending_migrations(self) -> list[str]:
        """Migrations that haven't been applied yet, in the order they will run."""
        return (await self.get_state()).pending

    async def upgrade(self) -> list[str]:
        """Apply all pending migrations, one at a time.

        Stops at the first failure; migrations after the failing one are
        not attempted and the failing one is not recorded.

        Returns:
            Identifiers applied, in order (empty if nothing was pending)

        Raises:
            MigrationError: If loading, running or recording a migration fails
        """
        applied: list[str] = []

        async with connected(self.adapter):
            await self.ledger.ensure_table()
            executed = await self.ledger.list()
            pending = compute_pending(self.source.identifiers(), executed)

            if not pending:
                self._log.info("No pending migrations")
                return applied

            self._log.info("Applying migrations", count=len(pending))
            for identifier in pending:
                await self._apply(identifier, "up", applied)
                applied.append(identifier)

        return applied

    async def downgrade(self) -> str | None:
        """Roll back the most recently applied migration.

        "Most recent" follows the ledger's order, not identifier order.

        Returns:
            Identifier rolled back, or None if nothing was applied

        Raises:
            UnitNotFound: If the migration file is gone (ledger untouched)
            MigrationError: If running the rollback or updating the ledger fails
        """
        async with connected(self.adapter):
            executed = await self.ledger.list()
            if not executed:
                self._log.info("No migrations to rollback")
                return None

            last = executed[-1]
            if not self.source.exists(last):
                self._log.error("Migration file missing", identifier=last)
                raise UnitNotFound(last, self.source.directory)

            await self._apply(last, "down", [])

        return last

    async def _apply(self, identifier: str, direction: str, applied: list[str]) -> None:
        """Load, run and record one migration.

        Raises:
            MigrationError: Wrapping whatever failed, with the phase it failed in
        """
        log = self._log.bind(identifier=identifier, direction=direction)

        phase = "load"
        try:
            unit = self.source.load(identifier)

            phase = "execute"
            log.debug("Running migration")
            if direction == "up":
                await unit.up(self.adapter)
            else:
                await unit.down(self.adapter)

            phase = "record"
            if direction == "up":
                await self.ledger.record(identifier)
            else:
                await self.ledger.remove(identifier)
        except Exception as e:
            error = MigrationError.wrap(identifier, direction, phase, e, applied)
            log.error("Migration failed", phase=phase, error=str(e))
            raise error from e

        log.info("Applied migration" if direction == "up" else "Rolled back migration")

    def create_migration(self, name: str) -> Path:
        """Create a new, empty migration file.

        Args:
            name: Migration name ([A-Za-z0-9_]+)

        Returns:
            Path to the created file

        Raises:
            ValidationError: If the name is invalid
        """
        return create_migration_file(self.config.migrations_dir, name)

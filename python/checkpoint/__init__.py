"""Checkpoint - ordered, recorded database migrations for PostgreSQL and MySQL."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from checkpoint.adapters import Adapter, connected, create_adapter
from checkpoint.exceptions import (
    CheckpointError,
    ConfigurationError,
    ConnectionError,
    DuplicateEntry,
    ExecutionError,
    MigrationDuplicateEntry,
    MigrationError,
    MigrationExecutionError,
    UnitNotFound,
    ValidationError,
)
from checkpoint.migrations import (
    CheckpointConfig,
    DatabaseConfig,
    Ledger,
    MigrationRunner,
    MigrationSource,
    MigrationState,
    MigrationUnit,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "create_runner",
    "MigrationRunner",
    "MigrationState",
    "Ledger",
    "MigrationSource",
    "MigrationUnit",
    # Config
    "CheckpointConfig",
    "DatabaseConfig",
    # Adapters
    "Adapter",
    "connected",
    "create_adapter",
    # Errors
    "CheckpointError",
    "ConfigurationError",
    "ValidationError",
    "ConnectionError",
    "ExecutionError",
    "DuplicateEntry",
    "UnitNotFound",
    "MigrationError",
    "MigrationExecutionError",
    "MigrationDuplicateEntry",
]


def create_runner(config: CheckpointConfig | Mapping[str, Any] | Path | str) -> MigrationRunner:
    """Create a migration runner.

    Args:
        config: A CheckpointConfig, a configuration mapping, or the path
            to a checkpoint.ini file.

    Returns:
        A MigrationRunner instance.

    Example:
        >>> runner = create_runner("checkpoint.ini")
        >>> runner = create_runner({
        ...     "database": {"type": "postgres", "database": "app"},
        ...     "migrationsDir": "migrations",
        ...     "tableName": "schema_migrations",
        ... })
    """
    if isinstance(config, (str, Path)):
        config = CheckpointConfig.from_ini(config)
    return MigrationRunner(config)

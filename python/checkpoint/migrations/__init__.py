"""Checkpoint migrations - ordered, recorded schema changes.

This module provides:
- Configuration parsing (checkpoint.ini, mappings, environment)
- Migration file discovery, loading and generation
- The ledger of applied migrations
- The runner that reconciles the two
"""

from __future__ import annotations

from checkpoint.migrations.config import CheckpointConfig, DatabaseConfig, create_default_config
from checkpoint.migrations.ledger import Ledger
from checkpoint.migrations.runner import MigrationRunner, MigrationState, compute_pending
from checkpoint.migrations.script import (
    MigrationSource,
    MigrationUnit,
    create_migration_file,
    generate_identifier,
    validate_unit_name,
)

__all__ = [
    # Config
    "CheckpointConfig",
    "DatabaseConfig",
    "create_default_config",
    # Files
    "MigrationSource",
    "MigrationUnit",
    "create_migration_file",
    "generate_identifier",
    "validate_unit_name",
    # Ledger
    "Ledger",
    # Runner
    "MigrationRunner",
    "MigrationState",
    "compute_pending",
]

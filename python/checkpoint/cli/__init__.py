"""Checkpoint CLI - Command-line interface for migrations."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from checkpoint.exceptions import CheckpointError, MigrationError
from checkpoint.log import configure_logging
from checkpoint.migrations.config import (
    CONFIG_FILENAME,
    SUPPORTED_DATABASES,
    CheckpointConfig,
    create_default_config,
)
from checkpoint.migrations.runner import MigrationRunner, MigrationState


def main(args: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success)
    """
    parser = _build_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 1

    configure_logging("DEBUG" if parsed.verbose else "WARNING")

    try:
        if parsed.command == "init":
            return asyncio.run(_init(parsed))
        elif parsed.command == "create":
            return _create(parsed)
        elif parsed.command == "up":
            return asyncio.run(_up(parsed))
        elif parsed.command == "down":
            return asyncio.run(_down(parsed))
        elif parsed.command == "status":
            return asyncio.run(_status(parsed))
    except CheckpointError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("Unknown command. Use --help for usage.", file=sys.stderr)
    return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="checkpoint",
        description="Checkpoint - ordered, recorded database migrations",
    )
    parser.add_argument(
        "-c", "--config",
        help=f"Path to {CONFIG_FILENAME} (default: search from the current directory)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser(
        "init", help="Create the config file, migrations directory and ledger table"
    )
    init_parser.add_argument(
        "-d", "--directory",
        default=".",
        help="Project directory (default: current directory)",
    )
    init_parser.add_argument(
        "-t", "--type",
        choices=SUPPORTED_DATABASES,
        default="postgres",
        help="Database type for a new config file (default: postgres)",
    )

    create_parser = subparsers.add_parser("create", help="Create a new migration file")
    create_parser.add_argument("name", help="Migration name (letters, numbers and underscores)")

    subparsers.add_parser("up", help="Apply all pending migrations")
    subparsers.add_parser("down", help="Roll back the last applied migration")
    subparsers.add_parser("status", help="Show executed and pending migrations")

    return parser


async def _init(args: Any) -> int:
    """Scaffold the config if needed, then create the ledger table."""
    if args.config:
        config_path = Path(args.config)
    else:
        config_path = Path(args.directory).resolve() / CONFIG_FILENAME

    if not config_path.exists():
        config_path, migrations_dir = create_default_config(config_path.parent, args.type)
        print(f"Created {config_path}")
        print(f"Created {migrations_dir}/")

    config = CheckpointConfig.from_ini(config_path)
    runner = MigrationRunner(config)
    await runner.init()

    print(f"Checkpoint initialized (ledger table: {config.table_name})")
    return 0


def _create(args: Any) -> int:
    """Create a new migration file."""
    runner = MigrationRunner(_load_config(args))
    path = runner.create_migration(args.name)
    print(f"Created {path.name}")
    return 0


async def _up(args: Any) -> int:
    """Apply pending migrations."""
    runner = MigrationRunner(_load_config(args))
    try:
        applied = await runner.upgrade()
    except MigrationError as e:
        if e.applied:
            print(f"Applied {len(e.applied)} migration(s) before the failure:")
            for identifier in e.applied:
                print(f"  -> {identifier}")
        raise

    if not applied:
        print("No pending migrations.")
    else:
        print(f"Applied {len(applied)} migration(s):")
        for identifier in applied:
            print(f"  -> {identifier}")
    return 0


async def _down(args: Any) -> int:
    """Roll back the last migration."""
    runner = MigrationRunner(_load_config(args))
    rolled_back = await runner.downgrade()

    if rolled_back is None:
        print("No migrations to rollback.")
    else:
        print(f"Rolled back {rolled_back}")
    return 0


async def _status(args: Any) -> int:
    """Show current migration status."""
    runner = MigrationRunner(_load_config(args))
    state = await runner.get_state()
    _print_state(state)
    return 0


def _print_state(state: MigrationState) -> None:
    print("Executed:")
    for identifier in state.executed:
        marker = "!" if identifier in state.missing else "x"
        print(f"  [{marker}] {identifier}")
    if not state.executed:
        print("  (none)")

    print("\nPending:")
    for identifier in state.pending:
        print(f"  [ ] {identifier}")
    if not state.pending:
        print("  (none)")

    if state.missing:
        print(f"\nWarning: {len(state.missing)} applied migration(s) have no file on disk:")
        for identifier in state.missing:
            print(f"  {identifier}")


def _load_config(args: Any) -> CheckpointConfig:
    """Load config from --config or by searching up from the cwd.

    Raises:
        ConfigurationError: If no config file is found
    """
    if args.config:
        return CheckpointConfig.from_ini(args.config)

    config = CheckpointConfig.auto_detect()
    if config is None:
        # from_ini raises the "not found" error with a hint to run init
        return CheckpointConfig.from_ini(Path.cwd() / CONFIG_FILENAME)
    return config


# =============================================================================
# Standalone functions for programmatic use (also used by tests)
# =============================================================================


def migrate_init(directory: Path | str, db_type: str = "postgres") -> tuple[Path, Path]:
    """Scaffold checkpoint.ini and the migrations directory.

    Does not touch the database; use ``MigrationRunner.init`` for the
    ledger table.

    Args:
        directory: Project directory
        db_type: Database type for a new config file

    Returns:
        Tuple of (checkpoint.ini path, migrations dir path)
    """
    return create_default_config(Path(directory), db_type)


def migrate_create(directory: Path | str, name: str) -> Path:
    """Create a new migration file.

    Args:
        directory: Directory containing checkpoint.ini
        name: Migration name

    Returns:
        Path to created migration file
    """
    config = CheckpointConfig.from_ini(Path(directory) / CONFIG_FILENAME)
    return MigrationRunner(config).create_migration(name)


async def migrate_up(directory: Path | str) -> list[str]:
    """Apply pending migrations.

    Args:
        directory: Directory containing checkpoint.ini

    Returns:
        Identifiers applied
    """
    config = CheckpointConfig.from_ini(Path(directory) / CONFIG_FILENAME)
    return await MigrationRunner(config).upgrade()


async def migrate_down(directory: Path | str) -> str | None:
    """Roll back the last migration.

    Args:
        directory: Directory containing checkpoint.ini

    Returns:
        Identifier rolled back, or None
    """
    config = CheckpointConfig.from_ini(Path(directory) / CONFIG_FILENAME)
    return await MigrationRunner(config).downgrade()


async def migrate_status(directory: Path | str) -> dict[str, list[str]]:
    """Get current migration status.

    Args:
        directory: Directory containing checkpoint.ini

    Returns:
        Dict with executed, pending and missing lists
    """
    config = CheckpointConfig.from_ini(Path(directory) / CONFIG_FILENAME)
    state = await MigrationRunner(config).get_state()

    return {
        "executed": state.executed,
        "pending": state.pending,
        "missing": state.missing,
    }


if __name__ == "__main__":
    sys.exit(main())

"""Migration file discovery, loading and generation."""

from __future__ import annotations

import importlib.util
import inspect
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from checkpoint.adapters import Adapter
from checkpoint.exceptions import (
    ConfigurationError,
    ExecutionError,
    UnitNotFound,
    ValidationError,
)

logger = structlog.get_logger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^(?P<timestamp>\d+)_(?P<name>[A-Za-z0-9_]+)$")
NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
FILE_SUFFIX = ".py"

MigrationFn = Callable[[Adapter], Any]


@dataclass(frozen=True)
class MigrationUnit:
    """A loaded migration file.

    Migration file format:
        async def up(adapter):
            await adapter.execute("CREATE TABLE users (id SERIAL PRIMARY KEY)")

        async def down(adapter):
            await adapter.execute("DROP TABLE users")

    Plain (non-async) functions are accepted too.
    """

    identifier: str
    """``{timestamp}_{name}``, also the file stem."""

    path: Path
    up_fn: MigrationFn
    down_fn: MigrationFn

    @property
    def timestamp(self) -> str:
        return self.identifier.split("_", 1)[0]

    @property
    def name(self) -> str:
        return self.identifier.split("_", 1)[1]

    async def up(self, adapter: Adapter) -> None:
        """Run the forward migration."""
        await _call(self.up_fn, adapter)

    async def down(self, adapter: Adapter) -> None:
        """Run the rollback."""
        await _call(self.down_fn, adapter)


async def _call(fn: MigrationFn, adapter: Adapter) -> None:
    result = fn(adapter)
    if inspect.isawaitable(result):
        await result


class MigrationSource:
    """Migration files in one directory, ordered by identifier.

    Files are Python modules named ``<identifier>.py``. Files starting with
    an underscore, or whose stem is not a valid identifier, are ignored.
    Modules are imported from their path at load time, so new migrations
    are picked up without reinstalling anything; they are trusted code.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def identifiers(self) -> list[str]:
        """All migration identifiers on disk, ascending.

        Raises:
            ConfigurationError: If the directory does not exist
        """
        if not self.directory.is_dir():
            raise ConfigurationError(f"Migrations directory not found: {self.directory}")

        identifiers = []
        for path in self.directory.glob(f"*{FILE_SUFFIX}"):
            if path.name.startswith("_"):
                continue
            if not is_identifier(path.stem):
                logger.debug("Skipping non-migration file", file=path.name)
                continue
            identifiers.append(path.stem)

        return sorted(identifiers)

    def path_for(self, identifier: str) -> Path:
        return self.directory / f"{identifier}{FILE_SUFFIX}"

    def exists(self, identifier: str) -> bool:
        return self.path_for(identifier).is_file()

    def load(self, identifier: str) -> MigrationUnit:
        """Import a migration file.

        Raises:
            UnitNotFound: If the file does not exist
            ExecutionError: If the module cannot be imported or lacks
                ``up``/``down`` functions
        """
        path = self.path_for(identifier)
        if not path.is_file():
            raise UnitNotFound(identifier, self.directory)

        module_name = f"checkpoint_migration_{identifier}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ExecutionError(f"Cannot load migration file {path}")

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise ExecutionError(f"Failed to import migration {path.name}: {e}") from e

        up_fn = getattr(module, "up", None)
        down_fn = getattr(module, "down", None)
        missing = [n for n, fn in (("up", up_fn), ("down", down_fn)) if not callable(fn)]
        if missing:
            raise ExecutionError(
                f"Migration {path.name} must define {' and '.join(f'{n}(adapter)' for n in missing)}"
            )

        return MigrationUnit(identifier=identifier, path=path, up_fn=up_fn, down_fn=down_fn)


def is_identifier(value: str) -> bool:
    return IDENTIFIER_PATTERN.match(value) is not None


def validate_unit_name(name: str) -> str:
    """Check a name given to ``checkpoint create``.

    Raises:
        ValidationError: If the name is empty or has characters outside [A-Za-z0-9_]
    """
    if not name or not isinstance(name, str) or not name.strip():
        raise ValidationError("Migration name is required")
    if not NAME_PATTERN.match(name):
        raise ValidationError("Migration name can only contain letters, numbers, and underscores")
    return name


def generate_identifier(name: str, now: datetime | None = None) -> str:
    """Build a ``YYYYMMDDHHMMSS_name`` identifier (UTC).

    Args:
        name: Migration name
        now: Creation time (default: current time)

    Returns:
        Identifier string
    """
    validate_unit_name(name)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{now.strftime('%Y%m%d%H%M%S')}_{name}"


def render_template(name: str, created: datetime | None = None) -> str:
    """Render the source of a new, empty migration file."""
    created = created or datetime.now(timezone.utc)

    return f'''"""Migration: {name}

Created: {created.isoformat()}
"""


async def up(adapter):
    # Write your migration here
    # Example: await adapter.execute("CREATE TABLE users (id SERIAL PRIMARY KEY, name VARCHAR(255))")
    pass


async def down(adapter):
    # Write your rollback here
    # Example: await adapter.execute("DROP TABLE users")
    pass
'''


def create_migration_file(
    directory: Path | str,
    name: str,
    now: datetime | None = None,
) -> Path:
    """Write a new migration file.

    Args:
        directory: Migrations directory (created if missing)
        name: Migration name
        now: Creation time (default: current time)

    Returns:
        Path to the created file

    Raises:
        ValidationError: If the name is invalid or the file already exists
    """
    now = now or datetime.now(timezone.utc)
    identifier = generate_identifier(name, now)

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / f"{identifier}{FILE_SUFFIX}"
    if path.exists():
        raise ValidationError(f"Migration file already exists: {path.name}")
    path.write_text(render_template(name, now))

    logger.info("Created migration", identifier=identifier, path=str(path))
    return path

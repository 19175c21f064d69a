"""Checkpoint configuration parsing."""

from __future__ import annotations

import configparser
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from checkpoint.exceptions import ConfigurationError

CONFIG_FILENAME = "checkpoint.ini"

SUPPORTED_DATABASES = ("postgres", "mysql", "sqlite")

DEFAULT_PORTS = {
    "postgres": 5432,
    "mysql": 3306,
}

DEFAULT_TABLE_NAME = "schema_migrations"
DEFAULT_MIGRATIONS_DIR = "migrations"

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Environment variable -> [database] key
ENV_DATABASE_KEYS = {
    "DB_TYPE": "type",
    "DB_HOST": "host",
    "DB_PORT": "port",
    "DB_USER": "user",
    "DB_PASSWORD": "password",
    "DB_NAME": "database",
}


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection parameters for the target database."""

    type: str
    """Backing store kind: "postgres", "mysql" or "sqlite"."""

    host: str = "localhost"
    port: int | None = None
    """Defaults to the standard port for the database type."""

    user: str | None = None
    password: str | None = field(default=None, repr=False)
    database: str | None = None
    """Database name (file path for sqlite)."""

    def __post_init__(self) -> None:
        if self.type not in SUPPORTED_DATABASES:
            raise ConfigurationError(
                f"Unsupported database type: {self.type}. "
                f"Supported types: {', '.join(SUPPORTED_DATABASES)}"
            )
        if self.port is None and self.type in DEFAULT_PORTS:
            object.__setattr__(self, "port", DEFAULT_PORTS[self.type])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DatabaseConfig:
        """Build from a ``database`` mapping.

        Raises:
            ConfigurationError: If the mapping is malformed
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("Database configuration must be a mapping")
        db_type = data.get("type")
        if not db_type:
            raise ConfigurationError("Database type is required")

        return cls(
            type=str(db_type),
            host=str(data.get("host") or "localhost"),
            port=_parse_port(data.get("port")),
            user=data.get("user"),
            password=data.get("password"),
            database=data.get("database"),
        )


@dataclass(frozen=True)
class CheckpointConfig:
    """Immutable configuration for one migration runner.

    Example checkpoint.ini:
        [checkpoint]
        migrations_dir = migrations
        table_name = schema_migrations

        [database]
        type = postgres
        host = localhost
        port = 5432
        user = app
        password = secret
        database = app
    """

    database: DatabaseConfig
    """Connection parameters."""

    migrations_dir: Path
    """Directory containing migration files."""

    table_name: str = DEFAULT_TABLE_NAME
    """Ledger table name. Interpolated into SQL, so it is validated."""

    config_path: Path | None = field(default=None, compare=False)
    """Path to the config file, when loaded from one."""

    def __post_init__(self) -> None:
        if self.database is None:
            raise ConfigurationError("Database configuration is required")
        if not isinstance(self.database, DatabaseConfig):
            object.__setattr__(self, "database", DatabaseConfig.from_dict(self.database))
        if not self.migrations_dir:
            raise ConfigurationError("Migrations directory is required")
        object.__setattr__(self, "migrations_dir", Path(self.migrations_dir))
        if not self.table_name:
            raise ConfigurationError("Table name is required")
        validate_table_name(self.table_name)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CheckpointConfig:
        """Build from a plain mapping.

        Accepts ``migrationsDir``/``tableName`` as well as their
        snake_case spellings.

        Raises:
            ConfigurationError: If required options are missing or invalid
        """
        if not data:
            raise ConfigurationError("Configuration is required")
        if not data.get("database"):
            raise ConfigurationError("Database configuration is required")

        migrations_dir = data.get("migrationsDir", data.get("migrations_dir"))
        table_name = data.get("tableName", data.get("table_name"))
        if not migrations_dir:
            raise ConfigurationError("Migrations directory is required")
        if not table_name:
            raise ConfigurationError("Table name is required")

        return cls(
            database=DatabaseConfig.from_dict(data["database"]),
            migrations_dir=Path(migrations_dir),
            table_name=table_name,
        )

    @classmethod
    def from_ini(
        cls,
        path: Path | str,
        environ: Mapping[str, str] | None = None,
    ) -> CheckpointConfig:
        """Load configuration from a checkpoint.ini file.

        ``DB_*`` and ``MIGRATIONS_DIR`` environment variables override the
        values from the file.

        Args:
            path: Path to checkpoint.ini
            environ: Environment to read overrides from (default: os.environ)

        Returns:
            Parsed CheckpointConfig

        Raises:
            ConfigurationError: If the file is missing or invalid
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(
                f"Config file not found: {path}. Run 'checkpoint init' first."
            )
        env = os.environ if environ is None else environ

        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read(path)
        except configparser.Error as e:
            raise ConfigurationError(f"Invalid config file {path}: {e}") from e

        section = parser["checkpoint"] if parser.has_section("checkpoint") else {}
        database = dict(parser["database"]) if parser.has_section("database") else {}

        for var, key in ENV_DATABASE_KEYS.items():
            if env.get(var):
                database[key] = env[var]
        if not database:
            raise ConfigurationError(f"No [database] section in {path}")

        migrations_dir = Path(
            env.get("MIGRATIONS_DIR") or section.get("migrations_dir", DEFAULT_MIGRATIONS_DIR)
        )
        if not migrations_dir.is_absolute():
            migrations_dir = path.parent / migrations_dir

        # Relative sqlite files live next to the config file
        if database.get("type") == "sqlite" and database.get("database"):
            db_path = Path(database["database"])
            if not db_path.is_absolute():
                database["database"] = str(path.parent / db_path)

        return cls(
            database=DatabaseConfig.from_dict(database),
            migrations_dir=migrations_dir,
            table_name=section.get("table_name", DEFAULT_TABLE_NAME),
            config_path=path,
        )

    @classmethod
    def auto_detect(cls, start_path: Path | str | None = None) -> CheckpointConfig | None:
        """Find checkpoint.ini by searching up from start_path.

        Args:
            start_path: Directory to start searching from (default: cwd)

        Returns:
            CheckpointConfig if found, None otherwise
        """
        start_path = Path.cwd() if start_path is None else Path(start_path)

        current = start_path.resolve()
        while True:
            ini_path = current / CONFIG_FILENAME
            if ini_path.exists():
                return cls.from_ini(ini_path)
            if current == current.parent:
                return None
            current = current.parent


def validate_table_name(name: str) -> str:
    """Check that a ledger table name is a plain SQL identifier.

    Raises:
        ConfigurationError: If the name is not a valid identifier
    """
    if not isinstance(name, str) or not TABLE_NAME_PATTERN.match(name):
        raise ConfigurationError(
            f"Invalid table name {name!r}. Must start with a letter or underscore"
            " and contain only alphanumeric characters and underscores"
        )
    return name


def _parse_port(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid database port: {value!r}") from None


def create_default_config(
    directory: Path,
    db_type: str = "postgres",
) -> tuple[Path, Path]:
    """Create a default checkpoint.ini and migrations directory.

    An existing checkpoint.ini is left untouched.

    Args:
        directory: Project root
        db_type: Database type written into the new config

    Returns:
        Tuple of (checkpoint.ini path, migrations dir path)
    """
    if db_type not in SUPPORTED_DATABASES:
        raise ConfigurationError(
            f"Unsupported database type: {db_type}. "
            f"Supported types: {', '.join(SUPPORTED_DATABASES)}"
        )

    ini_path = directory / CONFIG_FILENAME
    migrations_dir = directory / DEFAULT_MIGRATIONS_DIR

    migrations_dir.mkdir(parents=True, exist_ok=True)
    if ini_path.exists():
        return ini_path, migrations_dir

    if db_type == "sqlite":
        database_lines = "database = checkpoint.db"
    else:
        database_lines = f"""host = localhost
port = {DEFAULT_PORTS[db_type]}
user = root
password =
database = mydb"""

    ini_content = f"""# Checkpoint migration configuration
#
# DB_TYPE, DB_HOST, DB_PORT, DB_USER, DB_PASSWORD, DB_NAME and
# MIGRATIONS_DIR environment variables override the values below.

[checkpoint]
migrations_dir = {DEFAULT_MIGRATIONS_DIR}
table_name = {DEFAULT_TABLE_NAME}

[database]
type = {db_type}
{database_lines}
"""
    ini_path.write_text(ini_content)

    return ini_path, migrations_dir

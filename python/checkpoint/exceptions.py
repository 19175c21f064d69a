"""Exceptions raised by Checkpoint."""

from __future__ import annotations


class CheckpointError(Exception):
    """Base class for every error Checkpoint surfaces."""


class ConfigurationError(CheckpointError):
    """Raised when configuration is missing or malformed."""


class ValidationError(CheckpointError):
    """Raised when a migration name is invalid."""


class ConnectionError(CheckpointError):
    """Raised when the database is unreachable or rejects the credentials."""


class ExecutionError(CheckpointError):
    """Raised when a statement fails against the database."""


class DuplicateEntry(ExecutionError):
    """Raised when a migration is already recorded in the ledger."""

    def __init__(self, identifier: str, table: str) -> None:
        super().__init__(f"Migration {identifier} is already recorded in {table}")
        self.identifier = identifier
        self.table = table


class UnitNotFound(CheckpointError):
    """Raised when a migration file cannot be found on disk."""

    def __init__(self, identifier: str, directory: object) -> None:
        super().__init__(f"Migration file for {identifier} not found in {directory}")
        self.identifier = identifier


class MigrationError(CheckpointError):
    """A single migration failed while the runner was applying it.

    The original exception is chained as ``__cause__``. Use ``wrap()`` to
    build one: when the cause is an ExecutionError or DuplicateEntry the
    result is an instance of that class too, so either can be caught.

    Attributes:
        identifier: Migration that failed
        direction: "up" or "down"
        phase: "load", "execute" or "record"
        applied: Migrations applied earlier in the same invocation
    """

    def __init__(
        self,
        identifier: str,
        direction: str,
        phase: str,
        cause: BaseException,
        applied: list[str] | None = None,
    ) -> None:
        self.identifier = identifier
        self.direction = direction
        self.phase = phase
        self.cause = cause
        self.applied = list(applied or [])
        Exception.__init__(self, self._describe())

    @classmethod
    def wrap(
        cls,
        identifier: str,
        direction: str,
        phase: str,
        cause: BaseException,
        applied: list[str] | None = None,
    ) -> MigrationError:
        """Build the MigrationError subclass matching ``cause``."""
        if isinstance(cause, DuplicateEntry):
            duplicate = MigrationDuplicateEntry(identifier, direction, phase, cause, applied)
            duplicate.table = cause.table
            return duplicate
        if isinstance(cause, ExecutionError):
            return MigrationExecutionError(identifier, direction, phase, cause, applied)
        return cls(identifier, direction, phase, cause, applied)

    @property
    def unrecorded(self) -> bool:
        """True when the forward migration ran but the ledger was not updated."""
        return self.direction == "up" and self.phase == "record"

    def _describe(self) -> str:
        verb = "apply" if self.direction == "up" else "roll back"
        message = f"Failed to {verb} {self.identifier} ({self.phase}): {self.cause}"
        if self.unrecorded:
            message += (
                f". The migration's changes were applied but {self.identifier} was not"
                " recorded; inspect the database before running it again"
            )
        elif self.phase == "record":
            message += (
                f". The rollback ran but {self.identifier} is still recorded;"
                " inspect the database before running it again"
            )
        return message


class MigrationExecutionError(MigrationError, ExecutionError):
    """A migration failed because a statement failed."""


class MigrationDuplicateEntry(MigrationError, DuplicateEntry):
    """A migration ran but was already recorded, usually by a concurrent run."""

"""Exception hierarchy for schema synchronization.

Resolution and capability errors are raised while the model is built or
validated, before any DDL runs. Execution errors are raised while a plan is
applied.
"""

from typing import Any


class SchemaSyncError(Exception):
    """Base class for every error raised by db_schema_sync."""


# ============================================================================
# Resolution errors
# ============================================================================


class ResolutionError(SchemaSyncError):
    """The declared model cannot be resolved into tables."""


class MissingPrimaryColumnError(ResolutionError):
    """Raised when a regular table ends up with no primary column."""

    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        super().__init__(
            f"Entity '{entity_name}' does not have a primary column. "
            f"Primary column is required to have in all your entities."
        )


class ReferencedColumnNotFoundError(ResolutionError):
    """Raised when a join column names a referenced column that does not exist."""

    def __init__(self, column_name: str, entity_name: str):
        self.column_name = column_name
        self.entity_name = entity_name
        super().__init__(
            f"Referenced column {column_name} was not found in entity {entity_name}"
        )


class UnknownEntityError(ResolutionError):
    """Raised when a relation target or inheritance parent is not declared."""

    def __init__(self, entity_name: str, referenced_by: str):
        self.entity_name = entity_name
        self.referenced_by = referenced_by
        super().__init__(
            f"Entity '{entity_name}' referenced by '{referenced_by}' is not declared"
        )


# ============================================================================
# Capability errors
# ============================================================================


class CapabilityError(SchemaSyncError):
    """A declared feature is not supported by the target dialect."""

    def __init__(self, dialect: str, feature: str, table: str | None = None):
        self.dialect = dialect
        self.feature = feature
        self.table = table
        where = f" (table '{table}')" if table else ""
        super().__init__(f"{feature} is not supported by {dialect}{where}")


class UnsupportedDialectError(CapabilityError):
    """Raised when no dialect is registered under the requested name."""

    def __init__(self, name: str, available: list[str]):
        super().__init__(dialect=name, feature="dialect")
        self.available = available
        self.args = (f"Unknown dialect '{name}'. Available: {', '.join(available)}",)


# ============================================================================
# Execution errors
# ============================================================================


class ExecutionError(SchemaSyncError):
    """A statement failed while a plan was being applied."""


class PartialSyncError(ExecutionError):
    """Raised when a non-transactional run fails part way through.

    The database is left with every operation in ``completed`` applied.
    The original failure is chained as ``__cause__``.
    """

    def __init__(self, phase: Any, completed: list[Any], cause: BaseException):
        self.phase = phase
        self.completed = completed
        self.cause = cause
        super().__init__(
            f"Schema sync failed during {phase} after {len(completed)} "
            f"completed operation(s); the database is partially migrated: {cause}"
        )


class TransactionAlreadyStartedError(SchemaSyncError):
    """Raised when a transaction is started twice on one runner."""

    def __init__(self) -> None:
        super().__init__("Transaction already started for the given connection, commit current transaction before starting a new one.")


class TransactionNotStartedError(SchemaSyncError):
    """Raised on commit or rollback without an open transaction."""

    def __init__(self) -> None:
        super().__init__("Transaction is not started yet, start transaction before committing or rolling it back.")


class RunnerReleasedError(SchemaSyncError):
    """Raised when a released query runner is used again."""

    def __init__(self) -> None:
        super().__init__("Query runner already released. Cannot run queries anymore.")

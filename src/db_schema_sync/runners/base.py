"""Query runner protocol definition.

Defines the ``QueryRunner`` Protocol that schema operations are applied
through. All methods are ``async def``; a runner owns a single connection
for the duration of one synchronization run.

Usage:
    from db_schema_sync.runners.base import QueryRunner

    async def add_email(runner: QueryRunner, table: TableSpec) -> None:
        await runner.add_columns(table, [ColumnSpec(name="email", type="text")])
        await runner.release()
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

from db_schema_sync.schema.models import (
    CheckSpec,
    ColumnSpec,
    ExclusionSpec,
    ForeignKeySpec,
    IndexSpec,
    TableSpec,
    UniqueSpec,
    ViewSpec,
)

if TYPE_CHECKING:
    from db_schema_sync.metadata.naming import NamingStrategy
    from db_schema_sync.schema.operations import ColumnChange


class QueryRunner(Protocol):
    """Interface every query runner implements.

    Table arguments carry the state the table is in when the call is made;
    runners must not cache table state between calls.
    """

    naming: "NamingStrategy"
    executed_sql: list[str]

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def list_tables(self, table_paths: Sequence[str]) -> list[TableSpec]:
        """Load the live definition of each existing table in ``table_paths``.

        Tables that do not exist are omitted from the result.
        """
        ...

    async def list_views(self) -> list[ViewSpec]:
        """Load the views recorded in the metadata table.

        Returns:
            An empty list when the metadata table does not exist.
        """
        ...

    async def has_table(self, table_path: str) -> bool:
        ...

    def metadata_table_spec(self) -> TableSpec:
        """Definition of the side table recording view definitions."""
        ...

    # ------------------------------------------------------------------
    # Tables and columns
    # ------------------------------------------------------------------

    async def create_table(
        self,
        table: TableSpec,
        if_not_exists: bool = False,
        with_foreign_keys: bool = True,
        with_indices: bool = True,
    ) -> None:
        """Create ``table`` with its columns, primary key and constraints.

        Args:
            table: Canonical table definition.
            if_not_exists: Do nothing when the table already exists.
            with_foreign_keys: Also create the table's foreign keys.
            with_indices: Also create the table's indices.
        """
        ...

    async def drop_table(self, table: TableSpec) -> None:
        ...

    async def add_columns(self, table: TableSpec, columns: Sequence[ColumnSpec]) -> None:
        ...

    async def drop_columns(self, table: TableSpec, columns: Sequence[ColumnSpec]) -> None:
        ...

    async def change_columns(self, table: TableSpec, changes: Sequence["ColumnChange"]) -> None:
        """Alter columns in place; each change holds the live and the new column."""
        ...

    async def rename_column(self, table: TableSpec, old_name: str, new_name: str) -> None:
        ...

    async def update_primary_keys(
        self,
        table: TableSpec,
        columns: Sequence[ColumnSpec],
        constraint_name: str | None = None,
    ) -> None:
        """Replace the primary key of ``table`` with one over ``columns``."""
        ...

    # ------------------------------------------------------------------
    # Indices and constraints
    # ------------------------------------------------------------------

    async def create_indices(self, table: TableSpec, indices: Sequence[IndexSpec]) -> None:
        ...

    async def drop_indices(self, table: TableSpec, indices: Sequence[IndexSpec]) -> None:
        ...

    async def create_foreign_keys(self, table: TableSpec, foreign_keys: Sequence[ForeignKeySpec]) -> None:
        ...

    async def drop_foreign_keys(self, table: TableSpec, foreign_keys: Sequence[ForeignKeySpec]) -> None:
        ...

    async def create_check_constraints(self, table: TableSpec, checks: Sequence[CheckSpec]) -> None:
        ...

    async def drop_check_constraints(self, table: TableSpec, checks: Sequence[CheckSpec]) -> None:
        ...

    async def create_unique_constraints(self, table: TableSpec, uniques: Sequence[UniqueSpec]) -> None:
        ...

    async def drop_unique_constraints(self, table: TableSpec, uniques: Sequence[UniqueSpec]) -> None:
        ...

    async def create_exclusion_constraints(self, table: TableSpec, exclusions: Sequence[ExclusionSpec]) -> None:
        ...

    async def drop_exclusion_constraints(self, table: TableSpec, exclusions: Sequence[ExclusionSpec]) -> None:
        ...

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def create_view(self, view: ViewSpec) -> None:
        """Create ``view`` and record its definition in the metadata table."""
        ...

    async def drop_view(self, view: ViewSpec) -> None:
        """Drop ``view`` and delete its definition from the metadata table."""
        ...

    async def insert_view_definition(self, view: ViewSpec) -> None:
        ...

    async def delete_view_definition(self, view: ViewSpec) -> None:
        ...

    # ------------------------------------------------------------------
    # Transactions, SQL memory and lifecycle
    # ------------------------------------------------------------------

    async def start_transaction(self) -> None:
        ...

    async def commit_transaction(self) -> None:
        """Commit the open transaction.

        Raises:
            TransactionNotStartedError: If no transaction is open.
        """
        ...

    async def rollback_transaction(self) -> None:
        """Roll back the open transaction.

        Raises:
            TransactionNotStartedError: If no transaction is open.
        """
        ...

    def enable_sql_memory(self) -> None:
        """Record statements instead of executing them."""
        ...

    def disable_sql_memory(self) -> None:
        ...

    def get_memory_sql(self) -> list[str]:
        """Statements recorded since SQL memory was enabled, in order."""
        ...

    async def release(self) -> None:
        """Return the connection; the runner cannot be used afterwards."""
        ...

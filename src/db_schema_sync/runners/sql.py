"""SQL-rendering query runner.

``SqlQueryRunner`` implements every DDL method of the ``QueryRunner``
Protocol by rendering ANSI SQL through the dialect and sending each
statement to ``query()``. Backend runners subclass it and provide
``_execute``, the transaction hooks and catalog loading.

While SQL memory is enabled, ``query()`` records statements instead of
executing them; this is how dry runs produce their statement list.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from db_schema_sync.dialects.base import Dialect
from db_schema_sync.errors import (
    RunnerReleasedError,
    TransactionAlreadyStartedError,
    TransactionNotStartedError,
)
from db_schema_sync.metadata.naming import DefaultNamingStrategy, NamingStrategy
from db_schema_sync.schema import table_utils
from db_schema_sync.schema.models import (
    CheckSpec,
    ColumnSpec,
    ExclusionSpec,
    ForeignKeySpec,
    GenerationStrategy,
    IndexSpec,
    TableSpec,
    UniqueSpec,
    ViewSpec,
)

if TYPE_CHECKING:
    from db_schema_sync.schema.operations import ColumnChange

logger = logging.getLogger(__name__)

DEFAULT_METADATA_TABLE = "schema_sync_metadata"


def sql_literal(value: str | None) -> str:
    """Render ``value`` as a single-quoted SQL literal, or ``NULL``."""
    if value is None:
        return "NULL"
    return "'" + str(value).replace("'", "''") + "'"


class SqlQueryRunner:
    """Base runner rendering DDL for a dialect.

    Args:
        dialect: Dialect used for quoting, type rendering and capabilities.
        naming_strategy: Names constraints the runner has to create on its
            own (primary keys and single-column uniques). Share the
            builder's instance so names agree.
        metadata_table: Name of the side table recording view definitions.
    """

    def __init__(
        self,
        dialect: Dialect,
        naming_strategy: NamingStrategy | None = None,
        metadata_table: str = DEFAULT_METADATA_TABLE,
    ):
        self.dialect = dialect
        self.naming = naming_strategy or DefaultNamingStrategy()
        self.metadata_table = metadata_table
        self.is_released = False
        self.is_transaction_active = False
        self.executed_sql: list[str] = []
        self._sql_in_memory = False
        self._memory: list[str] = []
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------

    async def query(self, sql: str) -> None:
        """Execute one statement, or record it while SQL memory is enabled.

        Raises:
            RunnerReleasedError: If the runner was released.
        """
        if self.is_released:
            raise RunnerReleasedError()
        if self._sql_in_memory:
            self._memory.append(sql)
            return
        async with self._lock:
            logger.debug(f"query: {sql}")
            await self._execute(sql)
            self.executed_sql.append(sql)

    async def _execute(self, sql: str) -> None:
        raise NotImplementedError

    def enable_sql_memory(self) -> None:
        self._sql_in_memory = True
        self._memory = []

    def disable_sql_memory(self) -> None:
        self._sql_in_memory = False
        self._memory = []

    def get_memory_sql(self) -> list[str]:
        return list(self._memory)

    # ------------------------------------------------------------------
    # Transactions and lifecycle
    # ------------------------------------------------------------------

    async def start_transaction(self) -> None:
        if self.is_transaction_active:
            raise TransactionAlreadyStartedError()
        await self._begin_transaction()
        self.is_transaction_active = True

    async def commit_transaction(self) -> None:
        if not self.is_transaction_active:
            raise TransactionNotStartedError()
        await self._commit_transaction()
        self.is_transaction_active = False

    async def rollback_transaction(self) -> None:
        if not self.is_transaction_active:
            raise TransactionNotStartedError()
        try:
            await self._rollback_transaction()
        finally:
            self.is_transaction_active = False

    async def _begin_transaction(self) -> None:
        await self.query("START TRANSACTION")

    async def _commit_transaction(self) -> None:
        await self.query("COMMIT")

    async def _rollback_transaction(self) -> None:
        await self.query("ROLLBACK")

    async def release(self) -> None:
        self.is_released = True

    # ------------------------------------------------------------------
    # Catalog (backend specific)
    # ------------------------------------------------------------------

    async def list_tables(self, table_paths: Sequence[str]) -> list[TableSpec]:
        raise NotImplementedError

    async def list_views(self) -> list[ViewSpec]:
        raise NotImplementedError

    async def has_table(self, table_path: str) -> bool:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------

    def escape(self, name: str) -> str:
        return self.dialect.escape(name)

    def escape_path(self, path: str) -> str:
        return self.dialect.escape_path(path)

    def column_list(self, names: Sequence[str]) -> str:
        return ", ".join(self.escape(n) for n in names)

    def column_type(self, table: TableSpec, column: ColumnSpec) -> str:
        return self.dialect.full_column_type(column)

    def column_definition(self, table: TableSpec, column: ColumnSpec) -> str:
        """Column clause used by CREATE TABLE and ADD COLUMN."""
        sql = f"{self.escape(column.name)} {self.column_type(table, column)}"
        if not column.is_nullable:
            sql += " NOT NULL"
        if column.default is not None:
            sql += f" DEFAULT {column.default}"
        elif column.generation_strategy == GenerationStrategy.UUID and self.dialect.uuid_generator:
            sql += f" DEFAULT {self.dialect.uuid_generator}"
        elif column.generation_strategy == GenerationStrategy.INCREMENT:
            sql += " GENERATED BY DEFAULT AS IDENTITY"
        return sql

    @property
    def metadata_table_path(self) -> str:
        return self.dialect.build_table_name(self.metadata_table, self.dialect.schema, self.dialect.database)

    def metadata_table_spec(self) -> TableSpec:
        """Canonical definition of the view bookkeeping side table."""
        mapped = self.dialect.mapped_data_types
        columns = [
            ColumnSpec(name="type", type=mapped.metadata_type, is_nullable=False),
            ColumnSpec(name="database", type=mapped.metadata_database, is_nullable=True),
            ColumnSpec(name="schema", type=mapped.metadata_schema, is_nullable=True),
            ColumnSpec(name="table", type=mapped.metadata_table, is_nullable=True),
            ColumnSpec(name="name", type=mapped.metadata_name, is_nullable=True),
            ColumnSpec(name="value", type=mapped.metadata_value, is_nullable=True),
        ]
        return table_utils.to_table(
            TableSpec(
                name=self.metadata_table_path,
                schema_name=self.dialect.schema,
                database=self.dialect.database,
                columns=tuple(columns),
            ),
            self.dialect,
        )

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def create_table_sql(self, table: TableSpec, with_foreign_keys: bool = True) -> str:
        parts = [self.column_definition(table, c) for c in table.columns]
        for unique in table.uniques:
            parts.append(f"CONSTRAINT {self.escape(unique.name)} UNIQUE ({self.column_list(unique.column_names)})")
        if self.dialect.supports_checks:
            for check in table.checks:
                parts.append(f"CONSTRAINT {self.escape(check.name)} CHECK ({check.expression})")
        if self.dialect.supports_exclusions:
            for exclusion in table.exclusions:
                parts.append(f"CONSTRAINT {self.escape(exclusion.name)} EXCLUDE {exclusion.expression}")
        if with_foreign_keys:
            for fk in table.foreign_keys:
                parts.append(self.foreign_key_clause(fk))
        primary = [c.name for c in table.primary_columns]
        if primary:
            name = table.primary_key_name or self.naming.primary_key_name(table.name, primary)
            parts.append(f"CONSTRAINT {self.escape(name)} PRIMARY KEY ({self.column_list(primary)})")

        sql = f"CREATE TABLE {self.escape_path(table.name)} ({', '.join(parts)})"
        if table.engine:
            sql += f" ENGINE={table.engine}"
        if table.without_rowid:
            sql += " WITHOUT ROWID"
        return sql

    async def create_table(
        self,
        table: TableSpec,
        if_not_exists: bool = False,
        with_foreign_keys: bool = True,
        with_indices: bool = True,
    ) -> None:
        if if_not_exists and await self.has_table(table.name):
            return
        await self.query(self.create_table_sql(table, with_foreign_keys))
        if with_indices:
            for index in table.indices:
                await self.query(self.create_index_sql(table, index))

    async def drop_table(self, table: TableSpec) -> None:
        await self.query(f"DROP TABLE {self.escape_path(table.name)}")

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    async def _replace_primary_key(
        self,
        table: TableSpec,
        names: Sequence[str],
        constraint_name: str | None = None,
    ) -> None:
        path = self.escape_path(table.name)
        current = [c.name for c in table.primary_columns]
        if current:
            old_name = table.primary_key_name or self.naming.primary_key_name(table.name, current)
            await self.query(f"ALTER TABLE {path} DROP CONSTRAINT {self.escape(old_name)}")
        if names:
            new_name = constraint_name or self.naming.primary_key_name(table.name, names)
            await self.query(
                f"ALTER TABLE {path} ADD CONSTRAINT {self.escape(new_name)} PRIMARY KEY ({self.column_list(names)})"
            )

    async def add_columns(self, table: TableSpec, columns: Sequence[ColumnSpec]) -> None:
        path = self.escape_path(table.name)
        for column in columns:
            await self.query(f"ALTER TABLE {path} ADD {self.column_definition(table, column)}")
            primary = [c.name for c in table.primary_columns] + [column.name]
            if column.is_primary:
                await self._replace_primary_key(table, primary)
            if column.is_unique:
                name = self.naming.unique_constraint_name(table.name, [column.name])
                await self.query(
                    f"ALTER TABLE {path} ADD CONSTRAINT {self.escape(name)} UNIQUE ({self.escape(column.name)})"
                )
            table = table_utils.add_columns(table, [column])
            if column.is_primary:
                table = table_utils.set_primary_columns(
                    table, primary, self.naming.primary_key_name(table.name, primary)
                )

    async def drop_columns(self, table: TableSpec, columns: Sequence[ColumnSpec]) -> None:
        path = self.escape_path(table.name)
        for column in columns:
            if column.is_primary:
                remaining = [c.name for c in table.primary_columns if c.name != column.name]
                await self._replace_primary_key(table, remaining)
                table = table_utils.set_primary_columns(
                    table,
                    remaining,
                    self.naming.primary_key_name(table.name, remaining) if remaining else None,
                )
            await self.query(f"ALTER TABLE {path} DROP COLUMN {self.escape(column.name)}")
            table = table_utils.drop_columns(table, [column.name])

    async def rename_column(self, table: TableSpec, old_name: str, new_name: str) -> None:
        await self.query(
            f"ALTER TABLE {self.escape_path(table.name)} RENAME COLUMN {self.escape(old_name)} TO {self.escape(new_name)}"
        )

    async def change_columns(self, table: TableSpec, changes: Sequence["ColumnChange"]) -> None:
        for change in changes:
            await self.change_column(table, change.old, change.new)
            table = table_utils.change_column(
                table,
                change.old.name,
                change.new,
                self.naming.unique_constraint_name(table.name, [change.new.name]),
            )
            if change.old.is_primary != change.new.is_primary:
                names = [c.name for c in table.primary_columns]
                table = table_utils.set_primary_columns(
                    table,
                    names,
                    self.naming.primary_key_name(table.name, names) if names else None,
                )

    async def change_column(self, table: TableSpec, old: ColumnSpec, new: ColumnSpec) -> None:
        """Alter one column in place, attribute by attribute."""
        await self._change_type(table, old, new)
        await self._change_generation(table, old, new)
        await self._change_nullable(table, old, new)
        await self._change_default(table, old, new)
        await self._change_comment(table, old, new)
        await self._change_primary(table, old, new)
        await self._change_unique(table, old, new)

    def _alter_column(self, table: TableSpec, column: ColumnSpec) -> str:
        return f"ALTER TABLE {self.escape_path(table.name)} ALTER COLUMN {self.escape(column.name)}"

    async def _change_type(self, table: TableSpec, old: ColumnSpec, new: ColumnSpec) -> None:
        if self.column_type(table, old) != self.column_type(table, new):
            await self.query(f"{self._alter_column(table, new)} TYPE {self.column_type(table, new)}")

    async def _change_generation(self, table: TableSpec, old: ColumnSpec, new: ColumnSpec) -> None:
        if old.generation_strategy == new.generation_strategy:
            return
        if new.generation_strategy == GenerationStrategy.INCREMENT:
            await self.query(f"{self._alter_column(table, new)} ADD GENERATED BY DEFAULT AS IDENTITY")
        elif old.generation_strategy == GenerationStrategy.INCREMENT:
            await self.query(f"{self._alter_column(table, new)} DROP IDENTITY")

    async def _change_nullable(self, table: TableSpec, old: ColumnSpec, new: ColumnSpec) -> None:
        if old.is_nullable != new.is_nullable:
            action = "DROP NOT NULL" if new.is_nullable else "SET NOT NULL"
            await self.query(f"{self._alter_column(table, new)} {action}")

    async def _change_default(self, table: TableSpec, old: ColumnSpec, new: ColumnSpec) -> None:
        if new.is_generated:
            return
        lower = self.dialect.lower_default_value_if_necessary
        if lower(old.default) == lower(new.default):
            return
        if new.default is None:
            await self.query(f"{self._alter_column(table, new)} DROP DEFAULT")
        else:
            await self.query(f"{self._alter_column(table, new)} SET DEFAULT {new.default}")

    async def _change_comment(self, table: TableSpec, old: ColumnSpec, new: ColumnSpec) -> None:
        pass

    async def _change_primary(self, table: TableSpec, old: ColumnSpec, new: ColumnSpec) -> None:
        if old.is_primary == new.is_primary:
            return
        names = [c.name for c in table.primary_columns if c.name != old.name]
        if new.is_primary:
            names.append(new.name)
        await self._replace_primary_key(table, names)

    async def _change_unique(self, table: TableSpec, old: ColumnSpec, new: ColumnSpec) -> None:
        if old.is_unique == new.is_unique:
            return
        path = self.escape_path(table.name)
        if new.is_unique:
            name = self.naming.unique_constraint_name(table.name, [new.name])
            await self.query(f"ALTER TABLE {path} ADD CONSTRAINT {self.escape(name)} UNIQUE ({self.escape(new.name)})")
        else:
            name = next(
                (u.name for u in table.uniques if u.column_names == (old.name,)),
                self.naming.unique_constraint_name(table.name, [old.name]),
            )
            await self.query(f"ALTER TABLE {path} DROP CONSTRAINT {self.escape(name)}")

    async def update_primary_keys(
        self,
        table: TableSpec,
        columns: Sequence[ColumnSpec],
        constraint_name: str | None = None,
    ) -> None:
        await self._replace_primary_key(table, [c.name for c in columns], constraint_name)

    # ------------------------------------------------------------------
    # Indices
    # ------------------------------------------------------------------

    def create_index_sql(self, table: TableSpec, index: IndexSpec) -> str:
        kind = ""
        if index.is_unique:
            kind = "UNIQUE "
        elif index.is_fulltext:
            kind = "FULLTEXT "
        elif index.is_spatial:
            kind = "SPATIAL "
        sql = (
            f"CREATE {kind}INDEX {self.escape(index.name)} ON {self.escape_path(table.name)} "
            f"({self.column_list(index.column_names)})"
        )
        if index.where:
            sql += f" WHERE {index.where}"
        return sql

    def drop_index_sql(self, table: TableSpec, index: IndexSpec) -> str:
        return f"DROP INDEX {self.escape(index.name)}"

    async def create_indices(self, table: TableSpec, indices: Sequence[IndexSpec]) -> None:
        for index in indices:
            await self.query(self.create_index_sql(table, index))

    async def drop_indices(self, table: TableSpec, indices: Sequence[IndexSpec]) -> None:
        for index in indices:
            await self.query(self.drop_index_sql(table, index))

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def foreign_key_clause(self, fk: ForeignKeySpec) -> str:
        sql = (
            f"CONSTRAINT {self.escape(fk.name)} FOREIGN KEY ({self.column_list(fk.column_names)}) "
            f"REFERENCES {self.escape_path(fk.referenced_table)} ({self.column_list(fk.referenced_column_names)})"
        )
        if fk.on_delete:
            sql += f" ON DELETE {fk.on_delete}"
        if fk.on_update:
            sql += f" ON UPDATE {fk.on_update}"
        return sql

    async def _add_constraints(self, table: TableSpec, clauses: Sequence[str]) -> None:
        for clause in clauses:
            await self.query(f"ALTER TABLE {self.escape_path(table.name)} ADD {clause}")

    async def _drop_constraints(self, table: TableSpec, names: Sequence[str]) -> None:
        for name in names:
            await self.query(f"ALTER TABLE {self.escape_path(table.name)} DROP CONSTRAINT {self.escape(name)}")

    async def create_foreign_keys(self, table: TableSpec, foreign_keys: Sequence[ForeignKeySpec]) -> None:
        await self._add_constraints(table, [self.foreign_key_clause(fk) for fk in foreign_keys])

    async def drop_foreign_keys(self, table: TableSpec, foreign_keys: Sequence[ForeignKeySpec]) -> None:
        await self._drop_constraints(table, [fk.name for fk in foreign_keys])

    async def create_check_constraints(self, table: TableSpec, checks: Sequence[CheckSpec]) -> None:
        await self._add_constraints(
            table, [f"CONSTRAINT {self.escape(c.name)} CHECK ({c.expression})" for c in checks]
        )

    async def drop_check_constraints(self, table: TableSpec, checks: Sequence[CheckSpec]) -> None:
        await self._drop_constraints(table, [c.name for c in checks])

    async def create_unique_constraints(self, table: TableSpec, uniques: Sequence[UniqueSpec]) -> None:
        await self._add_constraints(
            table,
            [f"CONSTRAINT {self.escape(u.name)} UNIQUE ({self.column_list(u.column_names)})" for u in uniques],
        )

    async def drop_unique_constraints(self, table: TableSpec, uniques: Sequence[UniqueSpec]) -> None:
        await self._drop_constraints(table, [u.name for u in uniques])

    async def create_exclusion_constraints(self, table: TableSpec, exclusions: Sequence[ExclusionSpec]) -> None:
        await self._add_constraints(
            table, [f"CONSTRAINT {self.escape(e.name)} EXCLUDE {e.expression}" for e in exclusions]
        )

    async def drop_exclusion_constraints(self, table: TableSpec, exclusions: Sequence[ExclusionSpec]) -> None:
        await self._drop_constraints(table, [e.name for e in exclusions])

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def create_view(self, view: ViewSpec) -> None:
        await self.query(f"CREATE VIEW {self.escape_path(view.name)} AS {view.resolved_expression()}")
        await self.insert_view_definition(view)

    async def drop_view(self, view: ViewSpec) -> None:
        await self.query(f"DROP VIEW {self.escape_path(view.name)}")
        await self.delete_view_definition(view)

    async def insert_view_definition(self, view: ViewSpec) -> None:
        name = view.name.split(".")[-1]
        columns = self.column_list(["type", "database", "schema", "name", "value"])
        values = ", ".join(
            sql_literal(v)
            for v in ("VIEW", view.database, view.schema_name, name, view.resolved_expression())
        )
        await self.query(f"INSERT INTO {self.escape_path(self.metadata_table_path)} ({columns}) VALUES ({values})")

    async def delete_view_definition(self, view: ViewSpec) -> None:
        name = view.name.split(".")[-1]
        conditions = [
            f"{self.escape('type')} = 'VIEW'",
            f"{self.escape('name')} = {sql_literal(name)}",
        ]
        if view.schema_name:
            conditions.append(f"{self.escape('schema')} = {sql_literal(view.schema_name)}")
        if view.database:
            conditions.append(f"{self.escape('database')} = {sql_literal(view.database)}")
        await self.query(
            f"DELETE FROM {self.escape_path(self.metadata_table_path)} WHERE {' AND '.join(conditions)}"
        )

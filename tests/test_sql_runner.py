"""Tests for ``SqlQueryRunner`` statement rendering and lifecycle.

Covers:
- CREATE TABLE / ALTER TABLE / index / constraint rendering
- View creation with metadata table bookkeeping
- SQL memory (dry-run recording)
- Transaction guards and released-runner errors
"""

import asyncio

import pytest

from db_schema_sync.errors import (
    RunnerReleasedError,
    TransactionAlreadyStartedError,
    TransactionNotStartedError,
)
from db_schema_sync.runners.sql import DEFAULT_METADATA_TABLE, sql_literal
from db_schema_sync.schema.models import (
    ColumnSpec,
    ForeignKeySpec,
    GenerationStrategy,
    IndexSpec,
    TableSpec,
    ViewSpec,
)
from db_schema_sync.schema.operations import ColumnChange
from fakes import InjectedFailure, InMemoryQueryRunner

ID = ColumnSpec(name="id", type="integer", is_primary=True, generation_strategy=GenerationStrategy.INCREMENT)
NAME = ColumnSpec(name="name", type="character varying", length="50", is_nullable=True)
TABLE = TableSpec(name="t", primary_key_name="PK_t", columns=(ID, NAME))


def recorded(coro_factory) -> list[str]:
    """Run ``coro_factory(runner)`` with SQL memory on and return the statements."""
    runner = InMemoryQueryRunner()
    runner.enable_sql_memory()

    async def _run():
        await coro_factory(runner)
        return runner.get_memory_sql()

    return asyncio.run(_run())


class TestSqlLiteral:
    def test_null(self):
        assert sql_literal(None) == "NULL"

    def test_quotes_are_doubled(self):
        assert sql_literal("it's") == "'it''s'"


class TestTableStatements:
    """Verify CREATE TABLE and column statements."""

    def test_create_table(self):
        statements = recorded(lambda r: r.create_table(TABLE))
        assert statements == [
            'CREATE TABLE "t" ("id" integer NOT NULL GENERATED BY DEFAULT AS IDENTITY, '
            '"name" character varying(50), CONSTRAINT "PK_t" PRIMARY KEY ("id"))'
        ]

    def test_create_table_with_indices_and_foreign_keys(self):
        fk = ForeignKeySpec(
            name="FK_owner",
            column_names=("owner_id",),
            referenced_table="user",
            referenced_column_names=("id",),
            on_delete="CASCADE",
        )
        index = IndexSpec(name="IDX_name", column_names=("name",), is_unique=True, where="name IS NOT NULL")
        table = TABLE.model_copy(update={"foreign_keys": (fk,), "indices": (index,)})

        with_fk = recorded(lambda r: r.create_table(table))
        without_fk = recorded(lambda r: r.create_table(table, with_foreign_keys=False))

        assert 'CONSTRAINT "FK_owner" FOREIGN KEY ("owner_id") REFERENCES "user" ("id") ON DELETE CASCADE' in with_fk[0]
        assert "FOREIGN KEY" not in without_fk[0]
        assert with_fk[1] == 'CREATE UNIQUE INDEX "IDX_name" ON "t" ("name") WHERE name IS NOT NULL'

    def test_if_not_exists_skips_existing_table(self):
        runner = InMemoryQueryRunner(tables=[TABLE])
        runner.enable_sql_memory()
        asyncio.run(runner.create_table(TABLE, if_not_exists=True))
        assert runner.get_memory_sql() == []

    def test_add_unique_column(self):
        email = ColumnSpec(name="email", type="character varying", is_unique=True)
        runner = InMemoryQueryRunner()
        runner.enable_sql_memory()
        asyncio.run(runner.add_columns(TABLE, [email]))
        unique_name = runner.naming.unique_constraint_name("t", ["email"])

        assert runner.get_memory_sql() == [
            'ALTER TABLE "t" ADD "email" character varying NOT NULL',
            f'ALTER TABLE "t" ADD CONSTRAINT "{unique_name}" UNIQUE ("email")',
        ]

    def test_drop_primary_column_drops_constraint_first(self):
        statements = recorded(lambda r: r.drop_columns(TABLE, [ID]))
        assert statements == [
            'ALTER TABLE "t" DROP CONSTRAINT "PK_t"',
            'ALTER TABLE "t" DROP COLUMN "id"',
        ]

    def test_rename_column(self):
        statements = recorded(lambda r: r.rename_column(TABLE, "name", "title"))
        assert statements == ['ALTER TABLE "t" RENAME COLUMN "name" TO "title"']

    def test_update_primary_keys(self):
        statements = recorded(lambda r: r.update_primary_keys(TABLE, [ID, NAME], "PK_t2"))
        assert statements == [
            'ALTER TABLE "t" DROP CONSTRAINT "PK_t"',
            'ALTER TABLE "t" ADD CONSTRAINT "PK_t2" PRIMARY KEY ("id", "name")',
        ]


class TestChangeColumn:
    """Columns are altered in place, one statement per changed attribute."""

    def test_set_not_null(self):
        change = ColumnChange(old=NAME, new=NAME.model_copy(update={"is_nullable": False}))
        statements = recorded(lambda r: r.change_columns(TABLE, [change]))
        assert statements == ['ALTER TABLE "t" ALTER COLUMN "name" SET NOT NULL']

    def test_type_change(self):
        change = ColumnChange(old=NAME, new=NAME.model_copy(update={"type": "text", "length": None}))
        statements = recorded(lambda r: r.change_columns(TABLE, [change]))
        assert statements == ['ALTER TABLE "t" ALTER COLUMN "name" TYPE text']

    def test_default_set_and_drop(self):
        with_default = NAME.model_copy(update={"default": "'anon'"})
        set_default = recorded(lambda r: r.change_columns(TABLE, [ColumnChange(old=NAME, new=with_default)]))
        drop_default = recorded(lambda r: r.change_columns(TABLE, [ColumnChange(old=with_default, new=NAME)]))

        assert set_default == ['ALTER TABLE "t" ALTER COLUMN "name" SET DEFAULT \'anon\'']
        assert drop_default == ['ALTER TABLE "t" ALTER COLUMN "name" DROP DEFAULT']

    def test_default_comparison_ignores_case(self):
        old = NAME.model_copy(update={"default": "NOW()"})
        new = NAME.model_copy(update={"default": "now()"})
        assert recorded(lambda r: r.change_columns(TABLE, [ColumnChange(old=old, new=new)])) == []


class TestViews:
    """Views are recorded in the metadata table."""

    def test_create_view_inserts_definition(self):
        view = ViewSpec(name="v", expression="SELECT 'a'")
        statements = recorded(lambda r: r.create_view(view))
        assert statements == [
            "CREATE VIEW \"v\" AS SELECT 'a'",
            f'INSERT INTO "{DEFAULT_METADATA_TABLE}" ("type", "database", "schema", "name", "value") '
            "VALUES ('VIEW', NULL, NULL, 'v', 'SELECT ''a''')",
        ]

    def test_drop_view_deletes_definition(self):
        view = ViewSpec(name="reporting.v", expression="SELECT 1", schema_name="reporting")
        statements = recorded(lambda r: r.drop_view(view))
        assert statements == [
            'DROP VIEW "reporting"."v"',
            f'DELETE FROM "{DEFAULT_METADATA_TABLE}" WHERE "type" = \'VIEW\' AND "name" = \'v\' '
            "AND \"schema\" = 'reporting'",
        ]

    def test_metadata_table_spec(self):
        spec = InMemoryQueryRunner().metadata_table_spec()
        assert spec.name == DEFAULT_METADATA_TABLE
        assert spec.column_names == ("type", "database", "schema", "table", "name", "value")
        assert spec.find_column("value").type == "text"
        assert spec.find_column("type").type == "character varying"


class TestSqlMemory:
    """Verify recording instead of executing."""

    def test_memory_statements_are_not_executed(self):
        runner = InMemoryQueryRunner()
        runner.enable_sql_memory()
        asyncio.run(runner.create_table(TABLE))

        assert len(runner.get_memory_sql()) == 1
        assert runner.executed_sql == []
        assert runner.database == {}

    def test_disable_clears_memory(self):
        runner = InMemoryQueryRunner()
        runner.enable_sql_memory()
        asyncio.run(runner.query("SELECT 1"))
        runner.disable_sql_memory()
        assert runner.get_memory_sql() == []

    def test_executed_sql_in_order(self):
        runner = InMemoryQueryRunner()

        async def _run():
            await runner.query("SELECT 1")
            await runner.query("SELECT 2")

        asyncio.run(_run())
        assert runner.executed_sql == ["SELECT 1", "SELECT 2"]


class TestTransactions:
    """Verify transaction guards."""

    def test_commit_without_transaction(self):
        with pytest.raises(TransactionNotStartedError):
            asyncio.run(InMemoryQueryRunner().commit_transaction())

    def test_rollback_without_transaction(self):
        with pytest.raises(TransactionNotStartedError):
            asyncio.run(InMemoryQueryRunner().rollback_transaction())

    def test_start_twice(self):
        runner = InMemoryQueryRunner()

        async def _run():
            await runner.start_transaction()
            await runner.start_transaction()

        with pytest.raises(TransactionAlreadyStartedError):
            asyncio.run(_run())

    def test_rollback_restores_state(self):
        runner = InMemoryQueryRunner()

        async def _run():
            await runner.start_transaction()
            await runner.create_table(TABLE)
            await runner.rollback_transaction()

        asyncio.run(_run())
        assert runner.database == {}
        assert not runner.is_transaction_active
        assert runner.executed_sql[0] == "START TRANSACTION"
        assert runner.executed_sql[-1] == "ROLLBACK"

    def test_failed_rollback_clears_active_flag(self):
        runner = InMemoryQueryRunner(fail_rollback=True)

        async def _run():
            await runner.start_transaction()
            await runner.rollback_transaction()

        with pytest.raises(InjectedFailure):
            asyncio.run(_run())
        assert not runner.is_transaction_active


class TestRelease:
    def test_query_after_release(self):
        runner = InMemoryQueryRunner()

        async def _run():
            await runner.release()
            await runner.query("SELECT 1")

        with pytest.raises(RunnerReleasedError):
            asyncio.run(_run())

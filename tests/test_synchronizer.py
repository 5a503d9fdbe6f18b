"""Tests for ``SchemaSynchronizer``.

Covers:
- Transactional runs: commit on success, rollback and re-raise on failure
- Non-transactional runs: PartialSyncError with the completed operations
- Interleaved steps within a phase, with dependent drops finishing first
- preview() producing SQL without touching the database
- Metadata table creation only when views are declared
- Capability validation before any DDL
- The runner being released exactly once on every path
"""

import asyncio

import pytest

from db_schema_sync.dialects import CockroachDialect, MysqlDialect, PostgresDialect
from db_schema_sync.errors import CapabilityError, PartialSyncError
from db_schema_sync.metadata import (
    CheckDeclaration,
    ColumnDeclaration,
    EntityDeclaration,
    MetadataBuilder,
    RelationDeclaration,
    ViewDeclaration,
)
from db_schema_sync.runners.sql import DEFAULT_METADATA_TABLE
from db_schema_sync.schema.models import (
    ColumnSpec,
    ForeignKeySpec,
    GenerationStrategy,
    IndexSpec,
    MetadataModel,
    TableSpec,
)
from db_schema_sync.schema.operations import Phase
from db_schema_sync.schema.synchronizer import SchemaSynchronizer, SyncResult, SyncState
from fakes import InjectedFailure, InMemoryQueryRunner


def _entities(*extra_post_columns: ColumnDeclaration) -> list[EntityDeclaration]:
    user = EntityDeclaration(
        name="User",
        columns=[
            ColumnDeclaration(property_name="id", primary=True, generated=GenerationStrategy.INCREMENT),
            ColumnDeclaration(property_name="email", type=str, unique=True),
        ],
    )
    post = EntityDeclaration(
        name="Post",
        columns=[
            ColumnDeclaration(property_name="id", primary=True, generated=GenerationStrategy.INCREMENT),
            ColumnDeclaration(property_name="title", type=str, length=200),
            *extra_post_columns,
        ],
        relations=[RelationDeclaration(property_name="author", kind="many-to-one", target="User")],
    )
    return [user, post]


VIEW = ViewDeclaration(name="Titles", expression='SELECT title FROM "post"')


def build(dialect=None, entities=None, views=()):
    dialect = dialect or PostgresDialect()
    return MetadataBuilder(dialect).build(entities or _entities(), views)


def synchronize(runner: InMemoryQueryRunner, model) -> tuple[SchemaSynchronizer, SyncResult]:
    synchronizer = SchemaSynchronizer(runner, runner.dialect, model)
    return synchronizer, asyncio.run(synchronizer.synchronize())


def existing_database() -> dict:
    """Database state after syncing the base model."""
    runner = InMemoryQueryRunner()
    synchronize(runner, build())
    return dict(runner.database)


# ============================================================================
# Transactional runs
# ============================================================================


class TestSynchronize:
    """Verify a successful transactional run."""

    def test_creates_schema(self):
        runner = InMemoryQueryRunner()
        synchronizer, result = synchronize(runner, build())

        assert result.success is True
        assert result.state == SyncState.COMMITTED
        assert synchronizer.state == SyncState.COMMITTED
        assert result.operation_count == 3
        assert set(runner.database) == {"user", "post"}
        assert len(runner.database["post"].foreign_keys) == 1

    def test_runs_in_one_transaction(self):
        runner = InMemoryQueryRunner()
        _, result = synchronize(runner, build())

        assert runner.transaction_log == ["begin", "commit"]
        assert result.executed_sql[0] == "START TRANSACTION"
        assert result.executed_sql[-1] == "COMMIT"
        assert result.executed_sql == runner.executed_sql

    def test_tables_before_foreign_keys(self):
        runner = InMemoryQueryRunner()
        _, result = synchronize(runner, build())

        creates = [i for i, sql in enumerate(result.executed_sql) if sql.startswith("CREATE TABLE")]
        foreign_keys = [i for i, sql in enumerate(result.executed_sql) if "FOREIGN KEY" in sql]
        assert max(creates) < min(foreign_keys)

    def test_second_run_is_a_no_op(self):
        database = existing_database()
        runner = InMemoryQueryRunner(tables=list(database.values()))
        _, result = synchronize(runner, build())

        assert result.operation_count == 0
        assert result.operations == []
        assert runner.executed_sql == ["START TRANSACTION", "COMMIT"]

    def test_releases_runner(self):
        runner = InMemoryQueryRunner()
        synchronize(runner, build())
        assert runner.release_count == 1
        assert runner.is_released


class TestAtomicity:
    """A failed transactional run leaves the database as it was."""

    def test_failure_rolls_back_everything(self):
        database = existing_database()
        runner = InMemoryQueryRunner(tables=list(database.values()), fail_on='ADD "summary"')
        extra = ColumnDeclaration(property_name="summary", type="text", nullable=True)
        model = build(entities=_entities(extra) + [EntityDeclaration(
            name="Tag",
            columns=[ColumnDeclaration(property_name="id", primary=True, generated=GenerationStrategy.INCREMENT)],
        )])
        synchronizer = SchemaSynchronizer(runner, runner.dialect, model)

        with pytest.raises(InjectedFailure, match='ADD "summary"'):
            asyncio.run(synchronizer.synchronize())

        assert runner.database == database
        assert "tag" not in runner.database
        assert runner.transaction_log == ["begin", "rollback"]
        assert synchronizer.state == SyncState.ROLLED_BACK
        assert runner.release_count == 1

    def test_rollback_failure_keeps_original_error(self):
        runner = InMemoryQueryRunner(fail_on="FOREIGN KEY", fail_rollback=True)
        synchronizer = SchemaSynchronizer(runner, runner.dialect, build())

        with pytest.raises(InjectedFailure, match="FOREIGN KEY"):
            asyncio.run(synchronizer.synchronize())

        assert runner.transaction_log == ["begin", "rollback"]
        assert runner.release_count == 1


class TestNonTransactional:
    """Dialects without transactional DDL report partial progress."""

    def test_partial_sync_error(self):
        dialect = CockroachDialect()
        runner = InMemoryQueryRunner(dialect, fail_on="FOREIGN KEY")
        synchronizer = SchemaSynchronizer(runner, dialect, build(dialect))

        with pytest.raises(PartialSyncError) as exc_info:
            asyncio.run(synchronizer.synchronize())

        error = exc_info.value
        assert error.phase == Phase.CREATE_FOREIGN_KEYS
        assert [op.kind for op in error.completed] == ["create-table", "create-table"]
        assert isinstance(error.__cause__, InjectedFailure)
        assert synchronizer.state == SyncState.PARTIALLY_APPLIED
        # Completed operations stay applied.
        assert set(runner.database) == {"user", "post"}
        assert runner.transaction_log == []
        assert runner.release_count == 1

    def test_success_without_transaction(self):
        dialect = CockroachDialect()
        runner = InMemoryQueryRunner(dialect)
        _, result = synchronize(runner, build(dialect))

        assert result.success is True
        assert "START TRANSACTION" not in result.executed_sql
        assert runner.transaction_log == []


# ============================================================================
# Concurrent steps within a phase
# ============================================================================


def _retype_tables(key_type: str = "integer") -> tuple[TableSpec, TableSpec]:
    """``a(x, id, y)`` with a composite index, and ``b.a_id`` referencing ``a.id``.

    ``key_type`` is the type of ``a.x``, ``a.id`` and ``b.a_id``.
    """
    a = TableSpec(
        name="a",
        primary_key_name="PK_a",
        columns=(
            ColumnSpec(name="x", type=key_type),
            ColumnSpec(name="id", type=key_type, is_primary=True),
            ColumnSpec(name="y", type="integer"),
        ),
        indices=(IndexSpec(name="idx_xy", column_names=("x", "y")),),
    )
    b = TableSpec(
        name="b",
        primary_key_name="PK_b",
        columns=(
            ColumnSpec(name="id", type="integer", is_primary=True),
            ColumnSpec(name="a_id", type=key_type),
        ),
        foreign_keys=(
            ForeignKeySpec(
                name="fk_b",
                column_names=("a_id",),
                referenced_table="a",
                referenced_column_names=("id",),
            ),
        ),
    )
    return a, b


def _widened() -> MetadataModel:
    return MetadataModel(tables=_retype_tables("bigint"))


def _position(statements: list[str], prefix: str) -> int:
    return next(i for i, sql in enumerate(statements) if sql.startswith(prefix))


class TestConcurrentPhases:
    """Steps of one phase interleave; dependent drops still finish first."""

    def test_dependents_dropped_before_any_column_change(self):
        runner = InMemoryQueryRunner(tables=_retype_tables(), yield_on_execute=True)
        _, result = synchronize(runner, _widened())
        statements = result.executed_sql

        drop_fk = statements.index('ALTER TABLE "b" DROP CONSTRAINT "fk_b"')
        drop_index = _position(statements, 'DROP INDEX "idx_xy"')
        alters = [i for i, sql in enumerate(statements) if " ALTER COLUMN " in sql]

        assert alters
        assert max(drop_fk, drop_index) < min(alters)
        assert drop_fk < _position(statements, 'ALTER TABLE "b" ALTER COLUMN "a_id"')
        assert drop_index < _position(statements, 'ALTER TABLE "a" ALTER COLUMN "x"')

    def test_dependents_recreated_and_second_run_is_a_no_op(self):
        runner = InMemoryQueryRunner(tables=_retype_tables(), yield_on_execute=True)
        synchronize(runner, _widened())

        a, b = runner.database["a"], runner.database["b"]
        assert [c.type for c in a.columns] == ["bigint", "bigint", "integer"]
        assert a.find_index("idx_xy") is not None
        assert [fk.name for fk in b.foreign_keys] == ["fk_b"]

        rerun = InMemoryQueryRunner(tables=list(runner.database.values()), yield_on_execute=True)
        plan = asyncio.run(SchemaSynchronizer(rerun, rerun.dialect, _widened()).plan())
        assert not plan.has_changes

    def test_interleaves_steps_of_a_phase(self):
        """Both tables' column steps are in flight before either finishes."""
        runner = InMemoryQueryRunner(tables=_retype_tables(), yield_on_execute=True)
        _, result = synchronize(runner, _widened())

        alter_tables = [sql.split('"')[1] for sql in result.executed_sql if " ALTER COLUMN " in sql]
        assert set(alter_tables) == {"a", "b"}
        assert alter_tables != sorted(alter_tables)


# ============================================================================
# Dry runs and planning
# ============================================================================


class TestPreview:
    """Verify preview() records SQL without executing it."""

    def test_returns_sql_without_changes(self):
        runner = InMemoryQueryRunner()
        synchronizer = SchemaSynchronizer(runner, runner.dialect, build())
        statements = asyncio.run(synchronizer.preview())

        assert statements[0].startswith('CREATE TABLE "user"')
        assert any("FOREIGN KEY" in sql for sql in statements)
        assert "START TRANSACTION" not in statements
        assert runner.database == {}
        assert runner.executed_sql == []
        assert synchronizer.last_plan.operation_count == 3
        assert runner.release_count == 1

    def test_preview_matches_executed_ddl(self):
        preview_runner = InMemoryQueryRunner()
        statements = asyncio.run(SchemaSynchronizer(preview_runner, preview_runner.dialect, build()).preview())

        runner = InMemoryQueryRunner()
        _, result = synchronize(runner, build())
        assert statements == result.executed_sql[1:-1]

    def test_plan_does_not_execute(self):
        runner = InMemoryQueryRunner()
        plan = asyncio.run(SchemaSynchronizer(runner, runner.dialect, build()).plan())

        assert [op.kind for op in plan.operations] == ["create-table", "create-table", "create-foreign-keys"]
        assert runner.executed_sql == []
        assert runner.release_count == 1


class TestViewsMetadataTable:
    """The metadata table exists only for models with views."""

    def test_not_created_without_views(self):
        runner = InMemoryQueryRunner()
        synchronize(runner, build())
        assert DEFAULT_METADATA_TABLE not in runner.database

    def test_created_before_transaction(self):
        runner = InMemoryQueryRunner()
        _, result = synchronize(runner, build(views=[VIEW]))

        assert DEFAULT_METADATA_TABLE in runner.database
        assert result.executed_sql[0].startswith(f'CREATE TABLE "{DEFAULT_METADATA_TABLE}"')
        assert result.executed_sql[1] == "START TRANSACTION"
        assert "titles" in runner.views

    def test_metadata_table_survives_rollback(self):
        runner = InMemoryQueryRunner(fail_on="CREATE VIEW")
        with pytest.raises(InjectedFailure):
            synchronize(runner, build(views=[VIEW]))

        assert list(runner.database) == [DEFAULT_METADATA_TABLE]
        assert runner.views == {}


class TestValidation:
    """Capability errors are raised before any DDL."""

    def test_check_on_mysql(self):
        dialect = MysqlDialect()
        entities = _entities()
        entities[1].checks.append(CheckDeclaration(expression="length(title) > 0"))
        runner = InMemoryQueryRunner(dialect)

        with pytest.raises(CapabilityError, match="Check constraint"):
            synchronize(runner, build(dialect, entities))

        assert runner.executed_sql == []
        assert runner.release_count == 1

"""Schema operations and the ordered synchronization plan.

An operation is one DDL action against one table (or view). Operations
carry the table as it is when the operation runs, so a runner never needs
to look anything up. A ``SyncPlan`` groups operations into ``PlanStep``s
by phase and anchor table; phases always execute in ``Phase`` order.

Usage:
    from db_schema_sync.schema.operations import Phase, SyncPlan, AddColumns

    plan = SyncPlan()
    plan.add(Phase.ADD_COLUMNS, "public.users", AddColumns(table, (email,)))
    for line in plan.describe():
        print(line)
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

from db_schema_sync.runners.base import QueryRunner
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


class Phase(IntEnum):
    """Global execution order. Every table finishes a phase before the next starts."""

    DROP_VIEWS = 1
    DROP_FOREIGN_KEYS = 2
    DROP_INDICES = 3
    DROP_CHECKS = 4
    DROP_EXCLUSIONS = 5
    DROP_UNIQUES = 6
    RENAME_COLUMNS = 7
    CREATE_TABLES = 8
    DROP_COLUMNS = 9
    ADD_COLUMNS = 10
    UPDATE_PRIMARY_KEYS = 11
    CHANGE_COLUMNS = 12
    CREATE_INDICES = 13
    CREATE_CHECKS = 14
    CREATE_UNIQUES = 15
    CREATE_EXCLUSIONS = 16
    CREATE_FOREIGN_KEYS = 17
    CREATE_VIEWS = 18

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", " ")


def _names(items) -> str:
    return ", ".join(item.name for item in items)


# ============================================================================
# Operations
# ============================================================================


class Operation:
    """Base class for schema operations."""

    kind: ClassVar[str] = "operation"

    def describe(self) -> str:
        raise NotImplementedError

    async def apply(self, runner: QueryRunner) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class ColumnChange:
    """A live column and the canonical column it becomes."""

    old: ColumnSpec
    new: ColumnSpec


@dataclass(frozen=True)
class CreateTable(Operation):
    table: TableSpec

    kind: ClassVar[str] = "create-table"

    def describe(self) -> str:
        return f"create table {self.table.name} ({len(self.table.columns)} columns)"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.create_table(self.table, with_foreign_keys=False, with_indices=True)


@dataclass(frozen=True)
class DropColumns(Operation):
    table: TableSpec
    columns: tuple[ColumnSpec, ...]

    kind: ClassVar[str] = "drop-columns"

    def describe(self) -> str:
        return f"drop columns {_names(self.columns)} from {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.drop_columns(self.table, self.columns)


@dataclass(frozen=True)
class AddColumns(Operation):
    table: TableSpec
    columns: tuple[ColumnSpec, ...]

    kind: ClassVar[str] = "add-columns"

    def describe(self) -> str:
        return f"add columns {_names(self.columns)} to {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.add_columns(self.table, self.columns)


@dataclass(frozen=True)
class ChangeColumns(Operation):
    table: TableSpec
    changes: tuple[ColumnChange, ...]

    kind: ClassVar[str] = "change-columns"

    def describe(self) -> str:
        return f"change columns {', '.join(c.new.name for c in self.changes)} in {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.change_columns(self.table, self.changes)


@dataclass(frozen=True)
class RenameColumn(Operation):
    table: TableSpec
    old_name: str
    new_name: str

    kind: ClassVar[str] = "rename-column"

    def describe(self) -> str:
        return f"rename column {self.old_name} to {self.new_name} in {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.rename_column(self.table, self.old_name, self.new_name)


@dataclass(frozen=True)
class UpdatePrimaryKey(Operation):
    table: TableSpec
    columns: tuple[ColumnSpec, ...]
    constraint_name: str | None = None

    kind: ClassVar[str] = "update-primary-key"

    def describe(self) -> str:
        return f"update primary key of {self.table.name} to ({_names(self.columns)})"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.update_primary_keys(self.table, self.columns, self.constraint_name)


@dataclass(frozen=True)
class CreateIndices(Operation):
    table: TableSpec
    indices: tuple[IndexSpec, ...]

    kind: ClassVar[str] = "create-indices"

    def describe(self) -> str:
        return f"create indices {_names(self.indices)} on {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.create_indices(self.table, self.indices)


@dataclass(frozen=True)
class DropIndices(Operation):
    table: TableSpec
    indices: tuple[IndexSpec, ...]

    kind: ClassVar[str] = "drop-indices"

    def describe(self) -> str:
        return f"drop indices {_names(self.indices)} from {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.drop_indices(self.table, self.indices)


@dataclass(frozen=True)
class CreateForeignKeys(Operation):
    table: TableSpec
    foreign_keys: tuple[ForeignKeySpec, ...]

    kind: ClassVar[str] = "create-foreign-keys"

    def describe(self) -> str:
        return f"create foreign keys {_names(self.foreign_keys)} on {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.create_foreign_keys(self.table, self.foreign_keys)


@dataclass(frozen=True)
class DropForeignKeys(Operation):
    table: TableSpec
    foreign_keys: tuple[ForeignKeySpec, ...]

    kind: ClassVar[str] = "drop-foreign-keys"

    def describe(self) -> str:
        return f"drop foreign keys {_names(self.foreign_keys)} from {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.drop_foreign_keys(self.table, self.foreign_keys)


@dataclass(frozen=True)
class CreateChecks(Operation):
    table: TableSpec
    checks: tuple[CheckSpec, ...]

    kind: ClassVar[str] = "create-checks"

    def describe(self) -> str:
        return f"create checks {_names(self.checks)} on {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.create_check_constraints(self.table, self.checks)


@dataclass(frozen=True)
class DropChecks(Operation):
    table: TableSpec
    checks: tuple[CheckSpec, ...]

    kind: ClassVar[str] = "drop-checks"

    def describe(self) -> str:
        return f"drop checks {_names(self.checks)} from {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.drop_check_constraints(self.table, self.checks)


@dataclass(frozen=True)
class CreateUniques(Operation):
    table: TableSpec
    uniques: tuple[UniqueSpec, ...]

    kind: ClassVar[str] = "create-uniques"

    def describe(self) -> str:
        return f"create uniques {_names(self.uniques)} on {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.create_unique_constraints(self.table, self.uniques)


@dataclass(frozen=True)
class DropUniques(Operation):
    table: TableSpec
    uniques: tuple[UniqueSpec, ...]

    kind: ClassVar[str] = "drop-uniques"

    def describe(self) -> str:
        return f"drop uniques {_names(self.uniques)} from {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.drop_unique_constraints(self.table, self.uniques)


@dataclass(frozen=True)
class CreateExclusions(Operation):
    table: TableSpec
    exclusions: tuple[ExclusionSpec, ...]

    kind: ClassVar[str] = "create-exclusions"

    def describe(self) -> str:
        return f"create exclusions {_names(self.exclusions)} on {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.create_exclusion_constraints(self.table, self.exclusions)


@dataclass(frozen=True)
class DropExclusions(Operation):
    table: TableSpec
    exclusions: tuple[ExclusionSpec, ...]

    kind: ClassVar[str] = "drop-exclusions"

    def describe(self) -> str:
        return f"drop exclusions {_names(self.exclusions)} from {self.table.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.drop_exclusion_constraints(self.table, self.exclusions)


@dataclass(frozen=True)
class CreateView(Operation):
    view: ViewSpec

    kind: ClassVar[str] = "create-view"

    def describe(self) -> str:
        return f"create view {self.view.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.create_view(self.view)


@dataclass(frozen=True)
class DropView(Operation):
    view: ViewSpec

    kind: ClassVar[str] = "drop-view"

    def describe(self) -> str:
        return f"drop view {self.view.name}"

    async def apply(self, runner: QueryRunner) -> None:
        await runner.drop_view(self.view)


# ============================================================================
# Plan
# ============================================================================


@dataclass
class PlanStep:
    """Operations of one phase anchored at one table, run sequentially.

    Steps with ``prepare`` set hold the drops of constraints that depend
    on columns changed later in the same phase; every prepare step of a
    phase finishes before the phase's other steps start.
    """

    phase: Phase
    table: str
    operations: list[Operation] = field(default_factory=list)
    prepare: bool = False


@dataclass
class SyncPlan:
    """Ordered plan produced by the differ.

    Attributes:
        steps: Steps in execution order: phase order, prepare steps
            first within a phase, then the order the differ visited the
            tables.
    """

    steps: list[PlanStep] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """True if there is at least one operation to apply."""
        return any(step.operations for step in self.steps)

    @property
    def operation_count(self) -> int:
        return sum(len(step.operations) for step in self.steps)

    @property
    def operations(self) -> list[Operation]:
        return [op for step in self.steps for op in step.operations]

    def add(self, phase: Phase, table: str, operation: Operation, prepare: bool = False) -> None:
        """Append ``operation`` to the step for ``(phase, table, prepare)``.

        Raises:
            ValueError: If ``phase`` precedes a phase already in the plan.
        """
        if self.steps and phase < self.steps[-1].phase:
            raise ValueError(f"Cannot add {phase.name} after {self.steps[-1].phase.name}")
        step = next(
            (s for s in self.steps if s.phase == phase and s.table == table and s.prepare == prepare),
            None,
        )
        if step is None:
            step = PlanStep(phase=phase, table=table, prepare=prepare)
            position = len(self.steps)
            if prepare:
                position = next(
                    (i for i, s in enumerate(self.steps) if s.phase == phase and not s.prepare),
                    position,
                )
            self.steps.insert(position, step)
        step.operations.append(operation)

    def phases(self) -> Iterator[tuple[Phase, list[PlanStep]]]:
        """Yield ``(phase, steps)`` for every phase that has steps, in order."""
        for phase in Phase:
            steps = [s for s in self.steps if s.phase == phase]
            if steps:
                yield phase, steps

    def describe(self) -> list[str]:
        return [
            f"[{step.phase.label}] {op.describe()}"
            for step in self.steps
            for op in step.operations
        ]

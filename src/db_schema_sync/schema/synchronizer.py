"""Synchronize a live database with a metadata model.

``SchemaSynchronizer`` drives one run: validate the model, load a snapshot,
diff, and execute the plan phase by phase. Within a phase, the prepare
steps (drops of constraints that depend on columns the phase changes) run
first; then the remaining steps for different tables run as concurrent
tasks of one ``asyncio.TaskGroup``. The runner serializes their statements
on its single connection.

Usage:
    from db_schema_sync.schema.synchronizer import SchemaSynchronizer

    synchronizer = SchemaSynchronizer(runner, dialect, model)

    # Dry run: the SQL the next sync would execute
    statements = await synchronizer.preview()

    # Apply (use a fresh runner; every entry point releases its runner)
    result = await SchemaSynchronizer(runner2, dialect, model).synchronize()
"""

import asyncio
import logging
from enum import Enum

from pydantic import BaseModel, Field

from db_schema_sync.dialects.base import Dialect
from db_schema_sync.errors import PartialSyncError
from db_schema_sync.metadata.naming import NamingStrategy
from db_schema_sync.metadata.validator import validate_model
from db_schema_sync.runners.base import QueryRunner
from db_schema_sync.schema.differ import SchemaDiffer
from db_schema_sync.schema.models import MetadataModel
from db_schema_sync.schema.operations import Operation, Phase, PlanStep, SyncPlan
from db_schema_sync.schema.snapshot import SnapshotLoader

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Lifecycle of one synchronization run."""

    IDLE = "idle"
    SNAPSHOT_LOADED = "snapshot_loaded"
    DIFFED = "diffed"
    PLANNED = "planned"
    EXECUTING = "executing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    PARTIALLY_APPLIED = "partially_applied"


class SyncResult(BaseModel):
    """Result of a synchronization run.

    Attributes:
        success: True if every planned operation was applied.
        state: Final ``SyncState`` of the run.
        operation_count: Number of operations in the plan.
        operations: One ``describe()`` line per planned operation.
        executed_sql: Statements sent to the database, in order.
    """

    success: bool = False
    state: SyncState = SyncState.IDLE
    operation_count: int = 0
    operations: list[str] = Field(default_factory=list)
    executed_sql: list[str] = Field(default_factory=list)


def _batches(steps: list[PlanStep]) -> list[list[PlanStep]]:
    """Split a phase into its prepare steps and the remaining steps, dropping empty batches."""
    prepare = [s for s in steps if s.prepare]
    rest = [s for s in steps if not s.prepare]
    return [batch for batch in (prepare, rest) if batch]


class SchemaSynchronizer:
    """Run validation, snapshot, diff and execution for one model.

    Every public entry point releases the runner when it returns, so a
    synchronizer (and its runner) serves a single run.

    Args:
        runner: Query runner owning the connection for this run.
        dialect: Target dialect.
        model: Desired schema built by ``MetadataBuilder``.
        naming_strategy: Shared naming strategy; defaults to the runner's.
    """

    def __init__(
        self,
        runner: QueryRunner,
        dialect: Dialect,
        model: MetadataModel,
        naming_strategy: NamingStrategy | None = None,
    ):
        self.runner = runner
        self.dialect = dialect
        self.model = model
        self.differ = SchemaDiffer(dialect, naming_strategy or runner.naming)
        self.state = SyncState.IDLE
        self.last_plan: SyncPlan | None = None
        self._current_phase: Phase | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def synchronize(self) -> SyncResult:
        """Apply the model to the database.

        Transactional dialects run every phase in one transaction that is
        rolled back on failure; the original error is re-raised.

        Raises:
            CapabilityError: The model uses features the dialect lacks.
            PartialSyncError: A non-transactional run failed part way.
        """
        try:
            validate_model(self.model, self.dialect)
            if self.model.synchronized_views:
                await self._create_metadata_table()
            plan = await self._plan()

            self.state = SyncState.EXECUTING
            logger.info(f"Executing schema plan: {plan.operation_count} operation(s)")
            if self.dialect.transactional_ddl:
                await self._execute_in_transaction(plan)
            else:
                await self._execute_without_transaction(plan)
            self.state = SyncState.COMMITTED
            logger.info("Schema synchronization finished")

            return SyncResult(
                success=True,
                state=self.state,
                operation_count=plan.operation_count,
                operations=plan.describe(),
                executed_sql=list(self.runner.executed_sql),
            )
        finally:
            await self.runner.release()

    async def preview(self) -> list[str]:
        """Return the ordered SQL the next ``synchronize()`` would execute.

        Nothing is executed and no transaction is opened; the plan is kept
        on ``last_plan``.
        """
        self.runner.enable_sql_memory()
        try:
            validate_model(self.model, self.dialect)
            if self.model.synchronized_views:
                await self._create_metadata_table()
            plan = await self._plan()
            for _, steps in plan.phases():
                for step in steps:
                    for operation in step.operations:
                        await operation.apply(self.runner)
            return self.runner.get_memory_sql()
        finally:
            self.runner.disable_sql_memory()
            await self.runner.release()

    async def plan(self) -> SyncPlan:
        """Load the snapshot and diff it, without executing anything."""
        try:
            validate_model(self.model, self.dialect)
            return await self._plan()
        finally:
            await self.runner.release()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _create_metadata_table(self) -> None:
        await self.runner.create_table(self.runner.metadata_table_spec(), if_not_exists=True)

    async def _plan(self) -> SyncPlan:
        loader = SnapshotLoader(self.runner)
        snapshot = await loader.load(t.name for t in self.model.synchronized_tables)
        self.state = SyncState.SNAPSHOT_LOADED

        plan = self.differ.diff(self.model, snapshot)
        self.state = SyncState.DIFFED

        self.last_plan = plan
        self.state = SyncState.PLANNED
        return plan

    async def _execute_in_transaction(self, plan: SyncPlan) -> None:
        await self.runner.start_transaction()
        try:
            await self._execute(plan, [])
            await self.runner.commit_transaction()
        except Exception:
            self.state = SyncState.ROLLED_BACK
            try:
                await self.runner.rollback_transaction()
            except Exception:
                logger.exception("Rollback failed after a failed schema synchronization")
            raise

    async def _execute_without_transaction(self, plan: SyncPlan) -> None:
        completed: list[Operation] = []
        try:
            await self._execute(plan, completed)
        except Exception as exc:
            self.state = SyncState.PARTIALLY_APPLIED
            logger.error(
                f"Schema synchronization failed during {self._current_phase.name} "
                f"after {len(completed)} operation(s); the database is partially migrated"
            )
            raise PartialSyncError(self._current_phase, completed, exc) from exc

    async def _execute(self, plan: SyncPlan, completed: list[Operation]) -> None:
        for phase, steps in plan.phases():
            self._current_phase = phase
            logger.info(f"Phase {phase.label}: {len(steps)} step(s)")
            for batch in _batches(steps):
                try:
                    async with asyncio.TaskGroup() as group:
                        for step in batch:
                            group.create_task(self._run_step(step, completed))
                except ExceptionGroup as group_error:
                    raise group_error.exceptions[0]

    async def _run_step(self, step: PlanStep, completed: list[Operation]) -> None:
        for operation in step.operations:
            logger.info(operation.describe())
            await operation.apply(self.runner)
            completed.append(operation)

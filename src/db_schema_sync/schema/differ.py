"""Compute the ordered plan that turns a live snapshot into the desired model.

The differ walks the phases in ``Phase`` order over a private working copy
of the snapshot. After emitting an operation it applies that operation's
effect to the working copy, so every later phase compares against the
state earlier phases leave behind. Only synchronized tables of the model
are considered; live tables absent from the model are left alone.

Usage:
    from db_schema_sync.schema.differ import SchemaDiffer

    plan = SchemaDiffer(dialect).diff(model, snapshot)
    for line in plan.describe():
        print(line)
"""

import logging
from collections.abc import Iterator

from db_schema_sync.dialects.base import Dialect
from db_schema_sync.metadata.naming import DefaultNamingStrategy, NamingStrategy
from db_schema_sync.schema import table_utils
from db_schema_sync.schema.models import (
    ColumnSpec,
    ForeignKeySpec,
    IndexSpec,
    MetadataModel,
    SchemaSnapshot,
    TableSpec,
)
from db_schema_sync.schema.operations import (
    AddColumns,
    ChangeColumns,
    ColumnChange,
    CreateChecks,
    CreateExclusions,
    CreateForeignKeys,
    CreateIndices,
    CreateTable,
    CreateUniques,
    CreateView,
    DropChecks,
    DropColumns,
    DropExclusions,
    DropForeignKeys,
    DropIndices,
    DropUniques,
    DropView,
    Operation,
    Phase,
    RenameColumn,
    SyncPlan,
    UpdatePrimaryKey,
)

logger = logging.getLogger(__name__)


class SchemaDiffer:
    """Diff a ``MetadataModel`` against a ``SchemaSnapshot``.

    Args:
        dialect: Supplies type normalization, change predicates and
            capability flags.
        naming_strategy: Names single-column uniques that appear in the
            working state when a column becomes unique.
    """

    def __init__(self, dialect: Dialect, naming_strategy: NamingStrategy | None = None):
        self.dialect = dialect
        self.naming = naming_strategy or DefaultNamingStrategy()

    def diff(self, model: MetadataModel, snapshot: SchemaSnapshot) -> SyncPlan:
        """Return the plan; the snapshot itself is never modified."""
        plan = _DiffPass(self.dialect, self.naming, model, snapshot).run()
        logger.info(f"Computed schema plan: {plan.operation_count} operation(s)")
        return plan


class _DiffPass:
    """State of a single diff run."""

    def __init__(
        self,
        dialect: Dialect,
        naming: NamingStrategy,
        model: MetadataModel,
        snapshot: SchemaSnapshot,
    ):
        self.dialect = dialect
        self.naming = naming
        self.desired_tables = model.synchronized_tables
        self.desired_views = model.synchronized_views
        self.tables: dict[str, TableSpec] = dict(snapshot.tables)
        self.views = list(snapshot.views)
        self.plan = SyncPlan()

    def run(self) -> SyncPlan:
        self.drop_old_views()
        self.drop_old_foreign_keys()
        self.drop_old_indices()
        self.drop_old_checks()
        self.drop_old_exclusions()
        self.drop_composite_uniques()
        self.rename_columns()
        self.create_new_tables()
        self.drop_removed_columns()
        self.add_new_columns()
        self.update_primary_keys()
        self.update_existing_columns()
        self.create_new_indices()
        self.create_new_checks()
        self.create_composite_uniques()
        self.create_new_exclusions()
        self.create_foreign_keys()
        self.create_views()
        return self.plan

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit(self, phase: Phase, anchor: str, operation: Operation, prepare: bool = False) -> None:
        logger.debug(f"{phase.name}: {operation.describe()}")
        self.plan.add(phase, anchor, operation, prepare=prepare)

    def _existing(self) -> Iterator[tuple[TableSpec, str]]:
        """Yield ``(desired, path)`` for desired tables present in the working state."""
        for desired in self.desired_tables:
            if desired.name in self.tables:
                yield desired, desired.name

    def _update(self, path: str, table: TableSpec) -> None:
        self.tables[path] = table

    def _drop_foreign_keys(
        self,
        phase: Phase,
        path: str,
        foreign_keys: list[ForeignKeySpec],
        prepare: bool = False,
    ) -> None:
        table = self.tables[path]
        self._emit(phase, path, DropForeignKeys(table, tuple(foreign_keys)), prepare=prepare)
        self._update(path, table_utils.remove_items(table, "foreign_keys", foreign_keys))

    def _drop_column_dependents(self, phase: Phase, path: str, column_name: str) -> None:
        """Drop foreign keys, composite indices and composite uniques using a column.

        Covers foreign keys on the table itself and foreign keys on any
        table that reference ``path.column_name``. Each drop is anchored on
        the table it modifies, in a prepare step, so it completes before
        any column step of ``phase`` runs. Whatever is still declared is
        re-created by the create phases. This also happens when only the
        column's comment or default changed.
        """
        own = [fk for fk in self.tables[path].foreign_keys if column_name in fk.column_names]
        if own:
            self._drop_foreign_keys(phase, path, own, prepare=True)

        for other_path in list(self.tables):
            referencing = [
                fk for fk in self.tables[other_path].foreign_keys
                if fk.referenced_table == path and column_name in fk.referenced_column_names
            ]
            if referencing:
                self._drop_foreign_keys(phase, other_path, referencing, prepare=True)

        table = self.tables[path]
        indices = [i for i in table.indices if column_name in i.column_names and len(i.column_names) > 1]
        if indices:
            self._emit(phase, path, DropIndices(table, tuple(indices)), prepare=True)
            table = table_utils.remove_items(table, "indices", indices)
            self._update(path, table)

        if self.dialect.supports_composite_unique_drop:
            uniques = [u for u in table.uniques if column_name in u.column_names and len(u.column_names) > 1]
            if uniques:
                self._emit(phase, path, DropUniques(table, tuple(uniques)), prepare=True)
                self._update(path, table_utils.remove_items(table, "uniques", uniques))

    def _index_changed(self, live: IndexSpec, desired: IndexSpec) -> bool:
        if live.is_unique != desired.is_unique or live.is_spatial != desired.is_spatial:
            return True
        if self.dialect.supports_fulltext_columns and live.is_fulltext != desired.is_fulltext:
            return True
        return live.column_names != desired.column_names

    def _foreign_key_kept(self, live: ForeignKeySpec, desired: TableSpec) -> bool:
        for fk in desired.foreign_keys:
            if not fk.matches(live):
                continue
            if fk.on_delete and fk.on_delete.upper() != (live.on_delete or "").upper():
                return False
            if fk.on_update and fk.on_update.upper() != (live.on_update or "").upper():
                return False
            return True
        return False

    def _structural_match(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return (
            live.name == desired.name
            and live.type == self.dialect.normalize_type(desired)
            and live.is_nullable == desired.is_nullable
            and live.is_unique == self.dialect.normalize_is_unique(desired)
        )

    # ------------------------------------------------------------------
    # Drop phases
    # ------------------------------------------------------------------

    def drop_old_views(self) -> None:
        for view in list(self.views):
            if any(desired.matches(view) for desired in self.desired_views):
                continue
            logger.info(f"Dropping view: {view.name}")
            self._emit(Phase.DROP_VIEWS, view.name, DropView(view))
            self.views.remove(view)

    def drop_old_foreign_keys(self) -> None:
        for desired, path in self._existing():
            stale = [fk for fk in self.tables[path].foreign_keys if not self._foreign_key_kept(fk, desired)]
            if stale:
                logger.info(f"Dropping {len(stale)} old foreign key(s) from {path}")
                self._drop_foreign_keys(Phase.DROP_FOREIGN_KEYS, path, stale)

    def drop_old_indices(self) -> None:
        for desired, path in self._existing():
            table = self.tables[path]
            stale = []
            for index in table.indices:
                wanted = desired.find_index(index.name)
                if wanted is None:
                    stale.append(index)
                elif wanted.synchronize and self._index_changed(index, wanted):
                    stale.append(index)
            if stale:
                logger.info(f"Dropping {len(stale)} old index(es) from {path}")
                self._emit(Phase.DROP_INDICES, path, DropIndices(table, tuple(stale)))
                self._update(path, table_utils.remove_items(table, "indices", stale))

    def drop_old_checks(self) -> None:
        if not self.dialect.supports_checks:
            return
        for desired, path in self._existing():
            table = self.tables[path]
            wanted = {c.name for c in desired.checks}
            stale = [c for c in table.checks if c.name not in wanted]
            if stale:
                self._emit(Phase.DROP_CHECKS, path, DropChecks(table, tuple(stale)))
                self._update(path, table_utils.remove_items(table, "checks", stale))

    def drop_old_exclusions(self) -> None:
        if not self.dialect.supports_exclusions:
            return
        for desired, path in self._existing():
            table = self.tables[path]
            wanted = {e.name for e in desired.exclusions}
            stale = [e for e in table.exclusions if e.name not in wanted]
            if stale:
                self._emit(Phase.DROP_EXCLUSIONS, path, DropExclusions(table, tuple(stale)))
                self._update(path, table_utils.remove_items(table, "exclusions", stale))

    def drop_composite_uniques(self) -> None:
        for desired, path in self._existing():
            table = self.tables[path]
            wanted = {u.name for u in desired.uniques}
            stale = [u for u in table.uniques if len(u.column_names) > 1 and u.name not in wanted]
            if stale:
                self._emit(Phase.DROP_UNIQUES, path, DropUniques(table, tuple(stale)))
                self._update(path, table_utils.remove_items(table, "uniques", stale))

    # ------------------------------------------------------------------
    # Renames and new tables
    # ------------------------------------------------------------------

    def rename_columns(self) -> None:
        """Detect a single renamed column per table.

        Best-effort: with equal column counts, exactly one desired column
        and exactly one live column must lack a structural match on the
        other side. Anything more ambiguous becomes a drop plus an add.
        """
        for desired, path in self._existing():
            table = self.tables[path]
            if len(table.columns) != len(desired.columns):
                continue
            new_columns = [
                d for d in desired.columns
                if not any(self._structural_match(live, d) for live in table.columns)
            ]
            old_columns = [
                live for live in table.columns
                if not any(self._structural_match(live, d) for d in desired.columns)
            ]
            if len(new_columns) != 1 or len(old_columns) != 1:
                continue
            old, new = old_columns[0], new_columns[0]
            if old.name == new.name or new.name in table.column_names or old.name in desired.column_names:
                continue

            logger.info(f"Renaming column {old.name} to {new.name} in {path}")
            self._emit(Phase.RENAME_COLUMNS, path, RenameColumn(table, old.name, new.name))
            self._update(path, table_utils.rename_column(table, old.name, new.name))
            for other_path, other in list(self.tables.items()):
                self._update(other_path, table_utils.rename_referenced_column(other, path, old.name, new.name))

    def create_new_tables(self) -> None:
        for desired in self.desired_tables:
            if desired.name in self.tables:
                continue
            table = table_utils.to_table(desired, self.dialect)
            logger.info(f"Creating a new table: {desired.name}")
            self._emit(Phase.CREATE_TABLES, desired.name, CreateTable(table))
            self._update(desired.name, table)

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def drop_removed_columns(self) -> None:
        for desired, path in self._existing():
            removed = [c for c in self.tables[path].columns if desired.find_column(c.name) is None]
            if not removed:
                continue
            logger.info(f"Columns dropped in {path}: {', '.join(c.name for c in removed)}")
            for column in removed:
                self._drop_column_dependents(Phase.DROP_COLUMNS, path, column.name)
            table = self.tables[path]
            self._emit(Phase.DROP_COLUMNS, path, DropColumns(table, tuple(removed)))
            self._update(path, table_utils.drop_columns(table, [c.name for c in removed]))

    def add_new_columns(self) -> None:
        for desired, path in self._existing():
            table = self.tables[path]
            added = [
                table_utils.to_table_column(c, self.dialect)
                for c in desired.columns
                if table.find_column(c.name) is None
            ]
            if not added:
                continue
            logger.info(f"New columns added to {path}: {', '.join(c.name for c in added)}")
            self._emit(Phase.ADD_COLUMNS, path, AddColumns(table, tuple(added)))
            table = table_utils.add_columns(table, added)
            uniques = [
                u for u in desired.uniques
                if len(u.column_names) == 1 and u.column_names[0] in {c.name for c in added if c.is_unique}
            ]
            self._update(path, table_utils.add_items(table, "uniques", uniques))

    def update_primary_keys(self) -> None:
        for desired, path in self._existing():
            table = self.tables[path]
            wanted = desired.primary_columns
            if len(table.primary_columns) == len(wanted) or len(wanted) <= 1:
                continue
            columns = tuple(table_utils.to_table_column(c, self.dialect) for c in wanted)
            self._emit(
                Phase.UPDATE_PRIMARY_KEYS,
                path,
                UpdatePrimaryKey(table, columns, desired.primary_key_name),
            )
            self._update(
                path,
                table_utils.set_primary_columns(table, [c.name for c in wanted], desired.primary_key_name),
            )

    def update_existing_columns(self) -> None:
        """Alter changed columns in place.

        Foreign keys and composite indices or uniques on a changed column are
        dropped and recreated even when only its comment or default changed.
        """
        for desired, path in self._existing():
            changed = self.dialect.find_changed_columns(self.tables[path].columns, desired.columns)
            if not changed:
                continue
            for column in changed:
                live = self.tables[path].find_column(column.name)
                attributes = self.dialect.changed_attributes(live, column)
                logger.info(f"Column {path}.{column.name} changed: {', '.join(attributes)}")
                self._drop_column_dependents(Phase.CHANGE_COLUMNS, path, column.name)

            table = self.tables[path]
            changes = tuple(
                ColumnChange(old=table.find_column(c.name), new=table_utils.to_table_column(c, self.dialect))
                for c in changed
            )
            self._emit(Phase.CHANGE_COLUMNS, path, ChangeColumns(table, changes))
            for change in changes:
                table = table_utils.change_column(
                    table,
                    change.old.name,
                    change.new,
                    self.naming.unique_constraint_name(path, [change.new.name]),
                )
            self._update(path, table)

    # ------------------------------------------------------------------
    # Create phases
    # ------------------------------------------------------------------

    def create_new_indices(self) -> None:
        for desired, path in self._existing():
            table = self.tables[path]
            new = [i for i in desired.indices if i.synchronize and table.find_index(i.name) is None]
            if new:
                logger.info(f"Creating {len(new)} index(es) on {path}")
                self._emit(Phase.CREATE_INDICES, path, CreateIndices(table, tuple(new)))
                self._update(path, table_utils.add_items(table, "indices", new))

    def create_new_checks(self) -> None:
        if not self.dialect.supports_checks:
            return
        for desired, path in self._existing():
            table = self.tables[path]
            present = {c.name for c in table.checks}
            new = [c for c in desired.checks if c.name not in present]
            if new:
                self._emit(Phase.CREATE_CHECKS, path, CreateChecks(table, tuple(new)))
                self._update(path, table_utils.add_items(table, "checks", new))

    def create_composite_uniques(self) -> None:
        for desired, path in self._existing():
            table = self.tables[path]
            present = {u.name for u in table.uniques}
            new = [u for u in desired.uniques if len(u.column_names) > 1 and u.name not in present]
            if new:
                self._emit(Phase.CREATE_UNIQUES, path, CreateUniques(table, tuple(new)))
                self._update(path, table_utils.add_items(table, "uniques", new))

    def create_new_exclusions(self) -> None:
        if not self.dialect.supports_exclusions:
            return
        for desired, path in self._existing():
            table = self.tables[path]
            present = {e.name for e in table.exclusions}
            new = [e for e in desired.exclusions if e.name not in present]
            if new:
                self._emit(Phase.CREATE_EXCLUSIONS, path, CreateExclusions(table, tuple(new)))
                self._update(path, table_utils.add_items(table, "exclusions", new))

    def create_foreign_keys(self) -> None:
        for desired, path in self._existing():
            table = self.tables[path]
            new = [
                fk for fk in desired.foreign_keys
                if not any(fk.matches(live) for live in table.foreign_keys)
            ]
            if new:
                logger.info(f"Creating {len(new)} foreign key(s) on {path}")
                self._emit(Phase.CREATE_FOREIGN_KEYS, path, CreateForeignKeys(table, tuple(new)))
                self._update(path, table_utils.add_items(table, "foreign_keys", new))

    def create_views(self) -> None:
        for view in self.desired_views:
            if any(view.matches(live) for live in self.views):
                continue
            logger.info(f"Creating a new view: {view.name}")
            self._emit(Phase.CREATE_VIEWS, view.name, CreateView(view))
            self.views.append(view)

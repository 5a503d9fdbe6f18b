"""Structural schema models shared by the desired model and live snapshots.

Desired tables (built from declarations) and live tables (loaded from the
database catalog) use the same classes so the differ can compare them
attribute by attribute. All models are frozen; derive a changed copy with
``model_copy(update=...)``.
"""

from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TableKind(str, Enum):
    """What a table represents in the model."""

    REGULAR = "regular"
    JUNCTION = "junction"
    CLOSURE_JUNCTION = "closure-junction"
    VIEW = "view"
    ENTITY_CHILD = "entity-child"


class GenerationStrategy(str, Enum):
    """How a column value is generated by the database."""

    NONE = "none"
    INCREMENT = "increment"
    UUID = "uuid"
    ROWID = "rowid"


class _Spec(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


# ============================================================================
# Columns and constraints
# ============================================================================


class ColumnSpec(_Spec):
    """A single table column.

    On the desired side ``type`` holds the declared (abstract) type name and
    ``default`` may be a zero-argument callable producing the default
    expression. On the live side ``type`` is the canonical catalog name and
    ``default`` is the literal the database reports.
    """

    name: str
    type: str
    length: str | None = None
    precision: int | None = None
    scale: int | None = None
    is_nullable: bool = False
    is_unique: bool = False
    default: Any = None
    generation_strategy: GenerationStrategy = GenerationStrategy.NONE
    is_primary: bool = False
    is_array: bool = False
    enum: tuple[str, ...] | None = None
    enum_name: str | None = None
    spatial_feature_type: str | None = None
    srid: int | None = None
    comment: str | None = None

    @property
    def is_generated(self) -> bool:
        return self.generation_strategy != GenerationStrategy.NONE


class IndexSpec(_Spec):
    """An index; column order matters."""

    name: str
    column_names: tuple[str, ...]
    is_unique: bool = False
    is_spatial: bool = False
    is_fulltext: bool = False
    where: str | None = None
    synchronize: bool = True


class UniqueSpec(_Spec):
    name: str
    column_names: tuple[str, ...]


class CheckSpec(_Spec):
    name: str
    expression: str


class ExclusionSpec(_Spec):
    name: str
    expression: str


class ForeignKeySpec(_Spec):
    """A foreign key from ``column_names`` to ``referenced_table``.

    ``referenced_table`` is the referenced table's path. ``on_delete`` and
    ``on_update`` of ``None`` mean "whatever the database reports" when the
    differ compares actions.
    """

    name: str
    column_names: tuple[str, ...]
    referenced_table: str
    referenced_column_names: tuple[str, ...]
    on_delete: str | None = None
    on_update: str | None = None

    def matches(self, other: "ForeignKeySpec") -> bool:
        """Foreign keys are identified by name and referenced table."""
        return self.name == other.name and self.referenced_table == other.referenced_table


# ============================================================================
# Tables and views
# ============================================================================


class ViewSpec(_Spec):
    """A view identified by name and defining expression."""

    name: str
    expression: str | Callable[[], str]
    schema_name: str | None = None
    database: str | None = None
    synchronize: bool = True

    def resolved_expression(self) -> str:
        """Return the defining query with surrounding whitespace trimmed."""
        expression = self.expression() if callable(self.expression) else self.expression
        return expression.strip()

    def matches(self, other: "ViewSpec") -> bool:
        return self.name == other.name and self.resolved_expression() == other.resolved_expression()


class TableSpec(_Spec):
    """A table with its columns and constraints.

    ``name`` is the table path as built by the dialect (``schema.table`` for
    dialects with schemas). ``entity_name`` records which declaration the
    table came from and is empty for tables loaded from the database.
    ``uniques`` holds single-column uniques too; the columns they cover
    also carry ``is_unique``.
    """

    name: str
    schema_name: str | None = None
    database: str | None = None
    kind: TableKind = TableKind.REGULAR
    synchronize: bool = True
    engine: str | None = None
    without_rowid: bool = False
    entity_name: str = ""
    primary_key_name: str | None = None
    columns: tuple[ColumnSpec, ...] = ()
    indices: tuple[IndexSpec, ...] = ()
    foreign_keys: tuple[ForeignKeySpec, ...] = ()
    uniques: tuple[UniqueSpec, ...] = ()
    checks: tuple[CheckSpec, ...] = ()
    exclusions: tuple[ExclusionSpec, ...] = ()

    @property
    def primary_columns(self) -> tuple[ColumnSpec, ...]:
        return tuple(c for c in self.columns if c.is_primary)

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    def find_column(self, name: str) -> ColumnSpec | None:
        return next((c for c in self.columns if c.name == name), None)

    def find_index(self, name: str) -> IndexSpec | None:
        return next((i for i in self.indices if i.name == name), None)


# ============================================================================
# Desired model and live snapshot
# ============================================================================


class MetadataModel(_Spec):
    """The desired schema, built once per process."""

    tables: tuple[TableSpec, ...] = ()
    views: tuple[ViewSpec, ...] = ()

    @property
    def synchronized_tables(self) -> tuple[TableSpec, ...]:
        return tuple(
            t for t in self.tables
            if t.synchronize and t.kind not in (TableKind.ENTITY_CHILD, TableKind.VIEW)
        )

    @property
    def synchronized_views(self) -> tuple[ViewSpec, ...]:
        return tuple(v for v in self.views if v.synchronize)

    def find_table(self, name: str) -> TableSpec | None:
        return next((t for t in self.tables if t.name == name), None)


class SchemaSnapshot(_Spec):
    """The live schema read at the start of a run."""

    tables: dict[str, TableSpec] = Field(default_factory=dict)
    views: tuple[ViewSpec, ...] = ()

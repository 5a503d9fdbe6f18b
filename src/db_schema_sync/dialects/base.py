"""Dialect capability descriptor.

A ``Dialect`` describes one database backend to the rest of the engine:
how declared column types and defaults are canonicalized, which constraint
kinds the backend supports, whether DDL can run inside a transaction, and
the statement fragments the SQL runner needs. Everything here is a pure
function of its arguments; unknown types pass through unchanged.

Consumers branch on the flags and functions below, never on the concrete
dialect class.
"""

import json
from collections.abc import Iterable
from dataclasses import dataclass

from db_schema_sync.schema.models import ColumnSpec


@dataclass(frozen=True)
class TypeDefaults:
    """Default length/precision/scale applied to columns of one type."""

    length: str | None = None
    precision: int | None = None
    scale: int | None = None


@dataclass(frozen=True)
class MappedDataTypes:
    """Canonical types for columns the engine itself needs.

    Covers audit timestamp columns, optimistic-lock versions, closure-table
    levels, migration bookkeeping and the view metadata side table.
    """

    create_date: str = "timestamp"
    create_date_default: str = "CURRENT_TIMESTAMP"
    create_date_precision: int | None = None
    update_date: str = "timestamp"
    update_date_default: str = "CURRENT_TIMESTAMP"
    update_date_precision: int | None = None
    delete_date: str = "timestamp"
    delete_date_nullable: bool = True
    delete_date_precision: int | None = None
    version: str = "int"
    tree_level: str = "int"
    migration_id: str = "int"
    migration_name: str = "varchar"
    migration_timestamp: str = "bigint"
    metadata_type: str = "varchar"
    metadata_database: str = "varchar"
    metadata_schema: str = "varchar"
    metadata_table: str = "varchar"
    metadata_name: str = "varchar"
    metadata_value: str = "text"


class Dialect:
    """Base descriptor; concrete dialects override class attributes and hooks."""

    name: str = "generic"

    supports_returning: bool = False
    supports_uuid_generation: bool = False
    supports_fulltext_columns: bool = False
    supports_checks: bool = True
    supports_exclusions: bool = False
    # Whether composite uniques on a changed column are dropped before the change.
    supports_composite_unique_drop: bool = True
    transactional_ddl: bool = True
    max_identifier_length: int | None = None
    # Catalog column holding the backend's own type spelling, when it has one.
    catalog_type_column: str | None = None

    quote_char: str = '"'
    type_aliases: dict[str, str] = {}
    spatial_types: frozenset[str] = frozenset()
    data_type_defaults: dict[str, TypeDefaults] = {}
    mapped_data_types: MappedDataTypes = MappedDataTypes()

    # Attributes compared by find_changed_columns, in reporting order.
    column_change_predicates: tuple[str, ...] = (
        "type",
        "length",
        "precision",
        "scale",
        "default",
        "primary",
        "nullable",
        "unique",
        "generated",
    )

    def __init__(self, schema: str | None = None, database: str | None = None):
        self.schema = schema
        self.database = database

    def __repr__(self) -> str:
        return f"{type(self).__name__}(schema={self.schema!r}, database={self.database!r})"

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize_type(self, column: ColumnSpec) -> str:
        """Return the canonical type name the backend reports for ``column``."""
        return self.type_aliases.get(column.type.lower(), column.type)

    def catalog_type(self, sql_type: str) -> str:
        """Map a type read from ``catalog_type_column`` to its canonical name."""
        return sql_type

    def normalize_default(self, column: ColumnSpec) -> str | None:
        """Return the default literal the backend reports for ``column``."""
        value = column.default
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str):
            return f"'{value}'"
        if callable(value):
            return value()
        if isinstance(value, (dict, list, tuple)):
            return f"'{json.dumps(value, separators=(',', ':'))}'"
        return str(value)

    def normalize_is_unique(self, column: ColumnSpec) -> bool:
        """Whether the column carries a single-column unique constraint."""
        return column.is_unique

    def lower_default_value_if_necessary(self, value: str | None) -> str | None:
        """Lowercase everything outside single-quoted literals."""
        if not value:
            return value
        parts = value.split("'")
        return "'".join(
            part if i % 2 == 1 else part.lower() for i, part in enumerate(parts)
        )

    def build_table_name(
        self,
        table_name: str,
        schema: str | None = None,
        database: str | None = None,
    ) -> str:
        """Build the table path used to identify tables across a run."""
        if schema:
            return f"{schema}.{table_name}"
        return table_name

    def type_defaults(self, column: ColumnSpec) -> TypeDefaults:
        return self.data_type_defaults.get(self.normalize_type(column), TypeDefaults())

    def get_column_length(self, column: ColumnSpec) -> str | None:
        if column.length:
            return str(column.length)
        return self.type_defaults(column).length

    @property
    def uuid_generator(self) -> str | None:
        """Expression generating a UUID default, if the backend has one."""
        return None

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------

    def changed_attributes(self, live: ColumnSpec, desired: ColumnSpec) -> list[str]:
        """Names of the compared attributes that differ between two columns."""
        return [
            predicate
            for predicate in self.column_change_predicates
            if getattr(self, f"_{predicate}_changed")(live, desired)
        ]

    def find_changed_columns(
        self,
        live_columns: Iterable[ColumnSpec],
        desired_columns: Iterable[ColumnSpec],
    ) -> list[ColumnSpec]:
        """Return the desired columns whose live counterpart differs."""
        live_by_name = {c.name: c for c in live_columns}
        changed = []
        for desired in desired_columns:
            live = live_by_name.get(desired.name)
            if live is not None and self.changed_attributes(live, desired):
                changed.append(desired)
        return changed

    def _type_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return live.type != self.normalize_type(desired)

    def _length_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return (live.length or None) != (desired.length or None)

    def _array_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return live.is_array != desired.is_array

    def _precision_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return live.precision != desired.precision

    def _scale_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return desired.scale is not None and live.scale != desired.scale

    def _comment_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return (live.comment or None) != (desired.comment or None)

    def _default_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        if live.is_generated:
            return False
        expected = self.lower_default_value_if_necessary(self.normalize_default(desired))
        return expected != self.lower_default_value_if_necessary(live.default)

    def _primary_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return live.is_primary != desired.is_primary

    def _nullable_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return live.is_nullable != desired.is_nullable

    def _unique_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return live.is_unique != self.normalize_is_unique(desired)

    def _enum_name_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return live.enum_name != desired.enum_name

    def _enum_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        if not live.enum or not desired.enum:
            return False
        expected = [str(v) for v in desired.enum]
        return len(live.enum) != len(expected) or not all(v in live.enum for v in expected)

    def _generated_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return live.is_generated != desired.is_generated

    def _spatial_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return (live.spatial_feature_type or "").lower() != (desired.spatial_feature_type or "").lower()

    def _srid_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        return live.srid != desired.srid

    # ------------------------------------------------------------------
    # Statement fragments
    # ------------------------------------------------------------------

    def escape(self, name: str) -> str:
        q = self.quote_char
        return f"{q}{name}{q}"

    def escape_path(self, path: str) -> str:
        """Quote every segment of a dotted table path."""
        return ".".join(self.escape(part) for part in path.split("."))

    def full_column_type(self, column: ColumnSpec) -> str:
        """Render the type of a canonical column for DDL."""
        type_name = column.type
        if column.length:
            type_name += f"({column.length})"
        elif column.precision is not None and column.scale is not None:
            type_name += f"({column.precision},{column.scale})"
        elif column.precision is not None:
            type_name += f"({column.precision})"
        return type_name

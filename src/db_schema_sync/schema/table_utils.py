"""Helpers that derive new ``TableSpec`` values from old ones.

Tables are frozen, so every helper returns a changed copy. The differ uses
them to simulate the effect of each phase on its working state, and the
in-memory test runner uses them to apply DDL.
"""

from collections.abc import Iterable

from db_schema_sync.dialects.base import Dialect
from db_schema_sync.schema.models import ColumnSpec, TableSpec, UniqueSpec


def to_table_column(column: ColumnSpec, dialect: Dialect) -> ColumnSpec:
    """Canonical form of a desired column, as the catalog would report it."""
    return column.model_copy(
        update={
            "type": dialect.normalize_type(column),
            "length": dialect.get_column_length(column),
            "default": dialect.normalize_default(column),
            "is_unique": dialect.normalize_is_unique(column),
        }
    )


def to_table(table: TableSpec, dialect: Dialect) -> TableSpec:
    """Table created for a desired table: everything except foreign keys.

    Foreign keys are created in a later phase, once every referenced table
    exists.
    """
    return table.model_copy(
        update={
            "columns": tuple(to_table_column(c, dialect) for c in table.columns),
            "indices": tuple(i for i in table.indices if i.synchronize),
            "foreign_keys": (),
            "entity_name": "",
        }
    )


def add_items(table: TableSpec, attribute: str, items: Iterable) -> TableSpec:
    """Append constraints (indices, foreign keys, ...) to ``attribute``."""
    return table.model_copy(update={attribute: (*getattr(table, attribute), *items)})


def remove_items(table: TableSpec, attribute: str, items: Iterable) -> TableSpec:
    """Remove constraints from ``attribute`` by name."""
    names = {item.name for item in items}
    return table.model_copy(
        update={attribute: tuple(i for i in getattr(table, attribute) if i.name not in names)}
    )


def add_columns(table: TableSpec, columns: Iterable[ColumnSpec]) -> TableSpec:
    return table.model_copy(update={"columns": (*table.columns, *columns)})


def drop_columns(table: TableSpec, names: Iterable[str]) -> TableSpec:
    """Remove columns along with every constraint that covers one of them."""
    names = set(names)
    update = {"columns": tuple(c for c in table.columns if c.name not in names)}
    for attribute in ("indices", "foreign_keys", "uniques"):
        update[attribute] = tuple(
            item for item in getattr(table, attribute)
            if not names.intersection(item.column_names)
        )
    if not any(c.is_primary for c in update["columns"]):
        update["primary_key_name"] = None
    return table.model_copy(update=update)


def _renamed(names: tuple[str, ...], old_name: str, new_name: str) -> tuple[str, ...]:
    return tuple(new_name if n == old_name else n for n in names)


def rename_column(table: TableSpec, old_name: str, new_name: str) -> TableSpec:
    """Rename a column in the column list and every constraint using it."""
    columns = tuple(
        c.model_copy(update={"name": new_name}) if c.name == old_name else c
        for c in table.columns
    )
    update = {"columns": columns}
    for attribute in ("indices", "foreign_keys", "uniques"):
        update[attribute] = tuple(
            item.model_copy(update={"column_names": _renamed(item.column_names, old_name, new_name)})
            for item in getattr(table, attribute)
        )
    return table.model_copy(update=update)


def rename_referenced_column(
    table: TableSpec,
    referenced_table: str,
    old_name: str,
    new_name: str,
) -> TableSpec:
    """Follow a rename in foreign keys of ``table`` that point at ``referenced_table``."""
    foreign_keys = tuple(
        fk.model_copy(
            update={"referenced_column_names": _renamed(fk.referenced_column_names, old_name, new_name)}
        )
        if fk.referenced_table == referenced_table else fk
        for fk in table.foreign_keys
    )
    return table.model_copy(update={"foreign_keys": foreign_keys})


def change_column(
    table: TableSpec,
    old_name: str,
    column: ColumnSpec,
    unique_name: str | None = None,
) -> TableSpec:
    """Replace a column; keeps the single-column unique list in step.

    ``unique_name`` names the unique constraint added when the column
    becomes unique.
    """
    old = table.find_column(old_name)
    table = table.model_copy(
        update={"columns": tuple(column if c.name == old_name else c for c in table.columns)}
    )
    if old is not None and old.is_unique and not column.is_unique:
        table = table.model_copy(
            update={"uniques": tuple(u for u in table.uniques if u.column_names != (old_name,))}
        )
    elif column.is_unique and not any(u.column_names == (column.name,) for u in table.uniques):
        table = add_items(
            table,
            "uniques",
            [UniqueSpec(name=unique_name or f"UQ_{column.name}", column_names=(column.name,))],
        )
    return table


def set_primary_columns(
    table: TableSpec,
    names: Iterable[str],
    constraint_name: str | None,
) -> TableSpec:
    """Make exactly ``names`` the primary columns of ``table``."""
    names = set(names)
    columns = tuple(c.model_copy(update={"is_primary": c.name in names}) for c in table.columns)
    return table.model_copy(
        update={"columns": columns, "primary_key_name": constraint_name if names else None}
    )

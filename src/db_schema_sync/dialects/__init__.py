"""Dialect capability descriptors.

Usage:
    from db_schema_sync.dialects import get_dialect

    dialect = get_dialect("postgres", schema="app")
    dialect.normalize_type(column)
"""

from typing import Any

from db_schema_sync.dialects.base import Dialect, MappedDataTypes, TypeDefaults
from db_schema_sync.dialects.mysql import MysqlDialect
from db_schema_sync.dialects.postgres import CockroachDialect, PostgresDialect
from db_schema_sync.dialects.sqlite import SqliteDialect
from db_schema_sync.errors import UnsupportedDialectError

DIALECTS: dict[str, type[Dialect]] = {
    "postgres": PostgresDialect,
    "postgresql": PostgresDialect,
    "cockroachdb": CockroachDialect,
    "mysql": MysqlDialect,
    "mariadb": MysqlDialect,
    "sqlite": SqliteDialect,
}


def get_dialect(name: str, **options: Any) -> Dialect:
    """Instantiate the dialect registered under ``name``.

    Args:
        name: Dialect name (case-insensitive), e.g. ``"postgres"``.
        **options: Forwarded to the dialect constructor (``schema``,
            ``database``, and dialect-specific options such as
            ``uuid_extension``).

    Raises:
        UnsupportedDialectError: If no dialect is registered under ``name``.
    """
    try:
        dialect_cls = DIALECTS[name.lower()]
    except KeyError:
        raise UnsupportedDialectError(name, sorted(DIALECTS)) from None
    return dialect_cls(**options)


__all__ = [
    "Dialect",
    "MappedDataTypes",
    "TypeDefaults",
    "PostgresDialect",
    "CockroachDialect",
    "MysqlDialect",
    "SqliteDialect",
    "DIALECTS",
    "get_dialect",
]

"""Query runners that apply schema operations to a database."""

from db_schema_sync.runners.base import QueryRunner
from db_schema_sync.runners.postgres import AsyncPostgresQueryRunner, create_async_engine_pooled
from db_schema_sync.runners.sql import DEFAULT_METADATA_TABLE, SqlQueryRunner, sql_literal

__all__ = [
    "QueryRunner",
    "SqlQueryRunner",
    "AsyncPostgresQueryRunner",
    "create_async_engine_pooled",
    "DEFAULT_METADATA_TABLE",
    "sql_literal",
]

"""SQLite dialect."""

from db_schema_sync.dialects.base import Dialect, MappedDataTypes
from db_schema_sync.schema.models import ColumnSpec, GenerationStrategy


class SqliteDialect(Dialect):
    """SQLite: transactional DDL, no schemas, no UUID generation."""

    name = "sqlite"

    supports_returning = False
    supports_uuid_generation = False
    supports_fulltext_columns = False
    supports_checks = True
    supports_exclusions = False
    transactional_ddl = True
    max_identifier_length = None

    type_aliases = {
        "int": "integer",
        "string": "varchar",
        "timestamp": "datetime",
        "bool": "boolean",
        "uuid": "varchar",
        "simple-array": "text",
        "simple-json": "text",
        "simple-enum": "varchar",
        "bytea": "blob",
    }
    mapped_data_types = MappedDataTypes(
        create_date="datetime",
        create_date_default="datetime('now')",
        update_date="datetime",
        update_date_default="datetime('now')",
        delete_date="datetime",
        version="integer",
        tree_level="integer",
        migration_id="integer",
        migration_name="varchar",
        migration_timestamp="bigint",
        metadata_type="varchar",
        metadata_database="varchar",
        metadata_schema="varchar",
        metadata_table="varchar",
        metadata_name="varchar",
        metadata_value="text",
    )
    column_change_predicates = (
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

    def normalize_default(self, column: ColumnSpec) -> str | None:
        value = column.default
        if value is None:
            return None
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return str(value)
        if callable(value):
            return value()
        if isinstance(value, str):
            return f"'{value}'"
        return str(value)

    def build_table_name(
        self,
        table_name: str,
        schema: str | None = None,
        database: str | None = None,
    ) -> str:
        return table_name

    def _generated_changed(self, live: ColumnSpec, desired: ColumnSpec) -> bool:
        # UUIDs are generated client side, so the catalog never reports them.
        if desired.generation_strategy == GenerationStrategy.UUID:
            return False
        return live.is_generated != desired.is_generated

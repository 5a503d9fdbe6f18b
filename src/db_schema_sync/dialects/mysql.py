"""MySQL / MariaDB dialect."""

from db_schema_sync.dialects.base import Dialect, MappedDataTypes, TypeDefaults
from db_schema_sync.schema.models import ColumnSpec, GenerationStrategy


class MysqlDialect(Dialect):
    """MySQL: no check constraints, no transactional DDL (implicit commits)."""

    name = "mysql"

    supports_returning = False
    supports_uuid_generation = False
    supports_fulltext_columns = True
    supports_checks = False
    supports_exclusions = False
    supports_composite_unique_drop = False
    transactional_ddl = False
    max_identifier_length = 63

    quote_char = "`"
    type_aliases = {
        "integer": "int",
        "varchar": "varchar",
        "uuid": "varchar",
        "timestamp": "datetime",
        "boolean": "tinyint",
        "bool": "tinyint",
        "simple-array": "text",
        "simple-json": "text",
        "simple-enum": "enum",
        "double precision": "double",
        "real": "double",
        "dec": "decimal",
        "numeric": "decimal",
        "fixed": "decimal",
        "nchar": "char",
        "national char": "char",
        "nvarchar": "varchar",
        "national varchar": "varchar",
        "bytea": "blob",
    }
    spatial_types = frozenset({
        "geometry",
        "point",
        "linestring",
        "polygon",
        "multipoint",
        "multilinestring",
        "multipolygon",
        "geometrycollection",
    })
    data_type_defaults = {
        "varchar": TypeDefaults(length="255"),
        "char": TypeDefaults(length="1"),
        "binary": TypeDefaults(length="1"),
        "varbinary": TypeDefaults(length="255"),
        "decimal": TypeDefaults(precision=10, scale=0),
        "float": TypeDefaults(precision=12),
        "double": TypeDefaults(precision=22),
        "int": TypeDefaults(),
        "bigint": TypeDefaults(),
    }
    mapped_data_types = MappedDataTypes(
        create_date="datetime",
        create_date_default="CURRENT_TIMESTAMP(6)",
        create_date_precision=6,
        update_date="datetime",
        update_date_default="CURRENT_TIMESTAMP(6)",
        update_date_precision=6,
        delete_date="datetime",
        delete_date_precision=6,
        version="int",
        tree_level="int",
        migration_id="int",
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
        "comment",
        "default",
        "primary",
        "nullable",
        "unique",
        "enum",
        "generated",
        "spatial",
        "srid",
    )

    def normalize_default(self, column: ColumnSpec) -> str | None:
        value = column.default
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            return "'" + ",".join(str(v) for v in value) + "'"
        if isinstance(value, bool):
            return "1" if value else "0"
        if column.type in ("enum", "simple-enum") or isinstance(value, str):
            return f"'{value}'"
        if isinstance(value, (int, float)):
            return str(value)
        if callable(value):
            return value()
        return str(value)

    def get_column_length(self, column: ColumnSpec) -> str | None:
        if column.length:
            return str(column.length)
        if column.generation_strategy == GenerationStrategy.UUID or column.type == "uuid":
            return "36"
        return super().get_column_length(column)

    def build_table_name(
        self,
        table_name: str,
        schema: str | None = None,
        database: str | None = None,
    ) -> str:
        if database:
            return f"{database}.{table_name}"
        return table_name

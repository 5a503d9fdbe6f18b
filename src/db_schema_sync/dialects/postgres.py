"""PostgreSQL and CockroachDB dialects."""

import json

from db_schema_sync.dialects.base import Dialect, MappedDataTypes, TypeDefaults
from db_schema_sync.schema.models import ColumnSpec

UUID_GENERATORS = {
    "uuid-ossp": "uuid_generate_v4()",
    "pgcrypto": "gen_random_uuid()",
}


class PostgresDialect(Dialect):
    """PostgreSQL: transactional DDL, checks, exclusions, RETURNING."""

    name = "postgres"

    supports_returning = True
    supports_uuid_generation = True
    supports_fulltext_columns = False
    supports_checks = True
    supports_exclusions = True
    transactional_ddl = True
    max_identifier_length = 63

    type_aliases = {
        "int": "integer",
        "int4": "integer",
        "varchar": "character varying",
        "timestamp": "timestamp without time zone",
        "timestamptz": "timestamp with time zone",
        "time": "time without time zone",
        "timetz": "time with time zone",
        "bool": "boolean",
        "simple-array": "text",
        "simple-json": "text",
        "simple-enum": "enum",
        "int2": "smallint",
        "int8": "bigint",
        "decimal": "numeric",
        "float8": "double precision",
        "float": "double precision",
        "float4": "real",
        "char": "character",
        "varbit": "bit varying",
        "blob": "bytea",
    }
    spatial_types = frozenset({"geometry", "geography"})
    data_type_defaults = {
        "character": TypeDefaults(length="1"),
        "bit": TypeDefaults(length="1"),
        "interval": TypeDefaults(precision=6),
        "time without time zone": TypeDefaults(precision=6),
        "time with time zone": TypeDefaults(precision=6),
        "timestamp without time zone": TypeDefaults(precision=6),
        "timestamp with time zone": TypeDefaults(precision=6),
    }
    mapped_data_types = MappedDataTypes(
        create_date="timestamp",
        create_date_default="now()",
        update_date="timestamp",
        update_date_default="now()",
        delete_date="timestamp",
        version="int4",
        tree_level="int4",
        migration_id="int4",
        migration_name="varchar",
        migration_timestamp="int8",
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
        "array",
        "precision",
        "scale",
        "comment",
        "default",
        "primary",
        "nullable",
        "unique",
        "enum_name",
        "enum",
        "generated",
        "spatial",
        "srid",
    )

    def __init__(
        self,
        schema: str | None = None,
        database: str | None = None,
        uuid_extension: str = "uuid-ossp",
    ):
        super().__init__(schema=schema, database=database)
        if uuid_extension not in UUID_GENERATORS:
            raise ValueError(
                f"Unknown uuid_extension '{uuid_extension}'. "
                f"Expected one of: {', '.join(UUID_GENERATORS)}"
            )
        self.uuid_extension = uuid_extension

    def normalize_default(self, column: ColumnSpec) -> str | None:
        value = column.default
        if value is None:
            return None
        if column.is_array and isinstance(value, (list, tuple)):
            return "'{" + ",".join(str(v) for v in value) + "}'"
        if isinstance(value, bool):
            return "true" if value else "false"
        if column.type in ("enum", "simple-enum") or isinstance(value, (int, float, str)):
            return f"'{value}'"
        if callable(value):
            return value()
        if isinstance(value, (dict, list, tuple)):
            return f"'{json.dumps(value, separators=(',', ':'))}'"
        return str(value)

    @property
    def uuid_generator(self) -> str:
        return UUID_GENERATORS[self.uuid_extension]

    def full_column_type(self, column: ColumnSpec) -> str:
        type_name = column.type
        precision = f"({column.precision})" if column.precision is not None else ""
        if type_name == "timestamp with time zone":
            type_name = f"TIMESTAMP{precision} WITH TIME ZONE"
        elif type_name == "timestamp without time zone":
            type_name = f"TIMESTAMP{precision}"
        elif type_name == "time with time zone":
            type_name = f"TIME{precision} WITH TIME ZONE"
        elif type_name == "time without time zone":
            type_name = f"TIME{precision}"
        elif type_name in self.spatial_types:
            if column.spatial_feature_type or column.srid:
                srid = f",{column.srid}" if column.srid else ""
                type_name = f"{type_name}({column.spatial_feature_type or 'geometry'}{srid})"
        else:
            type_name = super().full_column_type(column)
        if column.is_array:
            type_name += " array"
        return type_name


class CockroachDialect(PostgresDialect):
    """CockroachDB speaks the Postgres protocol but runs schema changes
    asynchronously, so a plan cannot be wrapped in one transaction."""

    name = "cockroachdb"

    supports_exclusions = False
    transactional_ddl = False
    # information_schema reports Postgres spellings; crdb_sql_type reports ours.
    catalog_type_column = "crdb_sql_type"

    type_aliases = {
        "int": "int8",
        "integer": "int8",
        "int64": "int8",
        "bigint": "int8",
        "int4": "int4",
        "smallint": "int2",
        "int2": "int2",
        "string": "text",
        "varchar": "varchar",
        "character varying": "varchar",
        "char varying": "varchar",
        "timestamp": "timestamp",
        "timestamp without time zone": "timestamp",
        "timestamptz": "timestamptz",
        "timestamp with time zone": "timestamptz",
        "time": "time",
        "time without time zone": "time",
        "boolean": "bool",
        "simple-array": "text",
        "simple-json": "text",
        "simple-enum": "enum",
        "decimal": "decimal",
        "numeric": "decimal",
        "float": "float8",
        "double precision": "float8",
        "real": "float4",
        "blob": "bytes",
        "bytea": "bytes",
    }
    data_type_defaults = {
        "char": TypeDefaults(length="1"),
    }
    mapped_data_types = MappedDataTypes(
        create_date="timestamptz",
        create_date_default="now()",
        update_date="timestamptz",
        update_date_default="now()",
        delete_date="timestamptz",
        version="int8",
        tree_level="int8",
        migration_id="int8",
        migration_name="varchar",
        migration_timestamp="int8",
        metadata_type="varchar",
        metadata_database="varchar",
        metadata_schema="varchar",
        metadata_table="varchar",
        metadata_name="varchar",
        metadata_value="string",
    )

    @property
    def uuid_generator(self) -> str:
        return "gen_random_uuid()"

    def catalog_type(self, sql_type: str) -> str:
        """Canonical name for a ``crdb_sql_type`` such as ``VARCHAR(50)`` or ``INT8[]``."""
        name = sql_type.lower().split(" collate ")[0].removesuffix("[]")
        name = name.split("(")[0].strip()
        return self.type_aliases.get(name, name)

"""db-schema-sync: Declarative database schema synchronization.

Builds a normalized model from entity declarations, diffs it against the
live database and applies the difference as phase-ordered DDL.

Usage:
    from db_schema_sync import MetadataBuilder, SchemaSynchronizer, get_dialect
    from db_schema_sync import EntityDeclaration, ColumnDeclaration
    from db_schema_sync import create_synchronizer, load_db_config
"""

__version__ = "0.1.0"

# Errors
from db_schema_sync.errors import (
    CapabilityError,
    ExecutionError,
    MissingPrimaryColumnError,
    PartialSyncError,
    ReferencedColumnNotFoundError,
    ResolutionError,
    RunnerReleasedError,
    SchemaSyncError,
    TransactionAlreadyStartedError,
    TransactionNotStartedError,
    UnknownEntityError,
    UnsupportedDialectError,
)

# Dialects
from db_schema_sync.dialects import Dialect, get_dialect

# Metadata
from db_schema_sync.metadata import (
    CheckDeclaration,
    ColumnDeclaration,
    DefaultNamingStrategy,
    EntityDeclaration,
    ExclusionDeclaration,
    IndexDeclaration,
    InheritanceDeclaration,
    JoinColumnDeclaration,
    JoinTableDeclaration,
    MetadataBuilder,
    NamingStrategy,
    RelationDeclaration,
    TreeDeclaration,
    UniqueDeclaration,
    ViewDeclaration,
    sql_expression,
    validate_model,
)

# Schema models
from db_schema_sync.schema.models import (
    ColumnSpec,
    MetadataModel,
    SchemaSnapshot,
    TableSpec,
    ViewSpec,
)

# Runners
from db_schema_sync.runners import AsyncPostgresQueryRunner, QueryRunner, SqlQueryRunner

# Planning and execution
from db_schema_sync.schema.differ import SchemaDiffer
from db_schema_sync.schema.operations import Phase, SyncPlan
from db_schema_sync.schema.snapshot import SnapshotLoader
from db_schema_sync.schema.synchronizer import SchemaSynchronizer, SyncResult, SyncState

# Config and factory
from db_schema_sync.config import DatabaseConfig, DatabaseProfile, SyncSettings, load_db_config
from db_schema_sync.factory import ProfileNotFoundError, create_synchronizer, resolve_url

__all__ = [
    # Errors
    "SchemaSyncError",
    "ResolutionError",
    "MissingPrimaryColumnError",
    "ReferencedColumnNotFoundError",
    "UnknownEntityError",
    "CapabilityError",
    "UnsupportedDialectError",
    "ExecutionError",
    "PartialSyncError",
    "RunnerReleasedError",
    "TransactionAlreadyStartedError",
    "TransactionNotStartedError",
    # Dialects
    "Dialect",
    "get_dialect",
    # Metadata
    "MetadataBuilder",
    "NamingStrategy",
    "DefaultNamingStrategy",
    "sql_expression",
    "validate_model",
    "EntityDeclaration",
    "ColumnDeclaration",
    "RelationDeclaration",
    "JoinColumnDeclaration",
    "JoinTableDeclaration",
    "IndexDeclaration",
    "UniqueDeclaration",
    "CheckDeclaration",
    "ExclusionDeclaration",
    "TreeDeclaration",
    "InheritanceDeclaration",
    "ViewDeclaration",
    # Schema models
    "ColumnSpec",
    "TableSpec",
    "ViewSpec",
    "MetadataModel",
    "SchemaSnapshot",
    # Runners
    "QueryRunner",
    "SqlQueryRunner",
    "AsyncPostgresQueryRunner",
    # Planning and execution
    "SchemaDiffer",
    "SnapshotLoader",
    "SchemaSynchronizer",
    "SyncPlan",
    "SyncResult",
    "SyncState",
    "Phase",
    # Config and factory
    "load_db_config",
    "DatabaseConfig",
    "DatabaseProfile",
    "SyncSettings",
    "create_synchronizer",
    "resolve_url",
    "ProfileNotFoundError",
]

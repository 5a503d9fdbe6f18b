"""Schema models, diffing and synchronization.

Only the structural models are re-exported here; import the differ,
operations and synchronizer from their modules (or from the top-level
package).
"""

from db_schema_sync.schema.models import (
    CheckSpec,
    ColumnSpec,
    ExclusionSpec,
    ForeignKeySpec,
    GenerationStrategy,
    IndexSpec,
    MetadataModel,
    SchemaSnapshot,
    TableKind,
    TableSpec,
    UniqueSpec,
    ViewSpec,
)

__all__ = [
    "CheckSpec",
    "ColumnSpec",
    "ExclusionSpec",
    "ForeignKeySpec",
    "GenerationStrategy",
    "IndexSpec",
    "MetadataModel",
    "SchemaSnapshot",
    "TableKind",
    "TableSpec",
    "UniqueSpec",
    "ViewSpec",
]

"""Capability validation of a built model against its target dialect."""

from db_schema_sync.dialects.base import Dialect
from db_schema_sync.errors import CapabilityError
from db_schema_sync.schema.models import MetadataModel


def validate_model(model: MetadataModel, dialect: Dialect) -> None:
    """Reject declarations the dialect cannot express.

    Runs before any snapshot is taken, so a failure never leaves DDL behind.

    Raises:
        CapabilityError: A check, exclusion or fulltext index is declared for
            a dialect without support for it.
    """
    for table in model.synchronized_tables:
        if table.checks and not dialect.supports_checks:
            raise CapabilityError(dialect.name, "Check constraint", table.name)
        if table.exclusions and not dialect.supports_exclusions:
            raise CapabilityError(dialect.name, "Exclusion constraint", table.name)
        if any(i.is_fulltext for i in table.indices) and not dialect.supports_fulltext_columns:
            raise CapabilityError(dialect.name, "Fulltext index", table.name)

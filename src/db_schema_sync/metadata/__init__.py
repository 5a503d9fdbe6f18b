"""Declarations, naming and the metadata model builder."""

from db_schema_sync.metadata.builder import MetadataBuilder, sql_expression
from db_schema_sync.metadata.declarations import (
    CheckDeclaration,
    ColumnDeclaration,
    EntityDeclaration,
    ExclusionDeclaration,
    IndexDeclaration,
    InheritanceDeclaration,
    JoinColumnDeclaration,
    JoinTableDeclaration,
    RelationDeclaration,
    TreeDeclaration,
    UniqueDeclaration,
    ViewDeclaration,
)
from db_schema_sync.metadata.naming import DefaultNamingStrategy, NamingStrategy, shorten, snake_case
from db_schema_sync.metadata.validator import validate_model

__all__ = [
    "MetadataBuilder",
    "sql_expression",
    "validate_model",
    "CheckDeclaration",
    "ColumnDeclaration",
    "EntityDeclaration",
    "ExclusionDeclaration",
    "IndexDeclaration",
    "InheritanceDeclaration",
    "JoinColumnDeclaration",
    "JoinTableDeclaration",
    "RelationDeclaration",
    "TreeDeclaration",
    "UniqueDeclaration",
    "ViewDeclaration",
    "DefaultNamingStrategy",
    "NamingStrategy",
    "shorten",
    "snake_case",
]

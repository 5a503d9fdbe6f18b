"""Raw model declarations consumed by ``MetadataBuilder``.

Declarations are what an application hands to the engine: entities with
their columns, relations, indices and constraints, plus views. They hold
property names and abstract types; the builder resolves them into tables.

Usage:
    from db_schema_sync.metadata.declarations import (
        ColumnDeclaration, EntityDeclaration, RelationDeclaration,
    )

    post = EntityDeclaration(
        name="Post",
        columns=[
            ColumnDeclaration(property_name="id", primary=True, generated="increment"),
            ColumnDeclaration(property_name="title", type=str, length=200),
        ],
        relations=[
            RelationDeclaration(property_name="author", kind="many-to-one", target="User"),
        ],
    )
"""

from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from db_schema_sync.schema.models import GenerationStrategy

ColumnMode = Literal[
    "regular",
    "create-date",
    "update-date",
    "delete-date",
    "version",
    "tree-level",
]

RelationKind = Literal["many-to-one", "one-to-one", "one-to-many", "many-to-many"]


class _Declaration(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")


# ============================================================================
# Columns
# ============================================================================


class ColumnDeclaration(_Declaration):
    """A declared column.

    ``type`` is either an abstract type name (``"varchar"``, ``"int"``,
    ``"timestamptz"`` ...) or a Python type (``int``, ``str``, ``datetime``,
    an ``enum.Enum`` subclass ...). ``default`` may be a literal or a
    zero-argument callable returning a raw SQL expression.
    """

    property_name: str
    type: Any = None
    name: str | None = None
    mode: ColumnMode = "regular"
    length: int | str | None = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool = False
    unique: bool = False
    index: bool = False
    primary: bool = False
    generated: GenerationStrategy = GenerationStrategy.NONE
    default: Any = None
    array: bool = False
    enum: list[Any] | None = None
    enum_name: str | None = None
    spatial_feature_type: str | None = None
    srid: int | None = None
    comment: str | None = None


# ============================================================================
# Relations
# ============================================================================


class JoinColumnDeclaration(_Declaration):
    name: str | None = None
    referenced_column_name: str | None = None


class JoinTableDeclaration(_Declaration):
    name: str | None = None
    join_columns: list[JoinColumnDeclaration] = Field(default_factory=list)
    inverse_join_columns: list[JoinColumnDeclaration] = Field(default_factory=list)
    schema_name: str | None = None
    database: str | None = None


class RelationDeclaration(_Declaration):
    """A relation to another entity.

    ``many-to-one`` relations always own their join columns. A
    ``one-to-one`` relation owns them only when ``join_columns`` is given,
    and a ``many-to-many`` relation owns the junction table only when
    ``join_table`` is given.
    """

    property_name: str
    kind: RelationKind
    target: str
    inverse_side: str | None = None
    join_columns: list[JoinColumnDeclaration] | None = None
    join_table: JoinTableDeclaration | None = None
    nullable: bool = True
    primary: bool = False
    on_delete: str | None = None
    on_update: str | None = None
    create_foreign_key_constraints: bool = True

    @property
    def is_owning(self) -> bool:
        if self.kind == "many-to-one":
            return True
        if self.kind == "one-to-one":
            return self.join_columns is not None
        if self.kind == "many-to-many":
            return self.join_table is not None
        return False


# ============================================================================
# Indices and constraints
# ============================================================================


class IndexDeclaration(_Declaration):
    columns: list[str]
    name: str | None = None
    unique: bool = False
    spatial: bool = False
    fulltext: bool = False
    where: str | None = None
    synchronize: bool = True


class UniqueDeclaration(_Declaration):
    columns: list[str]
    name: str | None = None


class CheckDeclaration(_Declaration):
    expression: str
    name: str | None = None


class ExclusionDeclaration(_Declaration):
    expression: str
    name: str | None = None


# ============================================================================
# Entities and views
# ============================================================================


class TreeDeclaration(_Declaration):
    """Closure-table tree options for an entity."""

    type: Literal["closure-table"] = "closure-table"
    closure_table_name: str | None = None
    ancestor_column_suffix: str = "_ancestor"
    descendant_column_suffix: str = "_descendant"


class InheritanceDeclaration(_Declaration):
    """Single-table inheritance root; children store rows in this table."""

    pattern: Literal["STI"] = "STI"
    column: ColumnDeclaration = Field(
        default_factory=lambda: ColumnDeclaration(property_name="type", type="varchar")
    )


class EntityDeclaration(_Declaration):
    """A declared entity.

    ``parent`` names the entity this one extends. If the parent declares
    ``inheritance`` the child is stored in the parent's table; otherwise the
    parent's columns and relations are copied into the child's own table.
    ``abstract`` entities only exist to be extended and get no table.
    """

    name: str
    table_name: str | None = None
    schema_name: str | None = None
    database: str | None = None
    columns: list[ColumnDeclaration] = Field(default_factory=list)
    relations: list[RelationDeclaration] = Field(default_factory=list)
    indices: list[IndexDeclaration] = Field(default_factory=list)
    uniques: list[UniqueDeclaration] = Field(default_factory=list)
    checks: list[CheckDeclaration] = Field(default_factory=list)
    exclusions: list[ExclusionDeclaration] = Field(default_factory=list)
    tree: TreeDeclaration | None = None
    inheritance: InheritanceDeclaration | None = None
    parent: str | None = None
    abstract: bool = False
    synchronize: bool = True
    engine: str | None = None
    without_rowid: bool = False


class ViewDeclaration(_Declaration):
    name: str
    expression: str | Callable[[], str]
    view_name: str | None = None
    schema_name: str | None = None
    database: str | None = None
    columns: list[ColumnDeclaration] = Field(default_factory=list)
    synchronize: bool = True

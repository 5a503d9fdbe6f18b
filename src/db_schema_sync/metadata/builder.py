"""Build the desired ``MetadataModel`` from declarations.

The builder runs one deterministic pass over a complete set of
declarations: it resolves inheritance, names tables, converts column
declarations into ``ColumnSpec``s, derives join columns and foreign keys
from relations, synthesizes junction tables for many-to-many relations
and closure tables for tree entities, and finally applies the dialect's
type defaults. The result is immutable.

Usage:
    from db_schema_sync.dialects import get_dialect
    from db_schema_sync.metadata.builder import MetadataBuilder

    builder = MetadataBuilder(get_dialect("postgres"))
    model = builder.build(entities, views)
"""

import enum
import hashlib
import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from db_schema_sync.dialects.base import Dialect
from db_schema_sync.errors import (
    MissingPrimaryColumnError,
    ReferencedColumnNotFoundError,
    UnknownEntityError,
)
from db_schema_sync.metadata.declarations import (
    ColumnDeclaration,
    EntityDeclaration,
    JoinColumnDeclaration,
    RelationDeclaration,
    ViewDeclaration,
)
from db_schema_sync.metadata.naming import DefaultNamingStrategy, NamingStrategy, shorten
from db_schema_sync.schema.models import (
    CheckSpec,
    ColumnSpec,
    ExclusionSpec,
    ForeignKeySpec,
    GenerationStrategy,
    IndexSpec,
    MetadataModel,
    TableKind,
    TableSpec,
    UniqueSpec,
    ViewSpec,
)

logger = logging.getLogger(__name__)

PYTHON_TYPE_NAMES: dict[type, str] = {
    int: "int",
    str: "varchar",
    float: "float",
    bool: "boolean",
    bytes: "blob",
    datetime: "timestamp",
    date: "date",
    time: "time",
    timedelta: "interval",
    Decimal: "decimal",
    uuid.UUID: "uuid",
    dict: "simple-json",
    list: "simple-array",
}


def sql_expression(value: str) -> Callable[[], str]:
    """Wrap a raw SQL expression as a deferred column default."""

    def expression() -> str:
        return value

    expression.__name__ = f"sql({value})"
    return expression


@dataclass
class _Column:
    property_name: str
    spec: ColumnSpec


@dataclass
class _Table:
    """Mutable work-in-progress table for one declaration."""

    entity_name: str
    table_name: str
    path: str
    kind: TableKind
    schema_name: str | None
    database: str | None
    synchronize: bool = True
    engine: str | None = None
    without_rowid: bool = False
    columns: list[_Column] = field(default_factory=list)
    indices: list[IndexSpec] = field(default_factory=list)
    uniques: list[UniqueSpec] = field(default_factory=list)
    foreign_keys: list[ForeignKeySpec] = field(default_factory=list)
    checks: list[CheckSpec] = field(default_factory=list)
    exclusions: list[ExclusionSpec] = field(default_factory=list)

    def find(self, property_name: str) -> _Column | None:
        return next((c for c in self.columns if c.property_name == property_name), None)

    def find_by_name(self, column_name: str) -> _Column | None:
        return next((c for c in self.columns if c.spec.name == column_name), None)

    @property
    def primary_columns(self) -> list[_Column]:
        return [c for c in self.columns if c.spec.is_primary]


class MetadataBuilder:
    """Turn declarations into an immutable ``MetadataModel``.

    Args:
        dialect: Target dialect; supplies table paths, identifier limits,
            mapped data types and type defaults.
        naming_strategy: Identifier naming. Defaults to
            ``DefaultNamingStrategy``.
        entity_prefix: Prefix added to every generated table name.
    """

    def __init__(
        self,
        dialect: Dialect,
        naming_strategy: NamingStrategy | None = None,
        entity_prefix: str = "",
    ):
        self.dialect = dialect
        self.naming = naming_strategy or DefaultNamingStrategy()
        self.entity_prefix = entity_prefix

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(
        self,
        entities: Iterable[EntityDeclaration],
        views: Iterable[ViewDeclaration] = (),
    ) -> MetadataModel:
        """Resolve ``entities`` and ``views`` into a ``MetadataModel``.

        Raises:
            UnknownEntityError: A relation target or parent is not declared.
            MissingPrimaryColumnError: A regular table has no primary column.
            ReferencedColumnNotFoundError: A join column or constraint names
                a column that does not exist.
        """
        declarations = {entity.name: entity for entity in entities}
        self._check_references(declarations)
        self._declarations = declarations
        self._tables: dict[str, _Table] = {}
        self._relations_done: set[str] = set()

        for entity in declarations.values():
            if entity.abstract or self._sti_root(entity) is not entity:
                continue
            self._tables[entity.name] = self._create_entity_table(entity)

        for name in list(self._tables):
            self._resolve_relations(name, visiting=set())

        for table in self._tables.values():
            if table.kind == TableKind.REGULAR and not table.primary_columns:
                raise MissingPrimaryColumnError(table.entity_name)

        for name, table in list(self._tables.items()):
            self._add_declared_constraints(table, self._declarations[name])

        extra_tables: list[_Table] = []
        for name, table in self._tables.items():
            entity = self._declarations[name]
            for relation in self._effective_relations(entity, include_sti_children=True):
                if relation.kind == "many-to-many" and relation.is_owning:
                    extra_tables.append(self._create_junction_table(entity, table, relation))
            if entity.tree is not None:
                extra_tables.append(self._create_closure_table(entity, table))

        child_tables = [
            self._create_child_table(entity)
            for entity in declarations.values()
            if not entity.abstract and self._sti_root(entity) is not entity
        ]

        view_tables, view_specs = self._build_views(views)

        tables = [
            self._freeze(table)
            for table in [*self._tables.values(), *extra_tables, *child_tables, *view_tables]
        ]
        logger.debug(f"Built metadata model: {len(tables)} tables, {len(view_specs)} views")
        return MetadataModel(tables=tuple(tables), views=tuple(view_specs))

    # ------------------------------------------------------------------
    # Declarations and inheritance
    # ------------------------------------------------------------------

    def _check_references(self, declarations: dict[str, EntityDeclaration]) -> None:
        for entity in declarations.values():
            if entity.parent and entity.parent not in declarations:
                raise UnknownEntityError(entity.parent, entity.name)
            for relation in entity.relations:
                if relation.target not in declarations:
                    raise UnknownEntityError(relation.target, f"{entity.name}.{relation.property_name}")

    def _parent(self, entity: EntityDeclaration) -> EntityDeclaration | None:
        return self._declarations[entity.parent] if entity.parent else None

    def _sti_root(self, entity: EntityDeclaration) -> EntityDeclaration:
        """Nearest ancestor (or self) declaring single-table inheritance."""
        current: EntityDeclaration | None = entity
        while current is not None:
            if current.inheritance is not None:
                return current
            current = self._parent(current)
        return entity

    def _sti_children(self, root: EntityDeclaration) -> list[EntityDeclaration]:
        return [
            e for e in self._declarations.values()
            if e is not root and self._sti_root(e) is root
        ]

    def _effective_columns(self, entity: EntityDeclaration) -> list[ColumnDeclaration]:
        parent = self._parent(entity)
        inherited = self._effective_columns(parent) if parent else []
        own_names = {c.property_name for c in entity.columns}
        return [c for c in inherited if c.property_name not in own_names] + list(entity.columns)

    def _effective_relations(
        self,
        entity: EntityDeclaration,
        include_sti_children: bool = False,
    ) -> list[RelationDeclaration]:
        parent = self._parent(entity)
        relations = self._effective_relations(parent) if parent else []
        relations = relations + list(entity.relations)
        if include_sti_children and entity.inheritance is not None:
            for child in self._sti_children(entity):
                relations.extend(child.relations)
        return relations

    # ------------------------------------------------------------------
    # Tables and columns
    # ------------------------------------------------------------------

    def _names(self, given_name: str) -> tuple[str, str]:
        """Return ``(name_without_prefix, prefixed_name)`` within identifier limits."""
        name = given_name
        max_length = self.dialect.max_identifier_length
        if max_length and len(name) > max_length:
            name = shorten(name, separator="_", segment_length=3)
            if len(name) > max_length:
                digest = hashlib.sha1(given_name.encode("utf-8")).hexdigest()[:8]
                name = f"{name[:max_length - 9]}_{digest}"
        prefixed = self.naming.prefix_table_name(self.entity_prefix, name) if self.entity_prefix else name
        return name, prefixed

    def _path(self, table_name: str, schema_name: str | None, database: str | None) -> str:
        return self.dialect.build_table_name(
            table_name,
            schema_name or self.dialect.schema,
            database or self.dialect.database,
        )

    def _create_entity_table(self, entity: EntityDeclaration) -> _Table:
        without_prefix, table_name = self._names(self.naming.table_name(entity.name, entity.table_name))
        table = _Table(
            entity_name=entity.name,
            table_name=without_prefix,
            path=self._path(table_name, entity.schema_name, entity.database),
            kind=TableKind.REGULAR,
            schema_name=entity.schema_name or self.dialect.schema,
            database=entity.database or self.dialect.database,
            synchronize=entity.synchronize,
            engine=entity.engine,
            without_rowid=entity.without_rowid,
        )
        declarations = self._effective_columns(entity)
        if entity.inheritance is not None:
            declarations.append(entity.inheritance.column)
            for child in self._sti_children(entity):
                declarations.extend(child.columns)
        for declaration in declarations:
            if table.find(declaration.property_name) is None:
                table.columns.append(_Column(declaration.property_name, self._column_spec(declaration)))
        return table

    def _create_child_table(self, entity: EntityDeclaration) -> _Table:
        root_table = self._tables[self._sti_root(entity).name]
        table = _Table(
            entity_name=entity.name,
            table_name=root_table.table_name,
            path=root_table.path,
            kind=TableKind.ENTITY_CHILD,
            schema_name=root_table.schema_name,
            database=root_table.database,
            synchronize=entity.synchronize,
        )
        names = {c.property_name for c in self._effective_columns(entity)}
        names.add(self._sti_root(entity).inheritance.column.property_name)
        table.columns = [c for c in root_table.columns if c.property_name in names]
        return table

    def _resolve_type(self, declaration: ColumnDeclaration) -> tuple[str | None, tuple[str, ...] | None]:
        column_type = declaration.type
        enum_values = None
        if declaration.enum is not None:
            enum_values = tuple(
                str(v.value if isinstance(v, enum.Enum) else v) for v in declaration.enum
            )
        if column_type is None:
            return None, enum_values
        if isinstance(column_type, type) and issubclass(column_type, enum.Enum):
            return "enum", enum_values or tuple(str(m.value) for m in column_type)
        if isinstance(column_type, type):
            return PYTHON_TYPE_NAMES.get(column_type, column_type.__name__.lower()), enum_values
        return str(column_type), enum_values

    def _column_spec(self, declaration: ColumnDeclaration) -> ColumnSpec:
        mapped = self.dialect.mapped_data_types
        type_name, enum_values = self._resolve_type(declaration)
        default: Any = declaration.default
        if isinstance(default, enum.Enum):
            default = default.value
        nullable = declaration.nullable
        precision = declaration.precision

        if declaration.mode == "create-date":
            type_name = type_name or mapped.create_date
            if default is None:
                default = sql_expression(mapped.create_date_default)
            if precision is None:
                precision = mapped.create_date_precision
        elif declaration.mode == "update-date":
            type_name = type_name or mapped.update_date
            if default is None:
                default = sql_expression(mapped.update_date_default)
            if precision is None:
                precision = mapped.update_date_precision
        elif declaration.mode == "delete-date":
            type_name = type_name or mapped.delete_date
            nullable = mapped.delete_date_nullable
            if precision is None:
                precision = mapped.delete_date_precision
        elif declaration.mode == "version":
            type_name = type_name or mapped.version
        elif declaration.mode == "tree-level":
            type_name = type_name or mapped.tree_level

        if type_name is None:
            if declaration.generated == GenerationStrategy.UUID:
                type_name = "uuid"
            elif declaration.generated != GenerationStrategy.NONE:
                type_name = "int"
            elif enum_values is not None:
                type_name = "enum"
            else:
                type_name = "varchar"

        return ColumnSpec(
            name=self.naming.column_name(declaration.property_name, declaration.name),
            type=type_name,
            length=str(declaration.length) if declaration.length is not None else None,
            precision=precision,
            scale=declaration.scale,
            is_nullable=nullable,
            is_unique=declaration.unique,
            default=default,
            generation_strategy=declaration.generated,
            is_primary=declaration.primary,
            is_array=declaration.array,
            enum=enum_values,
            enum_name=declaration.enum_name,
            spatial_feature_type=declaration.spatial_feature_type,
            srid=declaration.srid,
            comment=declaration.comment,
        )

    # ------------------------------------------------------------------
    # Relations
    # ------------------------------------------------------------------

    def _referenced_columns(
        self,
        target: EntityDeclaration,
        target_table: _Table,
        join_columns: list[JoinColumnDeclaration],
    ) -> list[_Column]:
        named = [jc.referenced_column_name for jc in join_columns if jc.referenced_column_name]
        if not named:
            return target_table.primary_columns
        referenced = []
        for property_name in named:
            column = target_table.find(property_name)
            if column is None:
                raise ReferencedColumnNotFoundError(property_name, target.name)
            referenced.append(column)
        return referenced

    def _resolve_relations(self, name: str, visiting: set[str]) -> None:
        """Add join columns and foreign keys for the owning relations of ``name``.

        Targets are resolved first so that relation-derived primary keys are
        available to the tables that reference them.
        """
        if name in self._relations_done or name in visiting:
            return
        visiting.add(name)
        entity = self._declarations[name]
        table = self._tables[name]

        for relation in self._effective_relations(entity, include_sti_children=True):
            if relation.kind not in ("many-to-one", "one-to-one") or not relation.is_owning:
                continue
            target = self._declarations[relation.target]
            target_name = self._sti_root(target).name
            if target_name != name:
                self._resolve_relations(target_name, visiting)
            target_table = self._tables[target_name]
            join_columns = relation.join_columns or []
            referenced = self._referenced_columns(target, target_table, join_columns)

            columns = []
            for ref in referenced:
                join_column = next(
                    (
                        jc for jc in join_columns
                        if jc.name and jc.referenced_column_name in (None, ref.property_name)
                    ),
                    None,
                )
                column_name = (
                    join_column.name if join_column
                    else self.naming.join_column_name(relation.property_name, ref.spec.name)
                )
                existing = table.find_by_name(column_name)
                if existing is None:
                    existing = _Column(
                        column_name,
                        ColumnSpec(
                            name=column_name,
                            type=ref.spec.type,
                            length=ref.spec.length,
                            precision=ref.spec.precision,
                            scale=ref.spec.scale,
                            enum=ref.spec.enum,
                            enum_name=ref.spec.enum_name,
                            is_nullable=relation.nullable,
                            is_primary=relation.primary,
                        ),
                    )
                    table.columns.append(existing)
                columns.append(existing)

            column_names = [c.spec.name for c in columns]
            if relation.kind == "one-to-one":
                self._add_unique(table, column_names, None)
            if relation.create_foreign_key_constraints:
                table.foreign_keys.append(
                    ForeignKeySpec(
                        name=self.naming.foreign_key_name(table.path, column_names),
                        column_names=tuple(column_names),
                        referenced_table=target_table.path,
                        referenced_column_names=tuple(r.spec.name for r in referenced),
                        on_delete=relation.on_delete or "NO ACTION",
                        on_update=relation.on_update or "NO ACTION",
                    )
                )

        visiting.discard(name)
        self._relations_done.add(name)

    # ------------------------------------------------------------------
    # Indices and constraints
    # ------------------------------------------------------------------

    def _column_names(self, table: _Table, entity_name: str, property_names: list[str]) -> list[str]:
        names = []
        for property_name in property_names:
            column = table.find(property_name) or table.find_by_name(property_name)
            if column is None:
                raise ReferencedColumnNotFoundError(property_name, entity_name)
            names.append(column.spec.name)
        return names

    def _add_unique(self, table: _Table, column_names: list[str], name: str | None) -> None:
        if any(list(u.column_names) == column_names for u in table.uniques):
            return
        table.uniques.append(
            UniqueSpec(
                name=name or self.naming.unique_constraint_name(table.path, column_names),
                column_names=tuple(column_names),
            )
        )
        if len(column_names) == 1:
            column = table.find_by_name(column_names[0])
            column.spec = column.spec.model_copy(update={"is_unique": True})

    def _add_declared_constraints(self, table: _Table, entity: EntityDeclaration) -> None:
        sources = [entity, *self._sti_children(entity)] if entity.inheritance else [entity]
        for column in list(table.columns):
            if column.spec.is_unique:
                self._add_unique(table, [column.spec.name], None)
        for declaration in self._effective_columns(entity) + [
            c for child in sources[1:] for c in child.columns
        ]:
            if declaration.index:
                column_name = self.naming.column_name(declaration.property_name, declaration.name)
                table.indices.append(
                    IndexSpec(
                        name=self.naming.index_name(table.path, [column_name]),
                        column_names=(column_name,),
                    )
                )

        for source in sources:
            for index in source.indices:
                names = self._column_names(table, source.name, index.columns)
                table.indices.append(
                    IndexSpec(
                        name=index.name or self.naming.index_name(table.path, names, index.where),
                        column_names=tuple(names),
                        is_unique=index.unique,
                        is_spatial=index.spatial,
                        is_fulltext=index.fulltext,
                        where=index.where,
                        synchronize=index.synchronize,
                    )
                )
            for unique in source.uniques:
                self._add_unique(table, self._column_names(table, source.name, unique.columns), unique.name)
            for check in source.checks:
                table.checks.append(
                    CheckSpec(
                        name=check.name or self.naming.check_constraint_name(table.path, check.expression),
                        expression=check.expression,
                    )
                )
            for exclusion in source.exclusions:
                table.exclusions.append(
                    ExclusionSpec(
                        name=exclusion.name or self.naming.exclusion_constraint_name(table.path, exclusion.expression),
                        expression=exclusion.expression,
                    )
                )

    # ------------------------------------------------------------------
    # Junction and closure tables
    # ------------------------------------------------------------------

    def _junction_column(self, name: str, referenced: ColumnSpec) -> ColumnSpec:
        return ColumnSpec(
            name=name,
            type=referenced.type,
            length=referenced.length,
            precision=referenced.precision,
            scale=referenced.scale,
            enum=referenced.enum,
            enum_name=referenced.enum_name,
            is_nullable=False,
            is_primary=True,
        )

    def _create_junction_table(
        self,
        owner: EntityDeclaration,
        owner_table: _Table,
        relation: RelationDeclaration,
    ) -> _Table:
        join_table = relation.join_table
        inverse = self._declarations[relation.target]
        inverse_table = self._tables[self._sti_root(inverse).name]

        referenced = self._referenced_columns(owner, owner_table, join_table.join_columns)
        inverse_referenced = self._referenced_columns(inverse, inverse_table, join_table.inverse_join_columns)

        given_name = join_table.name or self.naming.join_table_name(
            owner_table.table_name,
            inverse_table.table_name,
            relation.property_name,
            relation.inverse_side or "",
        )
        without_prefix, table_name = self._names(given_name)
        schema_name = join_table.schema_name or owner.schema_name
        database = join_table.database or owner.database
        table = _Table(
            entity_name=given_name,
            table_name=without_prefix,
            path=self._path(table_name, schema_name, database),
            kind=TableKind.JUNCTION,
            schema_name=schema_name or self.dialect.schema,
            database=database or self.dialect.database,
            synchronize=owner.synchronize,
        )

        def column_name(
            join_columns: list[JoinColumnDeclaration],
            ref: _Column,
            naming_fn: Callable[[str, str, str | None], str],
            source_table: _Table,
        ) -> str:
            explicit = next(
                (
                    jc for jc in join_columns
                    if jc.name and jc.referenced_column_name in (None, ref.property_name)
                ),
                None,
            )
            if explicit:
                return explicit.name
            return naming_fn(source_table.table_name, ref.property_name, ref.spec.name)

        owner_names = [
            column_name(join_table.join_columns, ref, self.naming.join_table_column_name, owner_table)
            for ref in referenced
        ]
        inverse_names = [
            column_name(join_table.inverse_join_columns, ref, self.naming.join_table_inverse_column_name, inverse_table)
            for ref in inverse_referenced
        ]
        for i, owner_name in enumerate(list(owner_names)):
            for j, inverse_name in enumerate(inverse_names):
                if owner_name == inverse_name:
                    owner_names[i] = self.naming.join_table_column_duplication_prefix(owner_name, 1)
                    inverse_names[j] = self.naming.join_table_column_duplication_prefix(inverse_name, 2)

        for name, ref in zip(owner_names, referenced):
            table.columns.append(_Column(name, self._junction_column(name, ref.spec)))
        for name, ref in zip(inverse_names, inverse_referenced):
            table.columns.append(_Column(name, self._junction_column(name, ref.spec)))

        if relation.create_foreign_key_constraints:
            for names, target_table, refs in (
                (owner_names, owner_table, referenced),
                (inverse_names, inverse_table, inverse_referenced),
            ):
                table.foreign_keys.append(
                    ForeignKeySpec(
                        name=self.naming.foreign_key_name(table.path, names),
                        column_names=tuple(names),
                        referenced_table=target_table.path,
                        referenced_column_names=tuple(r.spec.name for r in refs),
                        on_delete=relation.on_delete or "CASCADE",
                        on_update=relation.on_update or "NO ACTION",
                    )
                )
        for names in (owner_names, inverse_names):
            table.indices.append(
                IndexSpec(name=self.naming.index_name(table.path, names), column_names=tuple(names))
            )
        return table

    def _create_closure_table(self, entity: EntityDeclaration, entity_table: _Table) -> _Table:
        tree = entity.tree
        given_name = tree.closure_table_name or self.naming.closure_junction_table_name(entity_table.table_name)
        without_prefix, table_name = self._names(given_name)
        table = _Table(
            entity_name=f"{entity.name}Closure",
            table_name=without_prefix,
            path=self._path(table_name, entity.schema_name, entity.database),
            kind=TableKind.CLOSURE_JUNCTION,
            schema_name=entity_table.schema_name,
            database=entity_table.database,
            synchronize=entity.synchronize,
        )
        primaries = entity_table.primary_columns
        ancestors = []
        descendants = []
        for suffix, bucket in ((tree.ancestor_column_suffix, ancestors), (tree.descendant_column_suffix, descendants)):
            for primary in primaries:
                name = f"{primary.spec.name}{suffix}"
                column = _Column(name, self._junction_column(name, primary.spec))
                bucket.append(column)
        table.columns.extend(ancestors)
        table.columns.extend(descendants)

        if any(d.mode == "tree-level" for d in self._effective_columns(entity)):
            table.columns.append(
                _Column(
                    "level",
                    ColumnSpec(
                        name="level",
                        type=self.dialect.mapped_data_types.tree_level,
                        is_nullable=False,
                        default=1,
                    ),
                )
            )

        for bucket in (ancestors, descendants):
            names = [bucket[0].spec.name]
            table.indices.append(IndexSpec(name=self.naming.index_name(table.path, names), column_names=tuple(names)))
        for bucket in (ancestors, descendants):
            names = [c.spec.name for c in bucket]
            table.foreign_keys.append(
                ForeignKeySpec(
                    name=self.naming.foreign_key_name(table.path, names),
                    column_names=tuple(names),
                    referenced_table=entity_table.path,
                    referenced_column_names=tuple(p.spec.name for p in primaries),
                    on_delete="CASCADE",
                    on_update="NO ACTION",
                )
            )
        return table

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def _build_views(self, views: Iterable[ViewDeclaration]) -> tuple[list[_Table], list[ViewSpec]]:
        tables = []
        specs = []
        for view in views:
            without_prefix, view_name = self._names(self.naming.table_name(view.name, view.view_name))
            path = self._path(view_name, view.schema_name, view.database)
            table = _Table(
                entity_name=view.name,
                table_name=without_prefix,
                path=path,
                kind=TableKind.VIEW,
                schema_name=view.schema_name or self.dialect.schema,
                database=view.database or self.dialect.database,
                synchronize=view.synchronize,
            )
            table.columns = [_Column(c.property_name, self._column_spec(c)) for c in view.columns]
            tables.append(table)
            specs.append(
                ViewSpec(
                    name=path,
                    expression=view.expression,
                    schema_name=table.schema_name,
                    database=table.database,
                    synchronize=view.synchronize,
                )
            )
        return tables, specs

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def _with_type_defaults(self, column: ColumnSpec) -> ColumnSpec:
        defaults = self.dialect.type_defaults(column)
        return column.model_copy(
            update={
                "length": self.dialect.get_column_length(column),
                "precision": column.precision if column.precision is not None else defaults.precision,
                "scale": column.scale if column.scale is not None else defaults.scale,
            }
        )

    def _freeze(self, table: _Table) -> TableSpec:
        columns = tuple(self._with_type_defaults(c.spec) for c in table.columns)
        primary_names = [c.name for c in columns if c.is_primary]
        return TableSpec(
            name=table.path,
            schema_name=table.schema_name,
            database=table.database,
            kind=table.kind,
            synchronize=table.synchronize,
            engine=table.engine,
            without_rowid=table.without_rowid,
            entity_name=table.entity_name,
            primary_key_name=(
                self.naming.primary_key_name(table.path, primary_names) if primary_names else None
            ),
            columns=columns,
            indices=tuple(table.indices),
            foreign_keys=tuple(table.foreign_keys),
            uniques=tuple(table.uniques),
            checks=tuple(table.checks),
            exclusions=tuple(table.exclusions),
        )

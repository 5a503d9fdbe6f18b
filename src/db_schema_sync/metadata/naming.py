"""Naming strategies for tables, columns and constraints.

A naming strategy turns declarations into database identifiers. The
builder and the query runner share one instance so that constraint names
generated while planning match the names the runner generates while
executing.
"""

import hashlib
import re
from collections.abc import Sequence
from typing import Protocol


def snake_case(value: str) -> str:
    """Convert ``CamelCase`` / ``mixedCase`` identifiers to ``snake_case``."""
    value = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", value)
    value = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", value)
    return value.replace("-", "_").lower()


def shorten(value: str, separator: str = "__", segment_length: int = 4, term_length: int = 2) -> str:
    """Shorten an identifier segment by segment.

    Each ``separator``-delimited segment keeps its first ``segment_length``
    characters; camelCase segments keep ``term_length`` characters of every
    term instead.

    Example:
        >>> shorten("category_questions_question", separator="_", segment_length=3)
        'cat_que_que'
    """
    short_segments = []
    for segment in value.split(separator):
        terms = re.sub(r"([a-z\xe0-\xff])([A-Z\xc0-\xdf])", r"\1 \2", segment).split(" ")
        length = term_length if len(terms) > 1 else segment_length
        short_segments.append("".join(term[:length] for term in terms))
    return separator.join(short_segments)


def _hash(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


def _bare_table_name(table_or_path: str) -> str:
    return table_or_path.split(".")[-1]


class NamingStrategy(Protocol):
    """Identifier naming used by the metadata builder and query runners."""

    def table_name(self, entity_name: str, user_specified: str | None) -> str: ...

    def column_name(self, property_name: str, user_specified: str | None) -> str: ...

    def join_column_name(self, relation_name: str, referenced_column_name: str) -> str: ...

    def join_table_name(
        self,
        first_table: str,
        second_table: str,
        first_property: str,
        second_property: str,
    ) -> str: ...

    def join_table_column_name(self, table_name: str, property_name: str, column_name: str | None = None) -> str: ...

    def join_table_inverse_column_name(self, table_name: str, property_name: str, column_name: str | None = None) -> str: ...

    def join_table_column_duplication_prefix(self, column_name: str, index: int) -> str: ...

    def closure_junction_table_name(self, original_table_name: str) -> str: ...

    def prefix_table_name(self, prefix: str, table_name: str) -> str: ...

    def primary_key_name(self, table: str, column_names: Sequence[str]) -> str: ...

    def unique_constraint_name(self, table: str, column_names: Sequence[str]) -> str: ...

    def foreign_key_name(self, table: str, column_names: Sequence[str]) -> str: ...

    def index_name(self, table: str, column_names: Sequence[str], where: str | None = None) -> str: ...

    def check_constraint_name(self, table: str, expression: str) -> str: ...

    def exclusion_constraint_name(self, table: str, expression: str) -> str: ...


class DefaultNamingStrategy:
    """snake_case identifiers and hashed constraint names.

    Constraint names are a fixed prefix plus a SHA-1 digest of the bare table
    name and the sorted column names, so they are stable across runs and
    short enough for every supported backend.
    """

    def table_name(self, entity_name: str, user_specified: str | None) -> str:
        return user_specified or snake_case(entity_name)

    def column_name(self, property_name: str, user_specified: str | None) -> str:
        return user_specified or property_name

    def join_column_name(self, relation_name: str, referenced_column_name: str) -> str:
        return snake_case(f"{relation_name}_{referenced_column_name}")

    def join_table_name(
        self,
        first_table: str,
        second_table: str,
        first_property: str,
        second_property: str,
    ) -> str:
        return snake_case(f"{first_table}_{first_property.replace('.', '_')}_{second_table}")

    def join_table_column_name(self, table_name: str, property_name: str, column_name: str | None = None) -> str:
        return snake_case(f"{table_name}_{column_name or property_name}")

    def join_table_inverse_column_name(self, table_name: str, property_name: str, column_name: str | None = None) -> str:
        return self.join_table_column_name(table_name, property_name, column_name)

    def join_table_column_duplication_prefix(self, column_name: str, index: int) -> str:
        return f"{column_name}_{index}"

    def closure_junction_table_name(self, original_table_name: str) -> str:
        return f"{original_table_name}_closure"

    def prefix_table_name(self, prefix: str, table_name: str) -> str:
        return prefix + table_name

    def primary_key_name(self, table: str, column_names: Sequence[str]) -> str:
        key = f"{_bare_table_name(table)}_{'_'.join(sorted(column_names))}"
        return "PK_" + _hash(key)[:27]

    def unique_constraint_name(self, table: str, column_names: Sequence[str]) -> str:
        key = f"{_bare_table_name(table)}_{'_'.join(sorted(column_names))}"
        return "UQ_" + _hash(key)[:27]

    def foreign_key_name(self, table: str, column_names: Sequence[str]) -> str:
        key = f"{_bare_table_name(table)}_{'_'.join(sorted(column_names))}"
        return "FK_" + _hash(key)[:27]

    def index_name(self, table: str, column_names: Sequence[str], where: str | None = None) -> str:
        key = f"{_bare_table_name(table)}_{'_'.join(sorted(column_names))}"
        if where:
            key += f"_{where}"
        return "IDX_" + _hash(key)[:26]

    def check_constraint_name(self, table: str, expression: str) -> str:
        return "CHK_" + _hash(f"{_bare_table_name(table)}_{expression}")[:26]

    def exclusion_constraint_name(self, table: str, expression: str) -> str:
        return "XCL_" + _hash(f"{_bare_table_name(table)}_{expression}")[:26]

"""Naming strategies.

A naming strategy derives table, column and join-column names when a
declaration does not give one explicitly. Explicit names are never passed
through the strategy.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Protocol, runtime_checkable

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


@lru_cache(maxsize=512)
def snake_case(name: str) -> str:
    """Convert ``CamelCase`` or ``camelCase`` to ``snake_case``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


@runtime_checkable
class NamingStrategy(Protocol):
    """Derives database names for declarations without an explicit name."""

    def table_name(self, class_name: str) -> str: ...

    def column_name(self, property_name: str) -> str: ...

    def join_column_name(self, relation_name: str, referenced_column_name: str) -> str: ...

    def join_table_name(self, first_table_name: str, second_table_name: str) -> str: ...


class DefaultNamingStrategy:
    """snake_case table names, property names as column names.

    ``Post`` -> ``post``, ``BlogPost`` -> ``blog_post``, relation ``author``
    referencing ``id`` -> join column ``author_id``.
    """

    def table_name(self, class_name: str) -> str:
        return snake_case(class_name)

    def column_name(self, property_name: str) -> str:
        return property_name

    def join_column_name(self, relation_name: str, referenced_column_name: str) -> str:
        return f"{snake_case(relation_name)}_{referenced_column_name}"

    def join_table_name(self, first_table_name: str, second_table_name: str) -> str:
        return f"{first_table_name}_{second_table_name}"

"""Alias map.

An alias binds a name used in one query's join plan to the metadata of
the entity it selects. Non-root aliases also record the parent alias and
the relation property that produced them, so the aliases of one query
form a tree mirroring the requested joins.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from row_graph.core.exceptions import AliasError
from row_graph.metadata.model import ColumnMetadata, EntityMetadata
from row_graph.metadata.registry import MetadataRegistry


@dataclass(frozen=True, eq=False)
class Alias:
    name: str
    metadata: EntityMetadata
    parent_alias_name: str | None = None
    parent_property_name: str | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_alias_name is None

    def column_key(self, column: ColumnMetadata | str, separator: str = "_") -> str:
        """Row key of ``column`` under this alias: ``<alias><separator><column>``."""
        name = column if isinstance(column, str) else column.database_name
        return f"{self.name}{separator}{name}"

    def get_column_value(
        self, row: dict[str, Any], column: ColumnMetadata | str, separator: str = "_"
    ) -> Any:
        return row.get(self.column_key(column, separator))

    def get_primary_key(self, row: dict[str, Any], separator: str = "_") -> tuple[Any, ...]:
        return tuple(
            row.get(self.column_key(column, separator))
            for column in self.metadata.primary_columns
        )


class AliasMap:
    """Aliases of one query, indexed by name and by parent relation.

    Args:
        registry: Resolves alias targets given as classes or names.
    """

    def __init__(self, registry: MetadataRegistry) -> None:
        self._registry = registry
        self._aliases: dict[str, Alias] = {}
        self._by_parent: dict[tuple[str, str], Alias] = {}
        self._root: Alias | None = None

    def _resolve(self, target: type | str | EntityMetadata) -> EntityMetadata:
        if isinstance(target, EntityMetadata):
            return target
        return self._registry.find(target)

    def _add(self, alias: Alias) -> Alias:
        if alias.name in self._aliases:
            raise AliasError(f"Alias '{alias.name}' is already defined")
        self._aliases[alias.name] = alias
        return alias

    def add_root_alias(self, name: str, target: type | str | EntityMetadata) -> Alias:
        """Add the alias of the selected root entity."""
        if self._root is not None:
            raise AliasError(
                f"Root alias is already '{self._root.name}', cannot add '{name}'"
            )
        alias = self._add(Alias(name, self._resolve(target)))
        self._root = alias
        return alias

    def add_alias(
        self,
        name: str,
        parent_alias_name: str,
        relation_property_name: str,
        target: type | str | EntityMetadata | None = None,
    ) -> Alias:
        """Add an alias joined through ``parent_alias_name.relation_property_name``.

        The alias metadata defaults to the relation's target.

        Raises:
            AliasError: If the parent alias or its relation does not exist,
                or the relation already has an alias.
        """
        parent = self._aliases.get(parent_alias_name)
        if parent is None:
            raise AliasError(f"Parent alias '{parent_alias_name}' is not defined")
        relation = parent.metadata.find_relation(relation_property_name)
        if relation is None:
            raise AliasError(
                f"{parent.metadata.name} has no relation '{relation_property_name}' "
                f"(alias '{parent_alias_name}')"
            )
        slot = (parent_alias_name, relation_property_name)
        if slot in self._by_parent:
            raise AliasError(
                f"Relation '{parent_alias_name}.{relation_property_name}' is already "
                f"joined as '{self._by_parent[slot].name}'"
            )
        metadata = relation.target_metadata if target is None else self._resolve(target)
        alias = self._add(Alias(name, metadata, parent_alias_name, relation_property_name))
        self._by_parent[slot] = alias
        return alias

    @property
    def root_alias(self) -> Alias:
        if self._root is None:
            raise AliasError("Alias map has no root alias")
        return self._root

    def find_by_name(self, name: str) -> Alias | None:
        return self._aliases.get(name)

    def find_by_parent(self, parent_alias_name: str, relation_property_name: str) -> Alias | None:
        return self._by_parent.get((parent_alias_name, relation_property_name))

    def children_of(self, parent_alias_name: str) -> list[Alias]:
        return [
            alias
            for alias in self._aliases.values()
            if alias.parent_alias_name == parent_alias_name
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._aliases

    def __iter__(self) -> Iterator[Alias]:
        return iter(self._aliases.values())

    def __len__(self) -> int:
        return len(self._aliases)

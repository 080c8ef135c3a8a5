"""Row graph hydration.

Rebuilds entity graphs from flat joined result rows. Every alias groups
the rows it receives by primary key; each group becomes one entity and
its rows are handed down to the child aliases, so the recursion follows
the alias tree rather than the relation graph.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, NamedTuple, TypeVar

from row_graph.core.config import DEFAULT_CONFIG, GraphConfig
from row_graph.core.exceptions import HydrationInvariantError, StrictModeViolation
from row_graph.mapping.alias import Alias, AliasMap
from row_graph.mapping.factory import NOT_LOADED, create_entity
from row_graph.metadata.model import RelationMetadata
from row_graph.metadata.registry import MetadataRegistry

if TYPE_CHECKING:
    from row_graph.subscriber.broadcaster import Broadcaster

logger = logging.getLogger(__name__)

T = TypeVar("T")

Row = dict[str, Any]


class _Hydrated(NamedTuple):
    key: tuple[Any, ...]
    entity: Any
    row: Row


class Hydrator(Generic[T]):
    """Graph hydrator.

    Args:
        registry: Built metadata registry.
        config: Alias separator and strict mode. Defaults to GraphConfig().
        broadcaster: Receives AFTER_LOAD for every hydrated root entity.
    """

    def __init__(
        self,
        registry: MetadataRegistry,
        config: GraphConfig | None = None,
        broadcaster: Broadcaster | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or DEFAULT_CONFIG
        self._broadcaster = broadcaster

    @property
    def config(self) -> GraphConfig:
        return self._config

    def hydrate(self, rows: list[Row], alias_map: AliasMap) -> list[T]:
        """Build root entities from ``rows`` in first-appearance order."""
        root = alias_map.root_alias
        if not rows:
            return []

        if self._config.strict:
            self._validate_strict(rows[0], alias_map)

        entities = [hydrated.entity for hydrated in self._build(rows, root, alias_map)]
        logger.debug(
            "Hydrated %d %s entities from %d rows", len(entities), root.metadata.name, len(rows)
        )

        if self._broadcaster is not None and self._config.broadcast_load:
            self._broadcaster.broadcast_load(entities, root.metadata)
        return entities

    def map_many(self, rows: list[Row], alias_map: AliasMap) -> list[T]:
        return self.hydrate(rows, alias_map)

    def mapper(self, alias_map: AliasMap) -> AliasMapper[T]:
        """Bind ``alias_map`` into a Mapper usable by query engines."""
        return AliasMapper(self, alias_map)

    # --- Grouping ---

    def _build(self, rows: list[Row], alias: Alias, alias_map: AliasMap) -> list[_Hydrated]:
        metadata = alias.metadata
        if not metadata.has_primary_key:
            raise HydrationInvariantError(alias.name, metadata.target)

        separator = self._config.alias_separator
        key_columns = [alias.column_key(column, separator) for column in metadata.primary_columns]

        groups: dict[tuple[Any, ...], list[Row]] = {}
        for row in rows:
            key = tuple(row.get(column) for column in key_columns)
            if not alias.is_root and all(value is None for value in key):
                continue
            groups.setdefault(key, []).append(row)

        results: list[_Hydrated] = []
        for key, group in groups.items():
            entity = self._transform(group, alias, alias_map)
            if entity is not None:
                results.append(_Hydrated(key, entity, group[0]))
        return results

    def _transform(self, group: list[Row], alias: Alias, alias_map: AliasMap) -> Any:
        metadata = alias.metadata
        separator = self._config.alias_separator
        representative = group[0]
        key = alias.get_primary_key(representative, separator)

        values: dict[str, Any] = {}
        has_data = False
        for column in metadata.persisted_columns:
            value = representative.get(alias.column_key(column, separator))
            if value is not None:
                values[column.property_name] = value
                has_data = True

        for relation in metadata.relations:
            child_alias = alias_map.find_by_parent(alias.name, relation.property_name)
            if child_alias is None:
                values[relation.property_name] = NOT_LOADED
                continue
            candidates = self._build(group, child_alias, alias_map)
            attached = self._attach(relation, alias, key, representative, child_alias, candidates)
            values[relation.property_name] = attached
            if attached is not None and attached != []:
                has_data = True

        if not has_data and not alias.is_root:
            return None
        return create_entity(metadata.target, values)

    # --- Attachment ---

    def _attach(
        self,
        relation: RelationMetadata,
        alias: Alias,
        key: tuple[Any, ...],
        representative: Row,
        child_alias: Alias,
        candidates: list[_Hydrated],
    ) -> Any:
        separator = self._config.alias_separator

        if relation.has_join_column:
            fk_key = alias.column_key(relation.join_column or "", separator)
            single_key = len(relation.target_metadata.primary_columns) == 1
            if relation.join_column and single_key and fk_key in representative:
                foreign_key = (representative[fk_key],)
                for candidate in candidates:
                    if candidate.key == foreign_key:
                        return candidate.entity
                return None
            return candidates[0].entity if candidates else None

        matched = self._match_inverse(relation, key, child_alias, candidates)
        if relation.is_to_many:
            return [candidate.entity for candidate in matched]
        return matched[0].entity if matched else None

    def _match_inverse(
        self,
        relation: RelationMetadata,
        key: tuple[Any, ...],
        child_alias: Alias,
        candidates: list[_Hydrated],
    ) -> list[_Hydrated]:
        inverse = relation.inverse_relation
        if inverse is None or not inverse.has_join_column or not inverse.join_column:
            return candidates
        if len(key) != 1:
            return candidates

        fk_key = child_alias.column_key(inverse.join_column, self._config.alias_separator)
        return [
            candidate
            for candidate in candidates
            if fk_key not in candidate.row or candidate.row[fk_key] == key[0]
        ]

    # --- Strict mode ---

    def _validate_strict(self, sample_row: Row, alias_map: AliasMap) -> None:
        """Validate that every alias column is present in the rows."""
        row_columns = set(sample_row.keys())
        separator = self._config.alias_separator

        for alias in alias_map:
            for column in alias.metadata.persisted_columns:
                full_col = alias.column_key(column, separator)
                if full_col not in row_columns:
                    raise StrictModeViolation(
                        f"Missing mapped column '{full_col}' for alias "
                        f"'{alias.name}' field '{column.property_name}' "
                        f"in {alias.metadata.name}"
                    )


class AliasMapper(Generic[T]):
    """A Hydrator bound to one alias map, satisfying the Mapper protocol."""

    def __init__(self, hydrator: Hydrator[T], alias_map: AliasMap) -> None:
        self._hydrator = hydrator
        self._alias_map = alias_map

    def map_one(self, row: Row) -> T:
        """Not supported for graphs."""
        raise NotImplementedError(
            "AliasMapper.map_one is not supported. Use map_many for "
            "graph hydration from joined result sets."
        )

    def map_many(self, rows: list[Row]) -> list[T]:
        return self._hydrator.hydrate(rows, self._alias_map)

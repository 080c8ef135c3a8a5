"""Cascade diff planner.

Compares an old entity graph (as last loaded) with a new one (as the
caller wants it stored) and plans the inserts, updates, link changes and
removes that turn one into the other. Entities are identified by their
metadata target and primary key tuple; an entity whose key is entirely
null is always new.

Traversal is root-first with relations in declaration order, so plans
and the first permission violation are deterministic. Relations that
were not loaded are skipped on both sides.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from row_graph.core.enums import CascadeOperation
from row_graph.core.exceptions import CascadeNotAllowedError
from row_graph.mapping.factory import NOT_LOADED
from row_graph.metadata.model import ColumnMetadata, EntityMetadata, RelationMetadata
from row_graph.metadata.registry import MetadataRegistry
from row_graph.persistence.operations import (
    InsertOperation,
    JunctionOperation,
    PersistPlan,
    RemoveOperation,
    UpdateOperation,
)

logger = logging.getLogger(__name__)

Identity = tuple[type, tuple[Any, ...]]


def related_values(relation: RelationMetadata, entity: Any) -> list[Any]:
    """Loaded, non-null related entities of ``entity`` through ``relation``."""
    value = relation.get_value(entity)
    if value is None or value is NOT_LOADED:
        return []
    if relation.is_to_many:
        return [item for item in value if item is not None]
    return [value]


def _is_loaded(relation: RelationMetadata, entity: Any) -> bool:
    return relation.get_value(entity) is not NOT_LOADED


def walk_graph(graph: Any, metadata: EntityMetadata) -> Iterator[tuple[Any, EntityMetadata]]:
    """Yield every entity reachable from ``graph`` once, root first."""
    visited: set[int] = set()
    stack = [(graph, metadata)]
    while stack:
        entity, entity_metadata = stack.pop()
        if id(entity) in visited:
            continue
        visited.add(id(entity))
        yield entity, entity_metadata
        pending = []
        for relation in entity_metadata.relations:
            for related in related_values(relation, entity):
                pending.append((related, relation.target_metadata))
        stack.extend(reversed(pending))


class CascadePlanner:
    """Plans persist operations from two entity graphs.

    Args:
        registry: Built metadata registry, used to find the root metadata
                  when it is not passed explicitly.
    """

    def __init__(self, registry: MetadataRegistry) -> None:
        self._registry = registry

    def _root_metadata(self, graph: Any, metadata: EntityMetadata | None) -> EntityMetadata:
        if metadata is not None:
            return metadata
        return self._registry.find_for(graph)

    # --- Identities ---

    def extract_identities(
        self, graph: Any, metadata: EntityMetadata | None = None
    ) -> set[Identity]:
        """Identities of every entity reachable from ``graph`` with a non-null key."""
        if graph is None:
            return set()
        metadata = self._root_metadata(graph, metadata)
        return {
            entity_metadata.identity_of(entity)
            for entity, entity_metadata in walk_graph(graph, metadata)
            if not entity_metadata.has_empty_id(entity)
        }

    @staticmethod
    def _is_new(entity: Any, metadata: EntityMetadata, known: set[Identity] | frozenset) -> bool:
        return metadata.has_empty_id(entity) or metadata.identity_of(entity) not in known

    # --- Inserts ---

    def plan_inserts(
        self,
        new_graph: Any,
        metadata: EntityMetadata | None = None,
        old_identities: set[Identity] | frozenset = frozenset(),
    ) -> list[InsertOperation]:
        """Plan inserts for entities of ``new_graph`` not in ``old_identities``.

        Raises:
            CascadeNotAllowedError: If a new related entity is reached
                through a relation without cascade-insert.
        """
        if new_graph is None:
            return []
        metadata = self._root_metadata(new_graph, metadata)

        operations: list[InsertOperation] = []
        planned: set[int] = set()
        if self._is_new(new_graph, metadata, old_identities):
            operations.append(InsertOperation(new_graph, metadata))
            planned.add(id(new_graph))
        self._collect_inserts(new_graph, metadata, old_identities, operations, planned, set())
        return operations

    def _collect_inserts(
        self,
        entity: Any,
        metadata: EntityMetadata,
        old_identities: set[Identity] | frozenset,
        operations: list[InsertOperation],
        planned: set[int],
        visited: set[int],
    ) -> None:
        if id(entity) in visited:
            return
        visited.add(id(entity))

        for relation in metadata.relations:
            target_metadata = relation.target_metadata
            for related in related_values(relation, entity):
                if id(related) not in planned and self._is_new(
                    related, target_metadata, old_identities
                ):
                    if not relation.is_cascade_insert:
                        raise CascadeNotAllowedError(relation, CascadeOperation.INSERT.value)
                    operations.append(InsertOperation(related, target_metadata, relation, entity))
                    planned.add(id(related))
                self._collect_inserts(
                    related, target_metadata, old_identities, operations, planned, visited
                )

    # --- Updates ---

    @staticmethod
    def diff_columns(metadata: EntityMetadata, old: Any, new: Any) -> tuple[ColumnMetadata, ...]:
        """Persisted non-primary columns whose values differ.

        Primary columns are skipped because entities are paired by key.
        """
        return tuple(
            column
            for column in metadata.persisted_columns
            if not column.is_primary
            and column.get_value(old) != column.get_value(new)
        )

    def plan_updates(
        self, old_graph: Any, new_graph: Any, metadata: EntityMetadata | None = None
    ) -> list[UpdateOperation]:
        """Plan updates for entities present in both graphs with changed columns.

        Raises:
            CascadeNotAllowedError: If a changed related entity is reached
                through a relation without cascade-update.
        """
        if old_graph is None or new_graph is None:
            return []
        metadata = self._root_metadata(new_graph, metadata)
        if metadata.identity_of(old_graph) != metadata.identity_of(new_graph):
            return []

        operations: list[UpdateOperation] = []
        self._collect_updates(old_graph, new_graph, metadata, None, operations, set())
        return operations

    def _collect_updates(
        self,
        old: Any,
        new: Any,
        metadata: EntityMetadata,
        relation: RelationMetadata | None,
        operations: list[UpdateOperation],
        visited: set[tuple[int, int]],
    ) -> None:
        pair = (id(old), id(new))
        if pair in visited:
            return
        visited.add(pair)

        changed = self.diff_columns(metadata, old, new)
        if changed:
            if relation is not None and not relation.is_cascade_update:
                raise CascadeNotAllowedError(relation, CascadeOperation.UPDATE.value)
            operations.append(
                UpdateOperation(new, metadata, metadata.get_entity_id(new), changed, old, relation)
            )

        for child_relation in metadata.relations:
            new_values = related_values(child_relation, new)
            old_values = related_values(child_relation, old)
            if not new_values or not old_values:
                continue
            target_metadata = child_relation.target_metadata
            old_by_id = {
                target_metadata.get_entity_id(item): item
                for item in old_values
                if not target_metadata.has_empty_id(item)
            }
            for new_related in new_values:
                if target_metadata.has_empty_id(new_related):
                    continue
                old_related = old_by_id.get(target_metadata.get_entity_id(new_related))
                if old_related is None:
                    continue
                self._collect_updates(
                    old_related, new_related, target_metadata, child_relation, operations, visited
                )

    # --- Junctions ---

    def plan_junctions(
        self,
        old_graph: Any,
        new_graph: Any,
        metadata: EntityMetadata | None = None,
        removed: set[Identity] | frozenset = frozenset(),
    ) -> tuple[list[JunctionOperation], list[JunctionOperation]]:
        """Plan link inserts and removes for owning many-to-many relations.

        Inserts come from the new graph, removes from the old one. Every
        link of an old owner that is absent from the new graph, or listed
        in ``removed``, is removed.

        Returns:
            ``(junction_inserts, junction_removes)``.
        """
        root = new_graph if new_graph is not None else old_graph
        if root is None:
            return [], []
        metadata = self._root_metadata(root, metadata)

        old_entities = self._entities_by_identity(old_graph, metadata)
        new_entities = self._entities_by_identity(new_graph, metadata)

        inserts: list[JunctionOperation] = []
        if new_graph is not None:
            for entity, entity_metadata in walk_graph(new_graph, metadata):
                old_entity = None
                if not entity_metadata.has_empty_id(entity):
                    old_entity = old_entities.get(entity_metadata.identity_of(entity))

                for relation in entity_metadata.many_to_many_relations:
                    if not relation.is_owning or not _is_loaded(relation, entity):
                        continue
                    new_related = related_values(relation, entity)
                    if old_entity is None:
                        inserts.extend(JunctionOperation(relation, entity, r) for r in new_related)
                        continue
                    if not _is_loaded(relation, old_entity):
                        continue
                    old_ids = self._related_ids(relation, old_entity)
                    target_metadata = relation.target_metadata
                    for related in new_related:
                        if (
                            target_metadata.has_empty_id(related)
                            or target_metadata.get_entity_id(related) not in old_ids
                        ):
                            inserts.append(JunctionOperation(relation, entity, related))

        removes: list[JunctionOperation] = []
        if old_graph is not None:
            seen: set[Identity] = set()
            for entity, entity_metadata in walk_graph(old_graph, metadata):
                if entity_metadata.has_empty_id(entity):
                    continue
                identity = entity_metadata.identity_of(entity)
                if identity in seen:
                    continue
                seen.add(identity)
                new_entity = None if identity in removed else new_entities.get(identity)

                for relation in entity_metadata.many_to_many_relations:
                    if not relation.is_owning or not _is_loaded(relation, entity):
                        continue
                    if new_entity is not None and not _is_loaded(relation, new_entity):
                        continue
                    new_ids = (
                        self._related_ids(relation, new_entity) if new_entity is not None else set()
                    )
                    target_metadata = relation.target_metadata
                    for related in related_values(relation, entity):
                        if target_metadata.get_entity_id(related) not in new_ids:
                            removes.append(JunctionOperation(relation, entity, related))
        return inserts, removes

    @staticmethod
    def _entities_by_identity(graph: Any, metadata: EntityMetadata) -> dict[Identity, Any]:
        entities: dict[Identity, Any] = {}
        if graph is None:
            return entities
        for entity, entity_metadata in walk_graph(graph, metadata):
            if not entity_metadata.has_empty_id(entity):
                entities.setdefault(entity_metadata.identity_of(entity), entity)
        return entities

    @staticmethod
    def _related_ids(relation: RelationMetadata, entity: Any) -> set[tuple[Any, ...]]:
        target_metadata = relation.target_metadata
        return {
            target_metadata.get_entity_id(related)
            for related in related_values(relation, entity)
            if not target_metadata.has_empty_id(related)
        }

    # --- Removes ---

    def unloaded_relations(
        self, graph: Any, metadata: EntityMetadata | None = None
    ) -> set[tuple[Identity, str]]:
        """``(identity, property name)`` of every relation left NOT_LOADED in ``graph``."""
        if graph is None:
            return set()
        metadata = self._root_metadata(graph, metadata)
        result: set[tuple[Identity, str]] = set()
        for entity, entity_metadata in walk_graph(graph, metadata):
            if entity_metadata.has_empty_id(entity):
                continue
            identity = entity_metadata.identity_of(entity)
            for relation in entity_metadata.relations:
                if not _is_loaded(relation, entity):
                    result.add((identity, relation.property_name))
        return result

    def plan_removes(
        self,
        old_graph: Any,
        metadata: EntityMetadata | None = None,
        new_identities: set[Identity] | frozenset = frozenset(),
        unloaded: set[tuple[Identity, str]] | frozenset = frozenset(),
    ) -> list[RemoveOperation]:
        """Plan removes for entities of ``old_graph`` not in ``new_identities``.

        Entities reached through a relation without cascade-remove are kept
        and their subgraph is not visited. Relations listed in ``unloaded``
        (the new graph did not load them) are not searched for orphans
        unless their owner itself is removed.
        """
        if old_graph is None:
            return []
        metadata = self._root_metadata(old_graph, metadata)

        operations: list[RemoveOperation] = []
        self._collect_removes(
            old_graph, metadata, None, None, new_identities, unloaded, False, operations, set()
        )
        return operations

    def _collect_removes(
        self,
        entity: Any,
        metadata: EntityMetadata,
        relation: RelationMetadata | None,
        parent_id: tuple[Any, ...] | None,
        new_identities: set[Identity] | frozenset,
        unloaded: set[tuple[Identity, str]] | frozenset,
        parent_removed: bool,
        operations: list[RemoveOperation],
        visited: set[int],
    ) -> None:
        if id(entity) in visited:
            return
        visited.add(id(entity))

        identity = metadata.identity_of(entity)
        removed = parent_removed or identity not in new_identities
        entity_id = metadata.get_entity_id(entity)
        if removed:
            if relation is not None and not relation.is_cascade_remove:
                return
            operations.append(RemoveOperation(entity, metadata, entity_id, relation, parent_id))

        for child_relation in metadata.relations:
            if not removed and (identity, child_relation.property_name) in unloaded:
                continue
            for related in related_values(child_relation, entity):
                self._collect_removes(
                    related,
                    child_relation.target_metadata,
                    child_relation,
                    entity_id,
                    new_identities,
                    unloaded,
                    removed,
                    operations,
                    visited,
                )

    # --- Plans ---

    def plan(
        self, old_graph: Any, new_graph: Any, metadata: EntityMetadata | None = None
    ) -> PersistPlan:
        """Plan every operation turning ``old_graph`` into ``new_graph``.

        Either graph may be None: no old graph inserts everything, no new
        graph removes the old root and what its relations cascade to.

        Raises:
            CascadeNotAllowedError: On the first relation that does not
                permit a needed insert or update. Nothing is returned then.
        """
        root = new_graph if new_graph is not None else old_graph
        if root is None:
            return PersistPlan()
        metadata = self._root_metadata(root, metadata)

        old_identities = self.extract_identities(old_graph, metadata)
        new_identities = self.extract_identities(new_graph, metadata)

        inserts = self.plan_inserts(new_graph, metadata, old_identities)
        updates = self.plan_updates(old_graph, new_graph, metadata)
        unloaded = self.unloaded_relations(new_graph, metadata)
        removes = self.plan_removes(old_graph, metadata, new_identities, unloaded)
        removed = {op.metadata.identity_of(op.entity) for op in removes}
        junction_inserts, junction_removes = self.plan_junctions(
            old_graph, new_graph, metadata, removed
        )

        plan = PersistPlan(inserts, updates, removes, junction_inserts, junction_removes)
        logger.debug("Planned %s for %s", plan.summary(), metadata.name)
        return plan

    def plan_removal(self, old_graph: Any, metadata: EntityMetadata | None = None) -> PersistPlan:
        """Plan removal of ``old_graph``'s root and its cascaded relations."""
        return self.plan(old_graph, None, metadata)

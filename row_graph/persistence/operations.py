"""Persist operations and plans.

Operations are immutable records produced by the planner. A PersistPlan
groups the operations of one save or remove call and tracks whether it
has been executed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from row_graph.metadata.model import ColumnMetadata, EntityMetadata, RelationMetadata


class PlanState(Enum):
    PENDING = "pending"
    EXECUTING = "executing"
    EXECUTED = "executed"
    FAILED = "failed"


@dataclass(frozen=True, eq=False)
class InsertOperation:
    entity: Any
    metadata: EntityMetadata
    relation: RelationMetadata | None = None
    parent: Any = None


@dataclass(frozen=True, eq=False)
class UpdateOperation:
    entity: Any
    metadata: EntityMetadata
    entity_id: tuple[Any, ...]
    changed_columns: tuple[ColumnMetadata, ...]
    previous: Any = None
    relation: RelationMetadata | None = None

    @property
    def changed_properties(self) -> tuple[str, ...]:
        return tuple(column.property_name for column in self.changed_columns)


@dataclass(frozen=True, eq=False)
class RemoveOperation:
    """Removal of ``entity``, the last-known snapshot from the old graph."""

    entity: Any
    metadata: EntityMetadata
    entity_id: tuple[Any, ...]
    relation: RelationMetadata | None = None
    parent_id: tuple[Any, ...] | None = None


@dataclass(frozen=True, eq=False)
class JunctionOperation:
    """A link row of an owning many-to-many relation."""

    relation: RelationMetadata
    owner: Any
    related: Any

    @property
    def join_table(self) -> str | None:
        return self.relation.join_table


@dataclass(eq=False)
class PersistPlan:
    inserts: list[InsertOperation] = field(default_factory=list)
    updates: list[UpdateOperation] = field(default_factory=list)
    removes: list[RemoveOperation] = field(default_factory=list)
    junction_inserts: list[JunctionOperation] = field(default_factory=list)
    junction_removes: list[JunctionOperation] = field(default_factory=list)
    state: PlanState = PlanState.PENDING

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def summary(self) -> str:
        return (
            f"{len(self.inserts)} inserts, {len(self.updates)} updates, "
            f"{len(self.removes)} removes, {len(self.junction_inserts)} junction inserts, "
            f"{len(self.junction_removes)} junction removes"
        )

    def __len__(self) -> int:
        """Number of planned operations."""
        return (
            len(self.inserts)
            + len(self.updates)
            + len(self.removes)
            + len(self.junction_inserts)
            + len(self.junction_removes)
        )

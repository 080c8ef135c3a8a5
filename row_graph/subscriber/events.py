"""Lifecycle events and the subscriber protocol."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Union

from row_graph.core.enums import LifecyclePhase
from row_graph.metadata.model import ColumnMetadata, EntityMetadata


class _AnyEntity:
    def __repr__(self) -> str:
        return "ANY"


ANY: Any = _AnyEntity()
"""``listen_to()`` result subscribing to every entity type."""


@dataclass(frozen=True, eq=False)
class InsertEvent:
    entity: Any
    metadata: EntityMetadata


@dataclass(frozen=True, eq=False)
class UpdateEvent:
    entity: Any
    metadata: EntityMetadata
    updated_columns: tuple[ColumnMetadata, ...] = ()

    @property
    def updated_properties(self) -> tuple[str, ...]:
        return tuple(column.property_name for column in self.updated_columns)


@dataclass(frozen=True, eq=False)
class RemoveEvent:
    entity: Any
    metadata: EntityMetadata
    entity_id: tuple[Any, ...] = ()


@dataclass(frozen=True, eq=False)
class LoadEvent:
    entity: Any
    metadata: EntityMetadata


LifecycleEvent = Union[InsertEvent, UpdateEvent, RemoveEvent, LoadEvent]

HANDLER_NAMES: dict[LifecyclePhase, str] = {
    LifecyclePhase.BEFORE_INSERT: "before_insert",
    LifecyclePhase.AFTER_INSERT: "after_insert",
    LifecyclePhase.BEFORE_UPDATE: "before_update",
    LifecyclePhase.AFTER_UPDATE: "after_update",
    LifecyclePhase.BEFORE_REMOVE: "before_remove",
    LifecyclePhase.AFTER_REMOVE: "after_remove",
    LifecyclePhase.AFTER_LOAD: "after_load",
}


class EntitySubscriber(Protocol):
    """Entity subscriber protocol.

    Every method is optional: the broadcaster only calls the handlers a
    subscriber defines. ``listen_to`` narrows delivery to one entity type;
    without it, or when it returns None or ANY, all types are delivered.
    """

    def listen_to(self) -> Any: ...

    def before_insert(self, event: InsertEvent) -> None: ...

    def after_insert(self, event: InsertEvent) -> None: ...

    def before_update(self, event: UpdateEvent) -> None: ...

    def after_update(self, event: UpdateEvent) -> None: ...

    def before_remove(self, event: RemoveEvent) -> None: ...

    def after_remove(self, event: RemoveEvent) -> None: ...

    def after_load(self, event: LoadEvent) -> None: ...

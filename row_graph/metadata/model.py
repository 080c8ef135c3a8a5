"""Resolved metadata model.

EntityMetadata aggregates one table with its merged columns, relations
and indices. Instances are created by MetadataRegistry.build() and are
read-only afterwards; relation targets are arena handles resolved on
first access.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

from row_graph.core.enums import CascadeOperation, RelationKind, TableKind
from row_graph.metadata.declarations import CascadeOptions


@dataclass(frozen=True)
class TableMetadata:
    target: type
    name: str
    kind: TableKind = TableKind.REGULAR
    parent: type | None = None

    @property
    def is_abstract(self) -> bool:
        return self.kind is TableKind.ABSTRACT

    @property
    def is_embeddable(self) -> bool:
        return self.kind is TableKind.EMBEDDABLE

    @property
    def is_closure(self) -> bool:
        return self.kind is TableKind.CLOSURE

    @property
    def is_single_table_child(self) -> bool:
        return self.kind is TableKind.SINGLE_TABLE_CHILD


@dataclass(frozen=True)
class ColumnMetadata:
    target: type
    property_name: str
    database_name: str
    type: Any = None
    is_primary: bool = False
    is_unique: bool = False
    is_nullable: bool = False
    is_virtual: bool = False
    is_create_date: bool = False
    is_update_date: bool = False

    def get_value(self, entity: Any) -> Any:
        return getattr(entity, self.property_name, None)


@dataclass(frozen=True)
class IndexMetadata:
    target: type
    name: str
    columns: tuple[str, ...]
    is_unique: bool = False


@dataclass(eq=False)
class RelationMetadata:
    """A relation of one entity to another.

    The related entity is stored as an index into the registry's metadata
    arena and looked up on first access to ``target_metadata``.
    """

    target: type
    property_name: str
    kind: RelationKind
    is_owning: bool
    inverse_side: str | None = None
    cascade: CascadeOptions = field(default_factory=CascadeOptions)
    is_nullable: bool = True
    join_column: str | None = None
    join_table: str | None = None
    _arena: list[EntityMetadata] | None = field(default=None, repr=False)
    _handle: int | None = field(default=None, repr=False)
    _resolved: EntityMetadata | None = field(default=None, repr=False)

    def bind(self, arena: list[EntityMetadata], handle: int) -> None:
        self._arena = arena
        self._handle = handle
        self._resolved = None

    @property
    def target_metadata(self) -> EntityMetadata:
        if self._resolved is None:
            if self._arena is None or self._handle is None:
                raise LookupError(
                    f"Relation {self.target.__name__}.{self.property_name} is not resolved yet"
                )
            self._resolved = self._arena[self._handle]
        return self._resolved

    @property
    def related_type(self) -> type:
        return self.target_metadata.target

    @property
    def inverse_relation(self) -> RelationMetadata | None:
        if self.inverse_side is None:
            return None
        return self.target_metadata.find_relation(self.inverse_side)

    @property
    def is_one_to_one(self) -> bool:
        return self.kind is RelationKind.ONE_TO_ONE

    @property
    def is_one_to_many(self) -> bool:
        return self.kind is RelationKind.ONE_TO_MANY

    @property
    def is_many_to_one(self) -> bool:
        return self.kind is RelationKind.MANY_TO_ONE

    @property
    def is_many_to_many(self) -> bool:
        return self.kind is RelationKind.MANY_TO_MANY

    @property
    def is_to_many(self) -> bool:
        return self.is_one_to_many or self.is_many_to_many

    @property
    def is_to_one(self) -> bool:
        return not self.is_to_many

    @property
    def has_join_column(self) -> bool:
        """True for relations whose own row stores the foreign key."""
        return self.is_many_to_one or (self.is_one_to_one and self.is_owning)

    @property
    def is_cascade_insert(self) -> bool:
        return self.cascade.insert

    @property
    def is_cascade_update(self) -> bool:
        return self.cascade.update

    @property
    def is_cascade_remove(self) -> bool:
        return self.cascade.remove

    def allows(self, operation: CascadeOperation | str) -> bool:
        return self.cascade.allows(operation)

    def get_value(self, entity: Any) -> Any:
        return getattr(entity, self.property_name, None)


@dataclass(eq=False)
class EntityMetadata:
    table: TableMetadata
    columns: tuple[ColumnMetadata, ...]
    relations: tuple[RelationMetadata, ...]
    indices: tuple[IndexMetadata, ...] = ()

    def __repr__(self) -> str:
        return f"EntityMetadata({self.name}, table={self.table_name!r})"

    @property
    def target(self) -> type:
        return self.table.target

    @property
    def name(self) -> str:
        return self.target.__name__

    @property
    def table_name(self) -> str:
        return self.table.name

    @cached_property
    def primary_columns(self) -> tuple[ColumnMetadata, ...]:
        return tuple(column for column in self.columns if column.is_primary)

    @property
    def has_primary_key(self) -> bool:
        return bool(self.primary_columns)

    @cached_property
    def persisted_columns(self) -> tuple[ColumnMetadata, ...]:
        return tuple(column for column in self.columns if not column.is_virtual)

    @cached_property
    def one_to_one_relations(self) -> tuple[RelationMetadata, ...]:
        return tuple(r for r in self.relations if r.is_one_to_one)

    @cached_property
    def one_to_many_relations(self) -> tuple[RelationMetadata, ...]:
        return tuple(r for r in self.relations if r.is_one_to_many)

    @cached_property
    def many_to_one_relations(self) -> tuple[RelationMetadata, ...]:
        return tuple(r for r in self.relations if r.is_many_to_one)

    @cached_property
    def many_to_many_relations(self) -> tuple[RelationMetadata, ...]:
        return tuple(r for r in self.relations if r.is_many_to_many)

    @cached_property
    def owning_relations(self) -> tuple[RelationMetadata, ...]:
        return tuple(r for r in self.relations if r.is_owning)

    @cached_property
    def relations_with_join_columns(self) -> tuple[RelationMetadata, ...]:
        return tuple(r for r in self.relations if r.has_join_column)

    def find_column(self, property_name: str) -> ColumnMetadata | None:
        for column in self.columns:
            if column.property_name == property_name:
                return column
        return None

    def find_column_by_database_name(self, database_name: str) -> ColumnMetadata | None:
        for column in self.columns:
            if column.database_name == database_name:
                return column
        return None

    def find_relation(self, property_name: str) -> RelationMetadata | None:
        for relation in self.relations:
            if relation.property_name == property_name:
                return relation
        return None

    def get_entity_id(self, entity: Any) -> tuple[Any, ...]:
        """Primary key value(s) of ``entity`` as a tuple, in declaration order."""
        return tuple(column.get_value(entity) for column in self.primary_columns)

    def has_empty_id(self, entity: Any) -> bool:
        return all(value is None for value in self.get_entity_id(entity))

    def identity_of(self, entity: Any) -> tuple[type, tuple[Any, ...]]:
        return (self.target, self.get_entity_id(entity))

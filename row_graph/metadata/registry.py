"""Metadata registry - collects declarations and builds entity metadata.

Lifecycle:
    registry = MetadataRegistry()
    registry.register(TableDecl(Post), [ColumnDecl("id", primary=True)], [...])
    registry.build()            # merge, resolve, validate, freeze
    registry.find(Post)         # read-only from here on

The registry is immutable after build(): it may be shared by any number
of hydrators and planners without locking.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from typing import Any, Union

from row_graph.core.enums import RelationKind, TableKind
from row_graph.core.exceptions import (
    DeclarationError,
    DuplicateMetadataError,
    EntityMetadataNotFoundError,
    MissingPrimaryColumnError,
    RegistryFrozenError,
    RelationOwnershipError,
)
from row_graph.core.naming import DefaultNamingStrategy, NamingStrategy
from row_graph.metadata.declarations import ColumnDecl, IndexDecl, RelationDecl, TableDecl
from row_graph.metadata.model import (
    ColumnMetadata,
    EntityMetadata,
    IndexMetadata,
    RelationMetadata,
    TableMetadata,
)

logger = logging.getLogger(__name__)

PropertyDecl = Union[ColumnDecl, RelationDecl]

_NON_ENTITY_KINDS = (TableKind.ABSTRACT, TableKind.EMBEDDABLE)


class _Declarations:
    """Raw declarations of one type, in declaration order."""

    def __init__(self, table: TableDecl) -> None:
        self.table = table
        self.properties: dict[str, PropertyDecl] = {}
        self.indices: dict[str, IndexDecl] = {}


class MetadataRegistry:
    """Registry of entity declarations and their built metadata.

    Args:
        naming_strategy: Derives names that were not declared explicitly.
            Defaults to DefaultNamingStrategy.
    """

    def __init__(self, naming_strategy: NamingStrategy | None = None) -> None:
        self._naming = naming_strategy or DefaultNamingStrategy()
        self._declarations: dict[type, _Declarations] = {}
        self._explicit_table_names: dict[str, type] = {}
        self._arena: list[EntityMetadata] = []
        self._by_target: dict[type, int] = {}
        self._by_name: dict[str, int] = {}
        self._by_table_name: dict[str, int] = {}
        self._frozen = False

    @property
    def naming_strategy(self) -> NamingStrategy:
        return self._naming

    @property
    def is_built(self) -> bool:
        return self._frozen

    # --- Registration ---

    def register(
        self,
        table: TableDecl,
        columns: Iterable[ColumnDecl] = (),
        relations: Iterable[RelationDecl] = (),
        indices: Iterable[IndexDecl] = (),
    ) -> None:
        """Store the declarations of ``table.target``.

        Raises:
            RegistryFrozenError: If build() already ran.
            DuplicateMetadataError: If the type is already registered, a
                property is declared twice, or an explicit concrete table
                name is already taken.
        """
        target = table.target
        if self._frozen:
            raise RegistryFrozenError(target)
        if target in self._declarations:
            raise DuplicateMetadataError(target, target.__name__, "type is already registered")

        declarations = _Declarations(table)
        for decl in [*columns, *relations]:
            if decl.property_name in declarations.properties:
                existing = declarations.properties[decl.property_name]
                kind = "column" if isinstance(existing, ColumnDecl) else "relation"
                raise DuplicateMetadataError(
                    target, decl.property_name, f"property already has {kind} metadata"
                )
            declarations.properties[decl.property_name] = decl
        for index in indices:
            if index.key in declarations.indices:
                raise DuplicateMetadataError(target, index.key, "index declared twice")
            declarations.indices[index.key] = index

        if table.name is not None and table.kind not in _NON_ENTITY_KINDS:
            if table.kind is not TableKind.SINGLE_TABLE_CHILD:
                owner = self._explicit_table_names.get(table.name)
                if owner is not None:
                    raise DuplicateMetadataError(
                        target, table.name, f"table name is already used by {owner.__name__}"
                    )
                self._explicit_table_names[table.name] = target

        self._declarations[target] = declarations

    # --- Build ---

    def build(self, types: Sequence[type] | None = None) -> list[EntityMetadata]:
        """Merge, resolve and validate metadata, then freeze the registry.

        Args:
            types: Types to build. Defaults to every registered concrete type.
                Abstract and embeddable types are skipped; they only
                contribute declarations to their descendants.

        Returns:
            The built EntityMetadata, in registration order.
        """
        if self._frozen:
            if types is None:
                return list(self._arena)
            return [self.find(t) for t in types if not self._is_non_entity(t)]

        if types is None:
            requested = list(self._declarations)
        else:
            wanted = set(types)
            for target in wanted:
                if target not in self._declarations:
                    raise EntityMetadataNotFoundError(target)
            requested = [t for t in self._declarations if t in wanted]
        concrete = [t for t in requested if not self._is_non_entity(t)]

        arena: list[EntityMetadata] = []
        by_target: dict[type, int] = {}
        table_names: dict[str, type] = {}
        pending: list[tuple[RelationMetadata, RelationDecl]] = []

        for target in concrete:
            metadata, relation_decls = self._build_entity(target)
            if not metadata.table.is_single_table_child:
                owner = table_names.get(metadata.table_name)
                if owner is not None:
                    raise DuplicateMetadataError(
                        target,
                        metadata.table_name,
                        f"table name is already used by {owner.__name__}",
                    )
                table_names[metadata.table_name] = target
            by_target[target] = len(arena)
            arena.append(metadata)
            pending.extend(zip(metadata.relations, relation_decls, strict=True))

        by_name = {metadata.name: handle for handle, metadata in enumerate(arena)}
        for relation, decl in pending:
            handle = self._resolve_handle(decl.target, by_target, by_name, arena)
            relation.bind(arena, handle)

        for relation, _decl in pending:
            if relation.has_join_column and relation.join_column is None:
                primary = relation.target_metadata.primary_columns
                if len(primary) == 1:
                    relation.join_column = self._naming.join_column_name(
                        relation.property_name, primary[0].database_name
                    )
            if relation.is_many_to_many and relation.is_owning and relation.join_table is None:
                owner_table = arena[by_target[relation.target]].table_name
                relation.join_table = self._naming.join_table_name(
                    owner_table, relation.target_metadata.table_name
                )

        for metadata in arena:
            self._validate(metadata)

        self._arena = arena
        self._by_target = by_target
        self._by_name = by_name
        self._by_table_name = {}
        for handle, metadata in enumerate(arena):
            self._by_table_name.setdefault(metadata.table_name, handle)
        self._frozen = True

        logger.debug("Built metadata for %d entities", len(arena))
        return list(arena)

    def _is_non_entity(self, target: type) -> bool:
        declarations = self._declarations.get(target)
        return declarations is not None and declarations.table.kind in _NON_ENTITY_KINDS

    def _ancestors(self, target: type) -> list[type]:
        """Registered ancestors that contribute declarations, nearest first."""
        table = self._declarations[target].table
        result = []
        for base in target.__mro__[1:]:
            declarations = self._declarations.get(base)
            if declarations is None:
                continue
            if declarations.table.kind in _NON_ENTITY_KINDS:
                result.append(base)
            elif table.kind is TableKind.SINGLE_TABLE_CHILD:
                result.append(base)
        return result

    def _merge(self, target: type) -> tuple[dict[str, PropertyDecl], dict[str, IndexDecl]]:
        """Merge own and inherited declarations; the nearest declaration wins.

        Ancestors are applied farthest first so inherited properties keep
        their base-class position while a nearer declaration replaces the
        options of the same property name.
        """
        chain = [target, *self._ancestors(target)]
        properties: dict[str, PropertyDecl] = {}
        indices: dict[str, IndexDecl] = {}
        for owner in reversed(chain):
            declarations = self._declarations[owner]
            properties.update(declarations.properties)
            indices.update(declarations.indices)
        return properties, indices

    def _table_metadata(self, target: type) -> TableMetadata:
        table = self._declarations[target].table
        if table.kind is TableKind.SINGLE_TABLE_CHILD:
            parent = table.parent or next(
                (
                    base
                    for base in target.__mro__[1:]
                    if base in self._declarations and not self._is_non_entity(base)
                ),
                None,
            )
            if parent is None:
                raise DeclarationError(
                    f"Single-table child {target.__name__} has no registered parent entity"
                )
            parent_table = self._table_metadata(parent)
            return TableMetadata(target, parent_table.name, table.kind, parent)
        name = table.name or self._naming.table_name(target.__name__)
        return TableMetadata(target, name, table.kind, table.parent)

    def _build_entity(self, target: type) -> tuple[EntityMetadata, list[RelationDecl]]:
        properties, index_decls = self._merge(target)
        columns: list[ColumnMetadata] = []
        relations: list[RelationMetadata] = []
        relation_decls: list[RelationDecl] = []

        for decl in properties.values():
            if isinstance(decl, ColumnDecl):
                columns.append(
                    ColumnMetadata(
                        target=target,
                        property_name=decl.property_name,
                        database_name=decl.name or self._naming.column_name(decl.property_name),
                        type=decl.type,
                        is_primary=decl.primary,
                        is_unique=decl.unique,
                        is_nullable=decl.nullable,
                        is_virtual=decl.virtual,
                        is_create_date=decl.create_date,
                        is_update_date=decl.update_date,
                    )
                )
            else:
                relations.append(
                    RelationMetadata(
                        target=target,
                        property_name=decl.property_name,
                        kind=decl.kind,
                        is_owning=_derive_owning(decl),
                        inverse_side=decl.inverse_side,
                        cascade=decl.cascade,
                        is_nullable=decl.nullable,
                        join_column=decl.join_column,
                        join_table=decl.join_table,
                    )
                )
                relation_decls.append(decl)

        indices = tuple(
            IndexMetadata(target, index.name or index.key, index.columns, index.unique)
            for index in index_decls.values()
        )
        metadata = EntityMetadata(
            table=self._table_metadata(target),
            columns=tuple(columns),
            relations=tuple(relations),
            indices=indices,
        )
        return metadata, relation_decls

    def _resolve_handle(
        self,
        ref: type | str,
        by_target: dict[type, int],
        by_name: dict[str, int],
        arena: list[EntityMetadata],
    ) -> int:
        if isinstance(ref, str):
            if ref in by_name:
                return by_name[ref]
            for handle, metadata in enumerate(arena):
                if metadata.table_name == ref:
                    return handle
        elif ref in by_target:
            return by_target[ref]
        raise EntityMetadataNotFoundError(ref)

    def _validate(self, metadata: EntityMetadata) -> None:
        if not metadata.table.is_abstract and not metadata.table.is_embeddable:
            if not any(not column.is_nullable for column in metadata.primary_columns):
                raise MissingPrimaryColumnError(metadata.target)

        for relation in metadata.relations:
            if relation.is_one_to_many and relation.is_owning:
                raise RelationOwnershipError(
                    metadata.target, relation.property_name, "one-to-many can never be owning"
                )
            if relation.is_many_to_one and not relation.is_owning:
                raise RelationOwnershipError(
                    metadata.target, relation.property_name, "many-to-one is always owning"
                )
            if relation.inverse_side is None:
                continue
            inverse = relation.inverse_relation
            if inverse is None:
                raise RelationOwnershipError(
                    metadata.target,
                    relation.property_name,
                    f"inverse side '{relation.inverse_side}' does not exist on "
                    f"{relation.target_metadata.name}",
                )
            if relation.is_one_to_one or relation.is_many_to_many:
                if relation.is_owning and inverse.is_owning:
                    raise RelationOwnershipError(
                        metadata.target, relation.property_name, "both sides are owning"
                    )
                if not relation.is_owning and not inverse.is_owning:
                    raise RelationOwnershipError(
                        metadata.target, relation.property_name, "neither side is owning"
                    )

    # --- Lookup ---

    def find(self, target: type | str) -> EntityMetadata:
        """Find built metadata by class, entity name or table name.

        Raises:
            EntityMetadataNotFoundError: If nothing matches.
        """
        if isinstance(target, str):
            handle = self._by_name.get(target)
            if handle is None:
                handle = self._by_table_name.get(target)
        else:
            handle = self._by_target.get(target)
        if handle is None:
            raise EntityMetadataNotFoundError(target)
        return self._arena[handle]

    def find_for(self, entity: Any) -> EntityMetadata:
        """Find metadata for an entity instance by its runtime type."""
        for klass in type(entity).__mro__:
            handle = self._by_target.get(klass)
            if handle is not None:
                return self._arena[handle]
        raise EntityMetadataNotFoundError(type(entity))

    def has(self, target: type | str) -> bool:
        try:
            self.find(target)
        except EntityMetadataNotFoundError:
            return False
        return True

    @property
    def metadatas(self) -> list[EntityMetadata]:
        return list(self._arena)

    def __iter__(self) -> Iterator[EntityMetadata]:
        return iter(self._arena)

    def __len__(self) -> int:
        """Number of built entities."""
        return len(self._arena)


def _derive_owning(decl: RelationDecl) -> bool:
    if decl.kind is RelationKind.MANY_TO_ONE:
        return True if decl.owning is None else decl.owning
    if decl.kind is RelationKind.ONE_TO_MANY:
        return False if decl.owning is None else decl.owning
    if decl.owning is not None:
        return decl.owning
    # unidirectional one-to-one / many-to-many: the declaring side owns
    return decl.inverse_side is None

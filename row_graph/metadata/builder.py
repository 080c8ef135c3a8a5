"""Entity declaration DSL.

Provides a fluent builder producing plain declaration records:

    entity(Post)
        .primary("id")
        .column("title")
        .one_to_many("comments", Comment, inverse_side="post", cascade=["insert"])
        .register(registry)
"""

from __future__ import annotations

import dataclasses
import inspect
from typing import Any

from row_graph.core.enums import RelationKind, TableKind
from row_graph.core.exceptions import DeclarationError
from row_graph.metadata.declarations import (
    CascadeOptions,
    CascadeSpec,
    ColumnDecl,
    IndexDecl,
    RelationDecl,
    TableDecl,
)
from row_graph.metadata.registry import MetadataRegistry


def _get_field_names(cls: type) -> list[str]:
    """Extract field names from a class (dataclass, Pydantic, or plain)."""
    # Pydantic model
    if hasattr(cls, "model_fields"):
        return list(cls.model_fields.keys())

    # Dataclass
    if dataclasses.is_dataclass(cls):
        return [f.name for f in dataclasses.fields(cls)]

    # Plain class - use __init__ parameters
    try:
        sig = inspect.signature(cls.__init__)  # type: ignore[misc]
        return [
            name
            for name, param in sig.parameters.items()
            if name != "self" and param.kind is not inspect.Parameter.VAR_KEYWORD
        ]
    except (ValueError, TypeError):
        return []


def entity(target: type, table: str | None = None) -> EntityDeclarationBuilder:
    """Entry point for the declaration DSL.

    Args:
        target: The entity class.
        table: Explicit table name. Derived by the registry's naming
               strategy when omitted.

    Returns:
        A builder for chaining column and relation declarations.
    """
    return EntityDeclarationBuilder(target, table)


class EntityDeclarationBuilder:
    """Fluent builder for one type's declarations."""

    def __init__(self, target: type, table: str | None = None) -> None:
        self._target = target
        self._table = table
        self._kind = TableKind.REGULAR
        self._parent: type | None = None
        self._columns: dict[str, ColumnDecl] = {}
        self._relations: dict[str, RelationDecl] = {}
        self._indices: list[IndexDecl] = []
        self._auto_columns = False

    def _add_column(self, decl: ColumnDecl) -> EntityDeclarationBuilder:
        if decl.property_name in self._columns or decl.property_name in self._relations:
            raise DeclarationError(
                f"{self._target.__name__}.{decl.property_name} is declared twice"
            )
        self._columns[decl.property_name] = decl
        return self

    def _add_relation(self, decl: RelationDecl) -> EntityDeclarationBuilder:
        if decl.property_name in self._columns or decl.property_name in self._relations:
            raise DeclarationError(
                f"{self._target.__name__}.{decl.property_name} is declared twice"
            )
        self._relations[decl.property_name] = decl
        return self

    # --- Table kind ---

    def abstract(self) -> EntityDeclarationBuilder:
        """Declarations are merged into registered subclasses only."""
        self._kind = TableKind.ABSTRACT
        return self

    def embeddable(self) -> EntityDeclarationBuilder:
        self._kind = TableKind.EMBEDDABLE
        return self

    def closure(self) -> EntityDeclarationBuilder:
        self._kind = TableKind.CLOSURE
        return self

    def child_of(self, parent: type | None = None) -> EntityDeclarationBuilder:
        """Store rows in the table of ``parent`` (single-table inheritance)."""
        self._kind = TableKind.SINGLE_TABLE_CHILD
        self._parent = parent
        return self

    # --- Columns ---

    def primary(
        self, property_name: str, name: str | None = None, type: Any = None
    ) -> EntityDeclarationBuilder:
        """Declare a primary column."""
        return self._add_column(ColumnDecl(property_name, name=name, type=type, primary=True))

    def column(
        self,
        property_name: str,
        name: str | None = None,
        *,
        type: Any = None,
        nullable: bool = False,
        unique: bool = False,
        primary: bool = False,
    ) -> EntityDeclarationBuilder:
        """Declare a regular column."""
        return self._add_column(
            ColumnDecl(
                property_name,
                name=name,
                type=type,
                nullable=nullable,
                unique=unique,
                primary=primary,
            )
        )

    def virtual(self, property_name: str, name: str | None = None) -> EntityDeclarationBuilder:
        """Declare a computed column that is read but never persisted."""
        return self._add_column(ColumnDecl(property_name, name=name, virtual=True, nullable=True))

    def create_date(self, property_name: str, name: str | None = None) -> EntityDeclarationBuilder:
        return self._add_column(ColumnDecl(property_name, name=name, create_date=True))

    def update_date(self, property_name: str, name: str | None = None) -> EntityDeclarationBuilder:
        return self._add_column(ColumnDecl(property_name, name=name, update_date=True))

    def auto_columns(self) -> EntityDeclarationBuilder:
        """Declare every remaining field of the class as a nullable column."""
        self._auto_columns = True
        return self

    # --- Relations ---

    def _relation(
        self,
        kind: RelationKind,
        property_name: str,
        target: type | str,
        inverse_side: str | None,
        cascade: CascadeSpec,
        **options: Any,
    ) -> EntityDeclarationBuilder:
        return self._add_relation(
            RelationDecl(
                property_name,
                kind,
                target,
                inverse_side=inverse_side,
                cascade=CascadeOptions.coerce(cascade),
                **options,
            )
        )

    def one_to_one(
        self,
        property_name: str,
        target: type | str,
        inverse_side: str | None = None,
        *,
        owning: bool | None = None,
        cascade: CascadeSpec = None,
        nullable: bool = True,
        join_column: str | None = None,
    ) -> EntityDeclarationBuilder:
        return self._relation(
            RelationKind.ONE_TO_ONE,
            property_name,
            target,
            inverse_side,
            cascade,
            owning=owning,
            nullable=nullable,
            join_column=join_column,
        )

    def one_to_many(
        self,
        property_name: str,
        target: type | str,
        inverse_side: str | None = None,
        *,
        cascade: CascadeSpec = None,
    ) -> EntityDeclarationBuilder:
        return self._relation(
            RelationKind.ONE_TO_MANY, property_name, target, inverse_side, cascade
        )

    def many_to_one(
        self,
        property_name: str,
        target: type | str,
        inverse_side: str | None = None,
        *,
        cascade: CascadeSpec = None,
        nullable: bool = True,
        join_column: str | None = None,
    ) -> EntityDeclarationBuilder:
        return self._relation(
            RelationKind.MANY_TO_ONE,
            property_name,
            target,
            inverse_side,
            cascade,
            nullable=nullable,
            join_column=join_column,
        )

    def many_to_many(
        self,
        property_name: str,
        target: type | str,
        inverse_side: str | None = None,
        *,
        owning: bool | None = None,
        cascade: CascadeSpec = None,
        join_table: str | None = None,
    ) -> EntityDeclarationBuilder:
        return self._relation(
            RelationKind.MANY_TO_MANY,
            property_name,
            target,
            inverse_side,
            cascade,
            owning=owning,
            join_table=join_table,
        )

    def index(
        self, *columns: str, name: str | None = None, unique: bool = False
    ) -> EntityDeclarationBuilder:
        if not columns:
            raise DeclarationError(f"Index on {self._target.__name__} needs at least one column")
        self._indices.append(IndexDecl(tuple(columns), name=name, unique=unique))
        return self

    # --- Output ---

    def build(self) -> tuple[TableDecl, list[ColumnDecl], list[RelationDecl], list[IndexDecl]]:
        """Compile the declarations into plain records."""
        columns = dict(self._columns)
        if self._auto_columns:
            # inherited fields are declared by the ancestor that owns them
            own = inspect.get_annotations(self._target)
            annotated = dataclasses.is_dataclass(self._target) or hasattr(
                self._target, "model_fields"
            )
            for name in _get_field_names(self._target):
                if annotated and name not in own:
                    continue
                if name not in columns and name not in self._relations:
                    columns[name] = ColumnDecl(name, nullable=True)

        table = TableDecl(self._target, self._table, self._kind, self._parent)
        return table, list(columns.values()), list(self._relations.values()), list(self._indices)

    def register(self, registry: MetadataRegistry) -> MetadataRegistry:
        """Compile and register into ``registry``; returns the registry for chaining."""
        table, columns, relations, indices = self.build()
        registry.register(table, columns, relations, indices)
        return registry

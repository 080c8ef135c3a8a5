"""Raw declaration records.

Frozen dataclasses describing what a declaration source (a builder, a
config file, a schema) says about one type. They carry no resolved names
and no references to other metadata; MetadataRegistry.build() turns them
into EntityMetadata.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Union

from row_graph.core.enums import CascadeOperation, RelationKind, TableKind


@dataclass(frozen=True)
class CascadeOptions:
    """Per-operation cascade grants of a relation."""

    insert: bool = False
    update: bool = False
    remove: bool = False

    @classmethod
    def all(cls) -> CascadeOptions:
        return cls(insert=True, update=True, remove=True)

    @classmethod
    def coerce(cls, value: CascadeSpec) -> CascadeOptions:
        """Normalize ``True``, ``None``, a CascadeOptions or operation names."""
        if value is None or value is False:
            return cls()
        if value is True:
            return cls.all()
        if isinstance(value, CascadeOptions):
            return value
        if isinstance(value, (str, CascadeOperation)):
            value = [value]
        grants = {CascadeOperation(op).value for op in value}
        return cls(
            insert="insert" in grants,
            update="update" in grants,
            remove="remove" in grants,
        )

    def allows(self, operation: CascadeOperation | str) -> bool:
        return bool(getattr(self, CascadeOperation(operation).value))


CascadeSpec = Union[bool, None, CascadeOptions, str, CascadeOperation, Iterable[Any]]


@dataclass(frozen=True)
class TableDecl:
    """Table-level declaration of a type."""

    target: type
    name: str | None = None
    kind: TableKind = TableKind.REGULAR
    parent: type | None = None  # concrete table a single-table child lives in


@dataclass(frozen=True)
class ColumnDecl:
    """Column declaration for one property."""

    property_name: str
    name: str | None = None
    type: Any = None
    primary: bool = False
    unique: bool = False
    nullable: bool = False
    virtual: bool = False
    create_date: bool = False
    update_date: bool = False


@dataclass(frozen=True)
class RelationDecl:
    """Relation declaration for one property.

    ``target`` is either the related class or its registered entity name;
    names are resolved after every declaration has been registered, so two
    entities may reference each other.
    """

    property_name: str
    kind: RelationKind
    target: type | str
    inverse_side: str | None = None
    owning: bool | None = None  # None: derived from kind and inverse_side
    cascade: CascadeOptions = field(default_factory=CascadeOptions)
    nullable: bool = True
    join_column: str | None = None
    join_table: str | None = None


@dataclass(frozen=True)
class IndexDecl:
    """Index over one or more properties."""

    columns: tuple[str, ...]
    name: str | None = None
    unique: bool = False

    @property
    def key(self) -> str:
        return self.name or ",".join(self.columns)

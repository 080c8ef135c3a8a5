"""Metadata and lifecycle enumerations."""

from __future__ import annotations

from enum import Enum


class TableKind(Enum):
    """How a declared type participates in the table layout."""

    REGULAR = "regular"
    ABSTRACT = "abstract"
    EMBEDDABLE = "embeddable"
    CLOSURE = "closure"
    SINGLE_TABLE_CHILD = "single-table-child"


class RelationKind(Enum):
    """Relation cardinalities."""

    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    MANY_TO_MANY = "many-to-many"


class CascadeOperation(Enum):
    """Operations a relation may propagate to its related entities."""

    INSERT = "insert"
    UPDATE = "update"
    REMOVE = "remove"


class LifecyclePhase(Enum):
    """Points at which subscribers are notified."""

    BEFORE_INSERT = "before-insert"
    AFTER_INSERT = "after-insert"
    BEFORE_UPDATE = "before-update"
    AFTER_UPDATE = "after-update"
    BEFORE_REMOVE = "before-remove"
    AFTER_REMOVE = "after-remove"
    AFTER_LOAD = "after-load"

"""RowGraph exception hierarchy.

All exceptions are RowGraph-specific and carry the offending identifiers
as attributes. Subscriber and handler exceptions are never wrapped.
"""

from __future__ import annotations

from typing import Any


class RowGraphError(Exception):
    """Base exception for all RowGraph errors."""


def _name_of(target: Any) -> str:
    return getattr(target, "__name__", str(target))


# --- Metadata ---


class MetadataError(RowGraphError):
    """Base for metadata registration and build errors."""


class DuplicateMetadataError(MetadataError):
    """Raised when a property is declared twice or two tables share a name."""

    def __init__(self, target: Any, name: str, detail: str) -> None:
        self.target = target
        self.name = name
        super().__init__(f"Duplicate metadata for {_name_of(target)}.{name}: {detail}")


class EntityMetadataNotFoundError(MetadataError):
    """Raised when no entity metadata matches a type or table name."""

    def __init__(self, target: Any) -> None:
        self.target = target
        super().__init__(f"No metadata was found for entity '{_name_of(target)}'")


class MissingPrimaryColumnError(MetadataError):
    """Raised when a regular entity has no non-nullable primary column."""

    def __init__(self, target: Any) -> None:
        self.target = target
        super().__init__(
            f"Entity {_name_of(target)} does not have a non-nullable primary column"
        )


class RelationOwnershipError(MetadataError):
    """Raised when a relation breaks the owning-side rules."""

    def __init__(self, target: Any, property_name: str, detail: str) -> None:
        self.target = target
        self.property_name = property_name
        super().__init__(f"Invalid relation {_name_of(target)}.{property_name}: {detail}")


class RegistryFrozenError(MetadataError):
    """Raised when registering declarations into an already built registry."""

    def __init__(self, target: Any) -> None:
        self.target = target
        super().__init__(
            f"Cannot register {_name_of(target)}: the metadata registry is already built"
        )


class DeclarationError(MetadataError):
    """Raised when an entity declaration is incomplete or inconsistent."""


# --- Mapping ---


class MappingError(RowGraphError):
    """Base for hydration errors."""


class AliasError(MappingError):
    """Raised on an invalid alias map operation."""


class HydrationInvariantError(MappingError):
    """Raised when an alias points at metadata that cannot be grouped."""

    def __init__(self, alias_name: str, target: Any) -> None:
        self.alias_name = alias_name
        self.target = target
        super().__init__(
            f"Cannot hydrate alias '{alias_name}': {_name_of(target)} has no primary column"
        )


class StrictModeViolation(MappingError):
    """Raised in strict mode when rows miss columns of a requested alias."""


class EntityConstructionError(MappingError):
    """Raised when a hydrated entity cannot be instantiated."""

    def __init__(self, target_class: str, detail: str) -> None:
        self.target_class = target_class
        super().__init__(f"Cannot construct {target_class}: {detail}")


# --- Persistence ---


class PersistenceError(RowGraphError):
    """Base for cascade planning and execution errors."""


class CascadeNotAllowedError(PersistenceError):
    """Raised when a diff needs an operation the relation does not cascade."""

    def __init__(self, relation: Any, operation: str) -> None:
        self.relation = relation
        self.operation = operation
        super().__init__(
            f"Cascade {operation} is not allowed on relation "
            f"{_name_of(relation.target)}.{relation.property_name}"
        )


class PlanStateError(PersistenceError):
    """Raised on invalid persist plan state transitions."""

    def __init__(self, current_state: str, attempted_action: str) -> None:
        self.current_state = current_state
        self.attempted_action = attempted_action
        super().__init__(f"Cannot {attempted_action} plan in state '{current_state}'")

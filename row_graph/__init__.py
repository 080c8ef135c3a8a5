"""RowGraph - entity graph hydration and cascade persistence planning."""

from __future__ import annotations

from row_graph.core.config import GraphConfig
from row_graph.core.enums import CascadeOperation, LifecyclePhase, RelationKind, TableKind
from row_graph.core.exceptions import (
    AliasError,
    CascadeNotAllowedError,
    DeclarationError,
    DuplicateMetadataError,
    EntityConstructionError,
    EntityMetadataNotFoundError,
    HydrationInvariantError,
    MappingError,
    MetadataError,
    MissingPrimaryColumnError,
    PersistenceError,
    PlanStateError,
    RegistryFrozenError,
    RelationOwnershipError,
    RowGraphError,
    StrictModeViolation,
)
from row_graph.core.naming import DefaultNamingStrategy, NamingStrategy
from row_graph.mapping.alias import Alias, AliasMap
from row_graph.mapping.factory import NOT_LOADED, is_loaded
from row_graph.mapping.hydrator import Hydrator
from row_graph.metadata.builder import entity
from row_graph.metadata.registry import MetadataRegistry
from row_graph.persistence.executor import AsyncPlanExecutor, PlanExecutor
from row_graph.persistence.operations import PersistPlan
from row_graph.persistence.planner import CascadePlanner
from row_graph.repository.base import AsyncRepository, Repository
from row_graph.subscriber.broadcaster import Broadcaster
from row_graph.subscriber.events import ANY

__all__ = [
    # Config
    "GraphConfig",
    # Metadata
    "MetadataRegistry",
    "entity",
    "NamingStrategy",
    "DefaultNamingStrategy",
    # Mapping
    "Alias",
    "AliasMap",
    "Hydrator",
    "NOT_LOADED",
    "is_loaded",
    # Persistence
    "CascadePlanner",
    "PersistPlan",
    "PlanExecutor",
    "AsyncPlanExecutor",
    # Subscribers
    "Broadcaster",
    "ANY",
    # Repository
    "Repository",
    "AsyncRepository",
    # Enums
    "TableKind",
    "RelationKind",
    "CascadeOperation",
    "LifecyclePhase",
    # Exceptions
    "RowGraphError",
    "MetadataError",
    "DuplicateMetadataError",
    "EntityMetadataNotFoundError",
    "MissingPrimaryColumnError",
    "RelationOwnershipError",
    "RegistryFrozenError",
    "DeclarationError",
    "MappingError",
    "AliasError",
    "HydrationInvariantError",
    "StrictModeViolation",
    "EntityConstructionError",
    "PersistenceError",
    "CascadeNotAllowedError",
    "PlanStateError",
]

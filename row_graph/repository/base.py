"""Repository base classes.

Thin wrappers tying a query engine, the hydrator, the cascade planner
and a persist handler together. The engine is any object whose
``fetch_all(query_name, params)`` returns rows as dicts.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from row_graph.core.config import GraphConfig
from row_graph.core.exceptions import PersistenceError
from row_graph.mapping.alias import AliasMap
from row_graph.mapping.hydrator import Hydrator
from row_graph.metadata.registry import MetadataRegistry
from row_graph.persistence.executor import (
    AsyncPersistHandler,
    AsyncPlanExecutor,
    PersistHandler,
    PlanExecutor,
)
from row_graph.persistence.operations import PersistPlan
from row_graph.persistence.planner import CascadePlanner
from row_graph.subscriber.broadcaster import Broadcaster

T = TypeVar("T")


class _RepositoryBase(Generic[T]):
    def __init__(
        self,
        engine: Any,
        registry: MetadataRegistry,
        config: GraphConfig | None = None,
        broadcaster: Broadcaster | None = None,
    ) -> None:
        self.engine = engine
        self.registry = registry
        self.broadcaster = broadcaster
        self.hydrator: Hydrator[T] = Hydrator(registry, config, broadcaster)
        self.planner = CascadePlanner(registry)

    def alias_map(self, root_alias: str, target: type | str) -> AliasMap:
        """Start an alias map rooted at ``target``."""
        alias_map = AliasMap(self.registry)
        alias_map.add_root_alias(root_alias, target)
        return alias_map

    def plan_save(self, old: T | None, new: T) -> PersistPlan:
        return self.planner.plan(old, new)

    def plan_remove(self, old: T) -> PersistPlan:
        return self.planner.plan_removal(old)


class Repository(_RepositoryBase[T]):
    """Base repository class.

    Subclasses define concrete data access methods that delegate to
    ``load`` with their own query names and alias maps.
    """

    def __init__(
        self,
        engine: Any,
        registry: MetadataRegistry,
        handler: PersistHandler | None = None,
        config: GraphConfig | None = None,
        broadcaster: Broadcaster | None = None,
    ) -> None:
        super().__init__(engine, registry, config, broadcaster)
        self.handler = handler

    def load(
        self, query_name: str, alias_map: AliasMap, params: dict[str, Any] | None = None
    ) -> list[T]:
        """Fetch rows through the engine and hydrate them."""
        rows = self.engine.fetch_all(query_name, params)
        return self.hydrator.hydrate(rows, alias_map)

    def _executor(self, handler: PersistHandler | None) -> PlanExecutor:
        handler = handler or self.handler
        if handler is None:
            raise PersistenceError("No persist handler configured for this repository")
        return PlanExecutor(handler, self.broadcaster)

    def save(self, old: T | None, new: T, handler: PersistHandler | None = None) -> PersistPlan:
        """Plan and execute the changes from ``old`` to ``new``."""
        executor = self._executor(handler)
        return executor.execute(self.plan_save(old, new))

    def remove(self, old: T, handler: PersistHandler | None = None) -> PersistPlan:
        """Plan and execute removal of ``old`` and its cascaded relations."""
        executor = self._executor(handler)
        return executor.execute(self.plan_remove(old))


class AsyncRepository(_RepositoryBase[T]):
    """Async variant of Repository."""

    def __init__(
        self,
        engine: Any,
        registry: MetadataRegistry,
        handler: AsyncPersistHandler | None = None,
        config: GraphConfig | None = None,
        broadcaster: Broadcaster | None = None,
    ) -> None:
        super().__init__(engine, registry, config, broadcaster)
        self.handler = handler

    async def load(
        self, query_name: str, alias_map: AliasMap, params: dict[str, Any] | None = None
    ) -> list[T]:
        rows = await self.engine.fetch_all(query_name, params)
        return self.hydrator.hydrate(rows, alias_map)

    def _executor(self, handler: AsyncPersistHandler | None) -> AsyncPlanExecutor:
        handler = handler or self.handler
        if handler is None:
            raise PersistenceError("No persist handler configured for this repository")
        return AsyncPlanExecutor(handler, self.broadcaster)

    async def save(
        self, old: T | None, new: T, handler: AsyncPersistHandler | None = None
    ) -> PersistPlan:
        executor = self._executor(handler)
        return await executor.execute(self.plan_save(old, new))

    async def remove(self, old: T, handler: AsyncPersistHandler | None = None) -> PersistPlan:
        executor = self._executor(handler)
        return await executor.execute(self.plan_remove(old))

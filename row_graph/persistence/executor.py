"""Plan execution.

Applies a PersistPlan through a caller-supplied handler that owns the
actual storage. Execution order: inserts (entities referenced through an
owning to-one relation first), junction inserts, updates, junction
removes, then removes with dependents before the entities they hang off.
Each entity operation is wrapped with its lifecycle events.

Transactions are the handler's concern; on failure the plan is marked
FAILED and the exception propagates unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from row_graph.core.enums import LifecyclePhase
from row_graph.core.exceptions import PlanStateError
from row_graph.mapping.factory import NOT_LOADED, set_value
from row_graph.metadata.model import EntityMetadata
from row_graph.persistence.operations import (
    InsertOperation,
    JunctionOperation,
    PersistPlan,
    PlanState,
    RemoveOperation,
    UpdateOperation,
)
from row_graph.subscriber.broadcaster import Broadcaster
from row_graph.subscriber.events import InsertEvent, LifecycleEvent, RemoveEvent, UpdateEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class PersistHandler(Protocol):
    """Storage side of plan execution.

    ``insert`` may return the generated primary key (a scalar, or a
    sequence for composite keys); it is assigned to entities inserted
    with an empty key.
    """

    def insert(self, operation: InsertOperation) -> Any: ...

    def update(self, operation: UpdateOperation) -> Any: ...

    def remove(self, operation: RemoveOperation) -> Any: ...

    def insert_junction(self, operation: JunctionOperation) -> Any: ...

    def remove_junction(self, operation: JunctionOperation) -> Any: ...


@runtime_checkable
class AsyncPersistHandler(Protocol):
    """Async variant of PersistHandler."""

    async def insert(self, operation: InsertOperation) -> Any: ...

    async def update(self, operation: UpdateOperation) -> Any: ...

    async def remove(self, operation: RemoveOperation) -> Any: ...

    async def insert_junction(self, operation: JunctionOperation) -> Any: ...

    async def remove_junction(self, operation: JunctionOperation) -> Any: ...


def order_inserts(inserts: Sequence[InsertOperation]) -> list[InsertOperation]:
    """Order inserts so referenced entities precede their referrers.

    An insert depends on the inserts of entities it references through
    relations with a join column. Independent inserts keep plan order;
    reference cycles are broken at the first revisited insert.
    """
    by_entity = {id(op.entity): op for op in inserts}
    ordered: list[InsertOperation] = []
    visiting: set[int] = set()
    done: set[int] = set()

    def visit(op: InsertOperation) -> None:
        key = id(op.entity)
        if key in done or key in visiting:
            return
        visiting.add(key)
        for relation in op.metadata.relations_with_join_columns:
            related = relation.get_value(op.entity)
            if related is None or related is NOT_LOADED:
                continue
            dependency = by_entity.get(id(related))
            if dependency is not None:
                visit(dependency)
        visiting.discard(key)
        done.add(key)
        ordered.append(op)

    for op in inserts:
        visit(op)
    return ordered


def assign_generated_id(metadata: EntityMetadata, entity: Any, generated: Any) -> None:
    """Store a handler-generated key on an entity whose key is still empty."""
    if generated is None or not metadata.has_empty_id(entity):
        return
    columns = metadata.primary_columns
    if len(columns) == 1:
        values: Sequence[Any] = (generated,)
    else:
        values = tuple(generated)
    for column, value in zip(columns, values, strict=True):
        set_value(entity, column.property_name, value)


class _ExecutorBase:
    def __init__(self, broadcaster: Broadcaster | None = None) -> None:
        self._broadcaster = broadcaster

    def _notify(
        self, phase: LifecyclePhase, metadata: EntityMetadata, event: LifecycleEvent
    ) -> None:
        if self._broadcaster is not None:
            self._broadcaster.notify(phase, metadata.target, event)

    @staticmethod
    def _begin(plan: PersistPlan) -> None:
        if plan.state is not PlanState.PENDING:
            raise PlanStateError(plan.state.value, "execute")
        plan.state = PlanState.EXECUTING


class PlanExecutor(_ExecutorBase):
    """Synchronous plan executor.

    Args:
        handler: Performs the storage operations.
        broadcaster: Receives before/after events around each operation.
    """

    def __init__(self, handler: PersistHandler, broadcaster: Broadcaster | None = None) -> None:
        super().__init__(broadcaster)
        self._handler = handler

    def execute(self, plan: PersistPlan) -> PersistPlan:
        """Apply ``plan``.

        Raises:
            PlanStateError: If the plan was already executed or failed.
        """
        self._begin(plan)
        try:
            for op in order_inserts(plan.inserts):
                event = InsertEvent(op.entity, op.metadata)
                self._notify(LifecyclePhase.BEFORE_INSERT, op.metadata, event)
                assign_generated_id(op.metadata, op.entity, self._handler.insert(op))
                self._notify(LifecyclePhase.AFTER_INSERT, op.metadata, event)

            for junction in plan.junction_inserts:
                self._handler.insert_junction(junction)

            for update in plan.updates:
                update_event = UpdateEvent(update.entity, update.metadata, update.changed_columns)
                self._notify(LifecyclePhase.BEFORE_UPDATE, update.metadata, update_event)
                self._handler.update(update)
                self._notify(LifecyclePhase.AFTER_UPDATE, update.metadata, update_event)

            for junction in plan.junction_removes:
                self._handler.remove_junction(junction)

            for remove in reversed(plan.removes):
                remove_event = RemoveEvent(remove.entity, remove.metadata, remove.entity_id)
                self._notify(LifecyclePhase.BEFORE_REMOVE, remove.metadata, remove_event)
                self._handler.remove(remove)
                self._notify(LifecyclePhase.AFTER_REMOVE, remove.metadata, remove_event)
        except Exception:
            plan.state = PlanState.FAILED
            raise

        plan.state = PlanState.EXECUTED
        logger.debug("Executed plan: %s", plan.summary())
        return plan


class AsyncPlanExecutor(_ExecutorBase):
    """Async variant of PlanExecutor."""

    def __init__(
        self, handler: AsyncPersistHandler, broadcaster: Broadcaster | None = None
    ) -> None:
        super().__init__(broadcaster)
        self._handler = handler

    async def execute(self, plan: PersistPlan) -> PersistPlan:
        """Apply ``plan``.

        Raises:
            PlanStateError: If the plan was already executed or failed.
        """
        self._begin(plan)
        try:
            for op in order_inserts(plan.inserts):
                event = InsertEvent(op.entity, op.metadata)
                self._notify(LifecyclePhase.BEFORE_INSERT, op.metadata, event)
                assign_generated_id(op.metadata, op.entity, await self._handler.insert(op))
                self._notify(LifecyclePhase.AFTER_INSERT, op.metadata, event)

            for junction in plan.junction_inserts:
                await self._handler.insert_junction(junction)

            for update in plan.updates:
                update_event = UpdateEvent(update.entity, update.metadata, update.changed_columns)
                self._notify(LifecyclePhase.BEFORE_UPDATE, update.metadata, update_event)
                await self._handler.update(update)
                self._notify(LifecyclePhase.AFTER_UPDATE, update.metadata, update_event)

            for junction in plan.junction_removes:
                await self._handler.remove_junction(junction)

            for remove in reversed(plan.removes):
                remove_event = RemoveEvent(remove.entity, remove.metadata, remove.entity_id)
                self._notify(LifecyclePhase.BEFORE_REMOVE, remove.metadata, remove_event)
                await self._handler.remove(remove)
                self._notify(LifecyclePhase.AFTER_REMOVE, remove.metadata, remove_event)
        except Exception:
            plan.state = PlanState.FAILED
            raise

        plan.state = PlanState.EXECUTED
        logger.debug("Executed plan: %s", plan.summary())
        return plan

"""Persistence layer - cascade planning and plan execution."""

from __future__ import annotations

from row_graph.persistence.executor import (
    AsyncPersistHandler,
    AsyncPlanExecutor,
    PersistHandler,
    PlanExecutor,
    order_inserts,
)
from row_graph.persistence.operations import (
    InsertOperation,
    JunctionOperation,
    PersistPlan,
    PlanState,
    RemoveOperation,
    UpdateOperation,
)
from row_graph.persistence.planner import CascadePlanner

__all__ = [
    "CascadePlanner",
    "PersistPlan",
    "PlanState",
    "InsertOperation",
    "UpdateOperation",
    "RemoveOperation",
    "JunctionOperation",
    "PlanExecutor",
    "AsyncPlanExecutor",
    "PersistHandler",
    "AsyncPersistHandler",
    "order_inserts",
]

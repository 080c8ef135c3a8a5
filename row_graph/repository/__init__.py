"""Repository layer - load, plan and save entity graphs."""

from __future__ import annotations

from row_graph.repository.base import AsyncRepository, Repository

__all__ = [
    "Repository",
    "AsyncRepository",
]

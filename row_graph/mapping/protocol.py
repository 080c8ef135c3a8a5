"""Mapper protocol.

Query engines hand result rows to a mapper. Engines call map_one for
single-row results and map_many for full result sets; graph hydration
only supports the latter.
"""

from __future__ import annotations

from typing import Any, Protocol, TypeVar

T_co = TypeVar("T_co", covariant=True)


class Mapper(Protocol[T_co]):
    """Row mapper protocol."""

    def map_one(self, row: dict[str, Any]) -> T_co:
        """Map a single row dict to a target object."""
        ...

    def map_many(self, rows: list[dict[str, Any]]) -> list[T_co]:
        """Map multiple row dicts to a list of target objects."""
        ...

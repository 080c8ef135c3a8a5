"""Mapping layer - alias maps and graph hydration."""

from __future__ import annotations

from row_graph.mapping.alias import Alias, AliasMap
from row_graph.mapping.factory import NOT_LOADED, create_entity, is_loaded
from row_graph.mapping.hydrator import AliasMapper, Hydrator
from row_graph.mapping.protocol import Mapper

__all__ = [
    "Alias",
    "AliasMap",
    "Hydrator",
    "AliasMapper",
    "Mapper",
    "NOT_LOADED",
    "is_loaded",
    "create_entity",
]

"""Metadata layer - declarations, resolved metadata and the registry."""

from __future__ import annotations

from row_graph.metadata.builder import EntityDeclarationBuilder, entity
from row_graph.metadata.declarations import (
    CascadeOptions,
    ColumnDecl,
    IndexDecl,
    RelationDecl,
    TableDecl,
)
from row_graph.metadata.model import (
    ColumnMetadata,
    EntityMetadata,
    IndexMetadata,
    RelationMetadata,
    TableMetadata,
)
from row_graph.metadata.registry import MetadataRegistry

__all__ = [
    "MetadataRegistry",
    "entity",
    "EntityDeclarationBuilder",
    "TableDecl",
    "ColumnDecl",
    "RelationDecl",
    "IndexDecl",
    "CascadeOptions",
    "TableMetadata",
    "ColumnMetadata",
    "RelationMetadata",
    "IndexMetadata",
    "EntityMetadata",
]

"""Engine configuration.

GraphConfig is a Pydantic model shared by the hydrator and the repository.
"""

from __future__ import annotations

from pydantic import BaseModel, field_validator


class GraphConfig(BaseModel):
    """Configuration for hydration and lifecycle broadcasting."""

    alias_separator: str = "_"
    strict: bool = False
    broadcast_load: bool = True

    @field_validator("alias_separator")
    @classmethod
    def _separator_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("alias_separator must not be empty")
        return value


DEFAULT_CONFIG = GraphConfig()

"""Entity construction.

Supports dataclasses, Pydantic models, and plain classes. Hydrated values
are assigned without running validation: rows are trusted to carry what
the database stored.
"""

from __future__ import annotations

import dataclasses
from typing import Any

from pydantic import BaseModel

from row_graph.core.exceptions import EntityConstructionError


class _NotLoaded:
    """Marks a relation slot the query did not request."""

    _instance: _NotLoaded | None = None

    def __new__(cls) -> _NotLoaded:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_LOADED"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "NOT_LOADED"


NOT_LOADED: Any = _NotLoaded()


def is_loaded(value: Any) -> bool:
    """True unless ``value`` is the NOT_LOADED marker."""
    return value is not NOT_LOADED


def _is_pydantic_model(cls: type) -> bool:
    """Check if a class is a Pydantic BaseModel."""
    return isinstance(cls, type) and issubclass(cls, BaseModel)


def set_value(entity: Any, property_name: str, value: Any) -> None:
    """Assign an attribute, including on frozen dataclasses."""
    object.__setattr__(entity, property_name, value)


def create_entity(target_class: type, values: dict[str, Any]) -> Any:
    """Instantiate ``target_class`` and assign ``values``.

    Detection order:
    1. Pydantic BaseModel -> model_construct(**values)
    2. dataclass -> constructor, required fields missing from values get None
    3. Plain class -> instance created without calling __init__

    Raises:
        EntityConstructionError: If the class refuses construction.
    """
    try:
        if _is_pydantic_model(target_class):
            return target_class.model_construct(**values)  # type: ignore[attr-defined]

        if dataclasses.is_dataclass(target_class):
            init_values: dict[str, Any] = {}
            for f in dataclasses.fields(target_class):
                if not f.init:
                    continue
                if f.name in values:
                    init_values[f.name] = values[f.name]
                elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                    init_values[f.name] = None
            instance = target_class(**init_values)
            for name, value in values.items():
                if name not in init_values:
                    set_value(instance, name, value)
            return instance

        instance = target_class.__new__(target_class)
        for name, value in values.items():
            set_value(instance, name, value)
        return instance
    except (TypeError, ValueError, AttributeError) as e:
        raise EntityConstructionError(target_class.__name__, str(e)) from e

"""Subscriber layer - lifecycle events and their broadcaster."""

from __future__ import annotations

from row_graph.subscriber.broadcaster import Broadcaster
from row_graph.subscriber.events import (
    ANY,
    EntitySubscriber,
    InsertEvent,
    LifecycleEvent,
    LoadEvent,
    RemoveEvent,
    UpdateEvent,
)

__all__ = [
    "Broadcaster",
    "EntitySubscriber",
    "ANY",
    "LifecycleEvent",
    "InsertEvent",
    "UpdateEvent",
    "RemoveEvent",
    "LoadEvent",
]

"""Shared test fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from row_graph.metadata.registry import MetadataRegistry
from row_graph.subscriber.broadcaster import Broadcaster


class RecordingSubscriber:
    """Subscriber recording every event it receives as ``(phase, entity)``."""

    def __init__(self, target: Any = None) -> None:
        self.target = target
        self.events: list[tuple[str, Any]] = []

    def listen_to(self) -> Any:
        return self.target

    def before_insert(self, event: Any) -> None:
        self.events.append(("before_insert", event.entity))

    def after_insert(self, event: Any) -> None:
        self.events.append(("after_insert", event.entity))

    def before_update(self, event: Any) -> None:
        self.events.append(("before_update", event.entity))

    def after_update(self, event: Any) -> None:
        self.events.append(("after_update", event.entity))

    def before_remove(self, event: Any) -> None:
        self.events.append(("before_remove", event.entity))

    def after_remove(self, event: Any) -> None:
        self.events.append(("after_remove", event.entity))

    def after_load(self, event: Any) -> None:
        self.events.append(("after_load", event.entity))

    @property
    def phases(self) -> list[str]:
        return [phase for phase, _ in self.events]


@pytest.fixture
def empty_registry() -> MetadataRegistry:
    """Registry with nothing registered."""
    return MetadataRegistry()


@pytest.fixture
def broadcaster() -> Broadcaster:
    return Broadcaster()


@pytest.fixture
def recorder(broadcaster: Broadcaster) -> RecordingSubscriber:
    """A RecordingSubscriber listening to every entity, already subscribed."""
    subscriber = RecordingSubscriber()
    broadcaster.subscribe(subscriber)
    return subscriber

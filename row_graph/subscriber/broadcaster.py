"""Lifecycle broadcaster.

Dispatches lifecycle events to registered subscribers synchronously, in
registration order. A subscriber exception propagates unchanged and the
remaining subscribers are not called.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from row_graph.core.enums import LifecyclePhase
from row_graph.metadata.model import EntityMetadata
from row_graph.subscriber.events import ANY, HANDLER_NAMES, LifecycleEvent, LoadEvent

logger = logging.getLogger(__name__)


def _is_allowed(subscriber: Any, entity_type: type) -> bool:
    listen_to = getattr(subscriber, "listen_to", None)
    if listen_to is None:
        return True
    target = listen_to() if callable(listen_to) else listen_to
    return target is None or target is ANY or target is object or target is entity_type


class Broadcaster:
    """Subscriber registry and event dispatcher."""

    def __init__(self, subscribers: Iterable[Any] = ()) -> None:
        self._subscribers: list[Any] = list(subscribers)

    def subscribe(self, subscriber: Any) -> Any:
        """Register ``subscriber`` and return it."""
        self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Any) -> None:
        """Remove ``subscriber``.

        Raises:
            ValueError: If it was never subscribed.
        """
        self._subscribers.remove(subscriber)

    @property
    def subscribers(self) -> tuple[Any, ...]:
        return tuple(self._subscribers)

    def notify(self, phase: LifecyclePhase, entity_type: type, event: LifecycleEvent) -> int:
        """Deliver ``event`` to every matching subscriber.

        Returns:
            Number of subscribers whose handler was called.
        """
        handler_name = HANDLER_NAMES[phase]
        delivered = 0
        for subscriber in tuple(self._subscribers):
            if not _is_allowed(subscriber, entity_type):
                continue
            handler = getattr(subscriber, handler_name, None)
            if handler is None:
                continue
            handler(event)
            delivered += 1
        if delivered:
            logger.debug(
                "Delivered %s for %s to %d subscribers",
                phase.value,
                entity_type.__name__,
                delivered,
            )
        return delivered

    def broadcast_load(self, entities: Iterable[Any], metadata: EntityMetadata) -> None:
        """Fire AFTER_LOAD once for each of ``entities``."""
        if not self._subscribers:
            return
        for entity in entities:
            self.notify(LifecyclePhase.AFTER_LOAD, metadata.target, LoadEvent(entity, metadata))

    def __len__(self) -> int:
        """Number of registered subscribers."""
        return len(self._subscribers)

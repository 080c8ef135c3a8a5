"""Contract tests for handler, naming, subscriber and mapper protocols."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from unittest.mock import AsyncMock

import pytest

from row_graph.core.naming import DefaultNamingStrategy, NamingStrategy
from row_graph.mapping.alias import AliasMap
from row_graph.mapping.hydrator import AliasMapper, Hydrator
from row_graph.mapping.protocol import Mapper
from row_graph.metadata.builder import entity
from row_graph.metadata.registry import MetadataRegistry
from row_graph.persistence.executor import AsyncPersistHandler, PersistHandler, PlanExecutor
from row_graph.persistence.planner import CascadePlanner
from row_graph.subscriber.broadcaster import Broadcaster


@dataclass
class Note:
    id: int | None = None
    text: str | None = None


class SyncHandler:
    def __init__(self) -> None:
        self.inserted: list[Any] = []

    def insert(self, operation: Any) -> int:
        self.inserted.append(operation.entity)
        return len(self.inserted)

    def update(self, operation: Any) -> None:
        pass

    def remove(self, operation: Any) -> None:
        pass

    def insert_junction(self, operation: Any) -> None:
        pass

    def remove_junction(self, operation: Any) -> None:
        pass


class AsyncHandler:
    async def insert(self, operation: Any) -> None:
        pass

    async def update(self, operation: Any) -> None:
        pass

    async def remove(self, operation: Any) -> None:
        pass

    async def insert_junction(self, operation: Any) -> None:
        pass

    async def remove_junction(self, operation: Any) -> None:
        pass


class InsertOnlySubscriber:
    def __init__(self) -> None:
        self.seen: list[str] = []

    def after_insert(self, event: Any) -> None:
        self.seen.append(event.entity.text)


@pytest.fixture
def registry() -> MetadataRegistry:
    registry = MetadataRegistry()
    entity(Note).primary("id").column("text").register(registry)
    registry.build()
    return registry


class TestPersistHandlerProtocol:
    def test_sync_handler(self) -> None:
        assert isinstance(SyncHandler(), PersistHandler)

    def test_async_handler(self) -> None:
        assert isinstance(AsyncHandler(), AsyncPersistHandler)
        assert isinstance(AsyncMock(), AsyncPersistHandler)

    def test_partial_handler_is_rejected(self) -> None:
        class InsertOnly:
            def insert(self, operation: Any) -> None:
                pass

        assert not isinstance(InsertOnly(), PersistHandler)

    def test_handler_drives_executor(self, registry: MetadataRegistry) -> None:
        handler = SyncHandler()
        note = Note(text="n")

        PlanExecutor(handler).execute(CascadePlanner(registry).plan(None, note))

        assert handler.inserted == [note]
        assert note.id == 1


class TestNamingStrategyProtocol:
    def test_default_strategy(self) -> None:
        assert isinstance(DefaultNamingStrategy(), NamingStrategy)

    def test_custom_strategy(self, registry: MetadataRegistry) -> None:
        class Prefixed(DefaultNamingStrategy):
            def table_name(self, class_name: str) -> str:
                return f"app_{super().table_name(class_name)}"

        assert isinstance(Prefixed(), NamingStrategy)
        custom = MetadataRegistry(naming_strategy=Prefixed())
        entity(Note).primary("id").register(custom)
        custom.build()
        assert custom.find(Note).table_name == "app_note"


class TestSubscriberProtocol:
    def test_partial_subscriber(self, registry: MetadataRegistry) -> None:
        subscriber = InsertOnlySubscriber()
        broadcaster = Broadcaster([subscriber])
        plan = CascadePlanner(registry).plan(None, Note(id=1, text="hello"))

        PlanExecutor(SyncHandler(), broadcaster).execute(plan)

        assert subscriber.seen == ["hello"]


class TestMapperProtocol:
    def test_alias_mapper(self, registry: MetadataRegistry) -> None:
        alias_map = AliasMap(registry)
        alias_map.add_root_alias("n", Note)
        mapper: Mapper[Note] = Hydrator(registry).mapper(alias_map)

        assert isinstance(mapper, AliasMapper)
        notes = mapper.map_many([{"n_id": 1, "n_text": "a"}, {"n_id": 2, "n_text": "b"}])
        assert [n.text for n in notes] == ["a", "b"]

    def test_map_one_not_supported(self, registry: MetadataRegistry) -> None:
        alias_map = AliasMap(registry)
        alias_map.add_root_alias("n", Note)
        with pytest.raises(NotImplementedError):
            Hydrator(registry).mapper(alias_map).map_one({"n_id": 1})

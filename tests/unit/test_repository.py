"""Unit tests for Repository and AsyncRepository base classes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from row_graph.core.exceptions import PersistenceError
from row_graph.mapping.factory import NOT_LOADED
from row_graph.mapping.hydrator import Hydrator
from row_graph.metadata.builder import entity
from row_graph.metadata.registry import MetadataRegistry
from row_graph.persistence.operations import PlanState
from row_graph.repository.base import AsyncRepository, Repository


@dataclass
class User:
    id: int | None = None
    name: str | None = None
    orders: Any = field(default_factory=list)


@dataclass
class Order:
    id: int | None = None
    total: float | None = None


@pytest.fixture
def registry() -> MetadataRegistry:
    registry = MetadataRegistry()
    entity(User).primary("id").column("name").one_to_many(
        "orders", Order, cascade=True
    ).register(registry)
    entity(Order).primary("id").column("total").register(registry)
    registry.build()
    return registry


ROWS = [
    {"u_id": 1, "u_name": "Alice", "o_id": 10, "o_total": 9.5},
    {"u_id": 1, "u_name": "Alice", "o_id": 11, "o_total": 3.0},
]


class TestRepository:
    def test_attributes(self, registry: MetadataRegistry) -> None:
        engine = MagicMock()
        repo = Repository(engine, registry)
        assert repo.engine is engine
        assert repo.registry is registry
        assert isinstance(repo.hydrator, Hydrator)
        assert repo.handler is None

    def test_load_hydrates_engine_rows(self, registry: MetadataRegistry) -> None:
        engine = MagicMock()
        engine.fetch_all.return_value = ROWS
        repo: Repository[User] = Repository(engine, registry)
        alias_map = repo.alias_map("u", User)
        alias_map.add_alias("o", "u", "orders")

        users = repo.load("user.with_orders", alias_map, {"id": 1})

        engine.fetch_all.assert_called_once_with("user.with_orders", {"id": 1})
        assert len(users) == 1
        assert [o.total for o in users[0].orders] == [9.5, 3.0]

    def test_subclass_delegates_to_load(self, registry: MetadataRegistry) -> None:
        engine = MagicMock()
        engine.fetch_all.return_value = ROWS

        class UserRepo(Repository[User]):
            def get(self, user_id: int) -> User | None:
                alias_map = self.alias_map("u", User)
                users = self.load("user.get", alias_map, {"id": user_id})
                return users[0] if users else None

        user = UserRepo(engine, registry).get(1)
        assert user is not None
        assert user.name == "Alice"
        assert user.orders is NOT_LOADED

    def test_plan_save(self, registry: MetadataRegistry) -> None:
        repo = Repository(MagicMock(), registry)
        plan = repo.plan_save(User(id=1, name="A"), User(id=1, name="B", orders=[Order(total=1)]))
        assert len(plan.inserts) == 1
        assert plan.updates[0].changed_properties == ("name",)

    def test_save_without_handler(self, registry: MetadataRegistry) -> None:
        repo = Repository(MagicMock(), registry)
        with pytest.raises(PersistenceError, match="No persist handler"):
            repo.save(None, User(name="A"))

    def test_save_executes_plan(self, registry: MetadataRegistry) -> None:
        handler = MagicMock()
        handler.insert.return_value = 3
        repo = Repository(MagicMock(), registry, handler=handler)
        user = User(name="A")

        plan = repo.save(None, user)

        handler.insert.assert_called_once()
        assert user.id == 3
        assert plan.state is PlanState.EXECUTED

    def test_remove_with_explicit_handler(self, registry: MetadataRegistry) -> None:
        handler = MagicMock()
        repo = Repository(MagicMock(), registry)
        user = User(id=1, orders=[Order(id=10)])

        plan = repo.remove(user, handler=handler)

        assert handler.remove.call_count == 2
        assert [op.entity for op in plan.removes] == [user, user.orders[0]]


class TestAsyncRepository:
    def test_attributes(self, registry: MetadataRegistry) -> None:
        engine = AsyncMock()
        repo = AsyncRepository(engine, registry)
        assert repo.engine is engine
        assert repo.handler is None

    async def test_load(self, registry: MetadataRegistry) -> None:
        engine = AsyncMock()
        engine.fetch_all.return_value = ROWS
        repo: AsyncRepository[User] = AsyncRepository(engine, registry)
        alias_map = repo.alias_map("u", User)

        users = await repo.load("user.list", alias_map)

        engine.fetch_all.assert_awaited_once_with("user.list", None)
        assert users[0].orders is NOT_LOADED
        assert users[0].name == "Alice"

    async def test_save_and_remove(self, registry: MetadataRegistry) -> None:
        handler = AsyncMock()
        handler.insert.return_value = 8
        repo = AsyncRepository(AsyncMock(), registry, handler=handler)
        user = User(name="A")

        await repo.save(None, user)
        assert user.id == 8

        plan = await repo.remove(user)
        handler.remove.assert_awaited_once()
        assert plan.state is PlanState.EXECUTED

    async def test_save_without_handler(self, registry: MetadataRegistry) -> None:
        repo = AsyncRepository(AsyncMock(), registry)
        with pytest.raises(PersistenceError):
            await repo.save(None, User(name="A"))

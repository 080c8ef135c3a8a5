"""Integration test for the SQLite load/save/remove workflow.

Covers: joined-row hydration, cascade planning against a loaded graph,
plan execution through a real handler, and lifecycle events, end-to-end
against a SQLite in-memory database.
"""

from __future__ import annotations

import copy
import sqlite3
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import pytest

from row_graph.core.config import GraphConfig
from row_graph.mapping.factory import NOT_LOADED
from row_graph.metadata.builder import entity
from row_graph.metadata.registry import MetadataRegistry
from row_graph.persistence.operations import (
    InsertOperation,
    JunctionOperation,
    RemoveOperation,
    UpdateOperation,
)
from row_graph.repository.base import Repository
from row_graph.subscriber.broadcaster import Broadcaster

# --- Test models ---


@dataclass
class Post:
    id: int | None = None
    title: str | None = None
    comments: Any = field(default_factory=list)
    tags: Any = field(default_factory=list)


@dataclass
class Comment:
    id: int | None = None
    body: str | None = None
    post: Any = None


@dataclass
class Tag:
    id: int | None = None
    name: str | None = None


SCHEMA = """
CREATE TABLE post (id INTEGER PRIMARY KEY, title TEXT NOT NULL);
CREATE TABLE comment (
    id INTEGER PRIMARY KEY,
    body TEXT NOT NULL,
    post_id INTEGER REFERENCES post(id)
);
CREATE TABLE tag (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
CREATE TABLE post_tag (post_id INTEGER NOT NULL, tag_id INTEGER NOT NULL);

INSERT INTO post (id, title) VALUES (1, 'Hello');
INSERT INTO comment (id, body, post_id) VALUES (10, 'first', 1), (11, 'second', 1);
INSERT INTO tag (id, name) VALUES (1, 'python');
INSERT INTO post_tag (post_id, tag_id) VALUES (1, 1);
"""

QUERIES = {
    "post.get_with_comments_and_tags": """
        SELECT p.id AS p_id, p.title AS p_title,
               c.id AS c_id, c.body AS c_body, c.post_id AS c_post_id,
               t.id AS t_id, t.name AS t_name
        FROM post p
        LEFT JOIN comment c ON c.post_id = p.id
        LEFT JOIN post_tag pt ON pt.post_id = p.id
        LEFT JOIN tag t ON t.id = pt.tag_id
        WHERE p.id = :id
        ORDER BY c.id, t.id
    """,
}


# --- Storage side ---


class SqliteEngine:
    """Runs named queries and returns rows as dicts."""

    def __init__(self, conn: sqlite3.Connection, queries: dict[str, str]) -> None:
        self.conn = conn
        self.queries = queries

    def fetch_all(self, query_name: str, params: dict[str, Any] | None = None) -> list[dict]:
        cursor = self.conn.execute(self.queries[query_name], params or {})
        return [dict(row) for row in cursor.fetchall()]


class SqliteHandler:
    """PersistHandler writing plan operations to SQLite."""

    def __init__(self, conn: sqlite3.Connection, registry: MetadataRegistry) -> None:
        self.conn = conn
        self.registry = registry

    def insert(self, operation: InsertOperation) -> int:
        metadata = operation.metadata
        values: dict[str, Any] = {}
        for column in metadata.persisted_columns:
            value = column.get_value(operation.entity)
            if column.is_primary and value is None:
                continue
            values[column.database_name] = value

        relation = operation.relation
        inverse = relation.inverse_relation if relation is not None else None
        if inverse is not None and inverse.join_column and relation.is_one_to_many:
            parent_metadata = self.registry.find_for(operation.parent)
            values[inverse.join_column] = parent_metadata.get_entity_id(operation.parent)[0]

        names = ", ".join(values)
        placeholders = ", ".join(f":{name}" for name in values)
        cursor = self.conn.execute(
            f"INSERT INTO {metadata.table_name} ({names}) VALUES ({placeholders})", values
        )
        return cursor.lastrowid

    def update(self, operation: UpdateOperation) -> None:
        metadata = operation.metadata
        params = {c.database_name: c.get_value(operation.entity) for c in operation.changed_columns}
        assignments = ", ".join(f"{name} = :{name}" for name in params)
        where, key = self._where(metadata, operation.entity_id)
        self.conn.execute(
            f"UPDATE {metadata.table_name} SET {assignments} WHERE {where}", {**params, **key}
        )

    def remove(self, operation: RemoveOperation) -> None:
        metadata = operation.metadata
        where, key = self._where(metadata, operation.entity_id)
        self.conn.execute(f"DELETE FROM {metadata.table_name} WHERE {where}", key)

    def insert_junction(self, operation: JunctionOperation) -> None:
        owner_column, related_column, params = self._junction(operation)
        self.conn.execute(
            f"INSERT INTO {operation.join_table} ({owner_column}, {related_column}) "
            f"VALUES (:owner, :related)",
            params,
        )

    def remove_junction(self, operation: JunctionOperation) -> None:
        owner_column, related_column, params = self._junction(operation)
        self.conn.execute(
            f"DELETE FROM {operation.join_table} "
            f"WHERE {owner_column} = :owner AND {related_column} = :related",
            params,
        )

    @staticmethod
    def _where(metadata: Any, entity_id: tuple[Any, ...]) -> tuple[str, dict[str, Any]]:
        names = [column.database_name for column in metadata.primary_columns]
        key = {f"pk_{name}": value for name, value in zip(names, entity_id, strict=True)}
        where = " AND ".join(f"{name} = :pk_{name}" for name in names)
        return where, key

    def _junction(self, operation: JunctionOperation) -> tuple[str, str, dict[str, Any]]:
        owner_metadata = self.registry.find_for(operation.owner)
        related_metadata = operation.relation.target_metadata
        params = {
            "owner": owner_metadata.get_entity_id(operation.owner)[0],
            "related": related_metadata.get_entity_id(operation.related)[0],
        }
        return f"{owner_metadata.table_name}_id", f"{related_metadata.table_name}_id", params


# --- Fixtures ---


@pytest.fixture
def conn() -> Iterator[sqlite3.Connection]:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.executescript(SCHEMA)
    yield conn
    conn.close()


@pytest.fixture
def registry() -> MetadataRegistry:
    registry = MetadataRegistry()
    (
        entity(Post)
        .primary("id")
        .column("title")
        .one_to_many("comments", Comment, inverse_side="post", cascade=True)
        .many_to_many("tags", Tag, owning=True, cascade=["insert"])
        .register(registry)
    )
    (
        entity(Comment)
        .primary("id")
        .column("body")
        .many_to_one("post", Post, inverse_side="comments")
        .register(registry)
    )
    entity(Tag).primary("id").column("name").register(registry)
    registry.build()
    return registry


@pytest.fixture
def repo(
    conn: sqlite3.Connection, registry: MetadataRegistry, broadcaster: Broadcaster
) -> Repository[Post]:
    return Repository(
        SqliteEngine(conn, QUERIES),
        registry,
        handler=SqliteHandler(conn, registry),
        config=GraphConfig(strict=True),
        broadcaster=broadcaster,
    )


def _load_post(repo: Repository[Post], post_id: int) -> Post | None:
    alias_map = repo.alias_map("p", Post)
    alias_map.add_alias("c", "p", "comments")
    alias_map.add_alias("t", "p", "tags")
    posts = repo.load("post.get_with_comments_and_tags", alias_map, {"id": post_id})
    return posts[0] if posts else None


def _count(conn: sqlite3.Connection, table: str) -> int:
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


# --- Tests ---


class TestSqliteWorkflow:
    def test_load_graph(self, repo: Repository[Post], recorder: Any) -> None:
        post = _load_post(repo, 1)

        assert post is not None
        assert post.title == "Hello"
        assert [(c.id, c.body) for c in post.comments] == [(10, "first"), (11, "second")]
        assert [t.name for t in post.tags] == ["python"]
        assert post.comments[0].post is NOT_LOADED
        assert recorder.events == [("after_load", post)]

    def test_load_missing(self, repo: Repository[Post]) -> None:
        assert _load_post(repo, 99) is None

    def test_save_changes(
        self, repo: Repository[Post], conn: sqlite3.Connection, recorder: Any
    ) -> None:
        old = _load_post(repo, 1)
        assert old is not None
        new = copy.deepcopy(old)
        new.title = "Hello again"
        new.comments = [new.comments[0], Comment(body="third")]
        new.tags = [*new.tags, Tag(name="sql")]

        plan = repo.save(old, new)

        assert plan.summary() == (
            "2 inserts, 1 updates, 1 removes, 1 junction inserts, 0 junction removes"
        )
        assert new.comments[1].id is not None
        assert new.tags[1].id is not None

        reloaded = _load_post(repo, 1)
        assert reloaded is not None
        assert reloaded.title == "Hello again"
        assert [c.body for c in reloaded.comments] == ["first", "third"]
        assert sorted(t.name for t in reloaded.tags) == ["python", "sql"]
        assert _count(conn, "comment") == 2

        phases = recorder.phases
        assert phases.count("before_insert") == phases.count("after_insert") == 2
        assert phases.count("after_update") == 1
        assert phases.count("after_remove") == 1

    def test_unlink_tag(self, repo: Repository[Post], conn: sqlite3.Connection) -> None:
        old = _load_post(repo, 1)
        assert old is not None
        new = copy.deepcopy(old)
        new.tags = []

        plan = repo.save(old, new)

        assert len(plan.junction_removes) == 1
        assert plan.removes == []
        assert _count(conn, "post_tag") == 0
        assert _count(conn, "tag") == 1

    def test_save_new_graph(self, repo: Repository[Post], conn: sqlite3.Connection) -> None:
        post = Post(title="Fresh", comments=[Comment(body="a"), Comment(body="b")])

        repo.save(None, post)

        assert post.id is not None
        reloaded = _load_post(repo, post.id)
        assert reloaded is not None
        assert [c.body for c in reloaded.comments] == ["a", "b"]
        assert reloaded.tags == []

    def test_remove_graph(
        self, repo: Repository[Post], conn: sqlite3.Connection, recorder: Any
    ) -> None:
        post = _load_post(repo, 1)
        assert post is not None

        plan = repo.remove(post)

        assert [op.entity for op in plan.removes] == [post, *post.comments]
        assert [op.related.name for op in plan.junction_removes] == ["python"]
        assert _count(conn, "post") == 0
        assert _count(conn, "comment") == 0
        assert _count(conn, "post_tag") == 0
        assert _count(conn, "tag") == 1
        assert recorder.phases[-2:] == ["before_remove", "after_remove"]
        assert recorder.events[-1] == ("after_remove", post)

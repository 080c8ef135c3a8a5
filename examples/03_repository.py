"""
Example 03: Repository Pattern

This example demonstrates a domain repository built on RowGraph's
Repository base class: loading a graph through a named query, saving an
edited copy through a persist handler, and observing lifecycle events.
"""

import copy
import sqlite3
from dataclasses import dataclass, field
from typing import Any

from row_graph import Broadcaster, MetadataRegistry, Repository, entity


@dataclass
class Project:
    id: int | None = None
    name: str | None = None
    tasks: Any = field(default_factory=list)


@dataclass
class Task:
    id: int | None = None
    title: str | None = None
    done: bool | None = None
    project: Any = None


QUERIES = {
    "project.get": """
        SELECT p.id AS p_id, p.name AS p_name,
               t.id AS t_id, t.title AS t_title, t.done AS t_done,
               t.project_id AS t_project_id
        FROM project p LEFT JOIN task t ON t.project_id = p.id
        WHERE p.id = :id ORDER BY t.id
    """,
}


class SqliteEngine:
    def __init__(self, conn):
        self.conn = conn

    def fetch_all(self, query_name, params=None):
        return [dict(row) for row in self.conn.execute(QUERIES[query_name], params or {})]


class TaskHandler:
    """Writes tasks and projects; only what this example's plans need."""

    def __init__(self, conn):
        self.conn = conn

    def insert(self, operation):
        if operation.metadata.target is Task:
            task = operation.entity
            cursor = self.conn.execute(
                "INSERT INTO task (title, done, project_id) VALUES (?, ?, ?)",
                (task.title, int(bool(task.done)), operation.parent.id),
            )
        else:
            cursor = self.conn.execute(
                "INSERT INTO project (name) VALUES (?)", (operation.entity.name,)
            )
        return cursor.lastrowid

    def update(self, operation):
        table = operation.metadata.table_name
        for column in operation.changed_columns:
            self.conn.execute(
                f"UPDATE {table} SET {column.database_name} = ? WHERE id = ?",
                (column.get_value(operation.entity), operation.entity_id[0]),
            )

    def remove(self, operation):
        table = operation.metadata.table_name
        self.conn.execute(f"DELETE FROM {table} WHERE id = ?", operation.entity_id)

    def insert_junction(self, operation):
        raise NotImplementedError

    def remove_junction(self, operation):
        raise NotImplementedError


class AuditLog:
    """Subscriber printing task changes."""

    def listen_to(self):
        return Task

    def after_insert(self, event):
        print(f"  [audit] task #{event.entity.id} created: {event.entity.title}")

    def after_update(self, event):
        print(f"  [audit] task #{event.entity.id} changed: {', '.join(event.updated_properties)}")

    def after_remove(self, event):
        print(f"  [audit] task #{event.entity_id[0]} removed")


class ProjectRepository(Repository[Project]):
    def get(self, project_id):
        alias_map = self.alias_map("p", Project)
        alias_map.add_alias("t", "p", "tasks")
        projects = self.load("project.get", alias_map, {"id": project_id})
        return projects[0] if projects else None


def main():
    registry = MetadataRegistry()
    entity(Project).primary("id").column("name").one_to_many(
        "tasks", Task, inverse_side="project", cascade=True
    ).register(registry)
    entity(Task).primary("id").column("title").column("done").many_to_one(
        "project", Project, inverse_side="tasks"
    ).register(registry)
    registry.build()

    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.executescript("""
        CREATE TABLE project (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
        CREATE TABLE task (
            id INTEGER PRIMARY KEY, title TEXT NOT NULL,
            done INTEGER NOT NULL, project_id INTEGER NOT NULL
        );
        INSERT INTO project VALUES (1, 'Launch');
        INSERT INTO task VALUES (1, 'Write docs', 0, 1), (2, 'Fix bugs', 0, 1);
    """)

    broadcaster = Broadcaster([AuditLog()])
    repo = ProjectRepository(
        SqliteEngine(conn), registry, handler=TaskHandler(conn), broadcaster=broadcaster
    )

    print("=== Repository Pattern ===\n")

    project = repo.get(1)
    print(f"Loaded {project.name} with {len(project.tasks)} tasks\n")

    edited = copy.deepcopy(project)
    edited.tasks[0].done = True
    edited.tasks = [edited.tasks[0], Task(title="Ship it", done=False)]

    print("Saving:")
    plan = repo.save(project, edited)
    print(f"  {plan.summary()}\n")

    reloaded = repo.get(1)
    for task in reloaded.tasks:
        print(f"  [{'x' if task.done else ' '}] {task.title}")

    conn.close()


if __name__ == "__main__":
    main()

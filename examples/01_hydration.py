"""
Example 01: Graph Hydration

This example demonstrates rebuilding an entity graph from joined rows
using RowGraph's AliasMap and Hydrator.
"""

import sqlite3
from dataclasses import dataclass, field
from typing import Any

from row_graph import AliasMap, Hydrator, MetadataRegistry, NOT_LOADED, entity


@dataclass
class Author:
    id: int
    name: str
    books: Any = field(default_factory=list)


@dataclass
class Book:
    id: int
    title: str
    author: Any = None


def main():
    # Declare entities
    registry = MetadataRegistry()
    entity(Author).primary("id").column("name").one_to_many(
        "books", Book, inverse_side="author"
    ).register(registry)
    entity(Book).primary("id").column("title").many_to_one(
        "author", Author, inverse_side="books"
    ).register(registry)
    registry.build()

    # Set up an in-memory database
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.executescript("""
        CREATE TABLE author (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
        CREATE TABLE book (id INTEGER PRIMARY KEY, title TEXT NOT NULL, author_id INTEGER);
        INSERT INTO author VALUES (1, 'Le Guin'), (2, 'Lem'), (3, 'Nobody');
        INSERT INTO book VALUES (10, 'The Dispossessed', 1), (11, 'Solaris', 2),
                                (12, 'The Lathe of Heaven', 1);
    """)

    rows = [
        dict(row)
        for row in conn.execute("""
            SELECT a.id AS a_id, a.name AS a_name,
                   b.id AS b_id, b.title AS b_title, b.author_id AS b_author_id
            FROM author a LEFT JOIN book b ON b.author_id = a.id
            ORDER BY a.id, b.id
        """)
    ]

    print("=== Graph Hydration ===\n")
    print(f"Query returned {len(rows)} flat rows\n")

    # Map aliases to entities and relations
    alias_map = AliasMap(registry)
    alias_map.add_root_alias("a", Author)
    alias_map.add_alias("b", "a", "books")

    authors = Hydrator(registry).hydrate(rows, alias_map)
    for author in authors:
        print(f"{author.name}:")
        for book in author.books:
            print(f"  - {book.title}")
        if not author.books:
            print("  (no books)")

    # Relations without an alias are left unloaded, not empty
    book = authors[0].books[0]
    print(f"\nbook.author loaded? {book.author is not NOT_LOADED}")

    conn.close()


if __name__ == "__main__":
    main()

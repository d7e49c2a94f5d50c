"""Neo4j schema initialization: indexes and constraints.

All statements use ``IF NOT EXISTS`` so they are safe to run repeatedly
(idempotent). Neo4j Community Edition only enforces uniqueness, so the
per-directory link-name and single-parent rules are checked inside the
write transactions of ``Neo4jObjectStore``.
"""

from __future__ import annotations

from neo4j import AsyncDriver

_CONSTRAINTS = [
    "CREATE CONSTRAINT directory_arn IF NOT EXISTS FOR (d:Directory) REQUIRE d.arn IS UNIQUE",
    "CREATE CONSTRAINT schema_arn IF NOT EXISTS FOR (s:Schema) REQUIRE s.arn IS UNIQUE",
    "CREATE CONSTRAINT dirobject_id IF NOT EXISTS FOR (o:DirObject) REQUIRE o.id IS UNIQUE",
]

_NODE_INDEXES = [
    # Object lookup scoped to a directory
    "CREATE INDEX dirobject_directory IF NOT EXISTS FOR (o:DirObject) ON (o.directory, o.id)",
    # Root lookup for path resolution
    "CREATE INDEX dirobject_root IF NOT EXISTS FOR (o:DirObject) ON (o.directory, o.root)",
]

_REL_INDEXES = [
    # Path segment resolution
    "CREATE INDEX child_link_name IF NOT EXISTS FOR ()-[c:CHILD]-() ON (c.link_name)",
]


async def init_schema(driver: AsyncDriver, *, database: str | None = None) -> None:
    """Create all indexes and constraints (idempotent).

    Runs each statement in its own transaction to avoid batching issues
    with schema commands in Neo4j.
    """
    async with driver.session(database=database) as session:
        for stmt in _CONSTRAINTS + _NODE_INDEXES + _REL_INDEXES:
            await session.run(stmt)

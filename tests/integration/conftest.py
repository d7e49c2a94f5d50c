"""Integration fixtures: swap the in-memory store for Neo4j."""

from __future__ import annotations

import pytest
from neo4j import AsyncGraphDatabase

from dirgraph.store.graph import Neo4jObjectStore
from dirgraph.store.graph_schema import init_schema


@pytest.fixture()
async def neo4j_driver(neo4j_container):
    """Yield an async Neo4j driver connected to the test container."""
    driver = AsyncGraphDatabase.driver(neo4j_container)
    yield driver
    await driver.close()


@pytest.fixture(autouse=True)
async def clean_neo4j(neo4j_driver):
    """Wipe all nodes and relationships before each test."""
    async with neo4j_driver.session() as session:
        await session.run("MATCH (n) DETACH DELETE n")
    yield


@pytest.fixture()
async def store(neo4j_driver):
    """Yield a Neo4jObjectStore with the schema initialized."""
    await init_schema(neo4j_driver)
    return Neo4jObjectStore(neo4j_driver)

"""Root conftest: suite markers, shared session fixtures and the Neo4j container.

Unit and scenario tests run against ``InMemoryObjectStore``. The
integration suite overrides the ``store`` fixture with a
``Neo4jObjectStore`` backed by a session-scoped Neo4j container.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import time

import pytest
from dotenv import load_dotenv
from neo4j import AsyncGraphDatabase
from testcontainers.core.container import DockerContainer

from dirgraph.engine import GraphBuilder
from dirgraph.engine import IndexEngine
from dirgraph.engine import QueryEngine
from dirgraph.schema import org_schema_from_config
from dirgraph.session import DirectorySession
from dirgraph.store.memory import InMemoryObjectStore

logger = logging.getLogger(__name__)

# Load repository-root .env for test opt-ins (existing env vars stay authoritative).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env", override=False)


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Attach suite markers from test path.

    - `tests/unit/*` -> `unit`
    - `tests/integration/*` -> `integration`
    - `tests/scenarios/*` -> `scenario`
    """
    root = Path(__file__).resolve().parents[1]
    for item in items:
        item_path = Path(str(item.fspath)).resolve()
        try:
            rel = item_path.relative_to(root)
        except ValueError:
            continue

        parts = rel.parts
        if len(parts) < 2 or parts[0] != "tests":
            continue
        if parts[1] == "unit":
            item.add_marker(pytest.mark.unit)
        elif parts[1] == "integration":
            item.add_marker(pytest.mark.integration)
        elif parts[1] == "scenarios":
            item.add_marker(pytest.mark.scenario)


# ---------------------------------------------------------------------------
# Directory session fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def org_schema():
    """The published four-facet org schema."""
    return org_schema_from_config()


@pytest.fixture()
def store():
    return InMemoryObjectStore()


@pytest.fixture()
async def session(store, org_schema):
    """Yield an open directory session, torn down afterwards."""
    directory = await DirectorySession.open(store, org_schema)
    yield directory
    await directory.teardown()


@pytest.fixture()
def builder(session):
    return GraphBuilder(session)


@pytest.fixture()
def query_engine(session):
    return QueryEngine(session)


@pytest.fixture()
def index_engine(session):
    return IndexEngine(session)


# ---------------------------------------------------------------------------
# Neo4j
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def neo4j_container():
    """Spin up a Neo4j Community container and yield its bolt URI.

    Session-scoped: one container for the entire test run. Skips the
    requesting tests when Docker is not reachable.
    """
    container = (
        DockerContainer("neo4j:community")
        .with_exposed_ports(7687)
        .with_env("NEO4J_AUTH", "none")
    )
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"Docker is not available for Neo4j tests: {exc}")

    try:
        host = container.get_container_host_ip()
        port = container.get_exposed_port(7687)
        uri = f"bolt://{host}:{port}"

        async def wait_for_neo4j():
            driver = AsyncGraphDatabase.driver(uri)
            max_attempts = 30
            for attempt in range(max_attempts):
                try:
                    await driver.verify_connectivity()
                    await driver.close()
                    return
                except Exception as exc:
                    if attempt == max_attempts - 1:
                        await driver.close()
                        raise
                    logger.debug(
                        "Neo4j not ready (attempt %d/%d): %s",
                        attempt + 1,
                        max_attempts,
                        exc,
                    )
                    time.sleep(1)

        asyncio.run(wait_for_neo4j())
        yield uri
    finally:
        container.stop()

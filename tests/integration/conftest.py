"""Neo4j testcontainer fixtures for integration tests."""

import time
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from testcontainers.core.container import DockerContainer

from threadgraph.config import Neo4jStorageConfig
from threadgraph.services.storage import Neo4jStorage

NEO4J_IMAGE = "neo4j:5.15-community"
NEO4J_PASSWORD = "testpassword"


@pytest.fixture(scope="session")
def neo4j_container() -> DockerContainer:
    """
    Create a Neo4j testcontainer for the session.

    Skips the integration suite when Docker is not available.
    """
    container = DockerContainer(NEO4J_IMAGE)
    container.with_exposed_ports(7687)
    container.with_env("NEO4J_AUTH", f"neo4j/{NEO4J_PASSWORD}")

    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker not available for Neo4j container: {e}")

    # Wait for Bolt to accept connections
    time.sleep(15)

    yield container
    container.stop()


@pytest.fixture(scope="session")
def storage_config(neo4j_container: DockerContainer) -> Neo4jStorageConfig:
    host = neo4j_container.get_container_host_ip()
    port = neo4j_container.get_exposed_port(7687)
    return Neo4jStorageConfig(
        uri=f"bolt://{host}:{port}",
        username="neo4j",
        password=NEO4J_PASSWORD,
        max_connection_pool_size=10,
    )


@pytest_asyncio.fixture(scope="function")
async def storage(
    storage_config: Neo4jStorageConfig,
) -> AsyncGenerator[Neo4jStorage, None]:
    """
    Initialized storage over an empty database.

    Yields:
        Neo4jStorage: Storage with schema applied
    """
    async with Neo4jStorage(storage_config) as storage:
        await storage.execute_query("MATCH (n) DETACH DELETE n")
        await storage.initialize()
        yield storage

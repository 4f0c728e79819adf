"""
Neo4j Connection Management

Builds the async Neo4j driver from storage configuration and hands out
short-lived sessions. Each unit of work gets its own session, released on
every exit path.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncSession

from threadgraph.config import Neo4jStorageConfig

logger = structlog.get_logger(__name__)


def create_driver(config: Neo4jStorageConfig) -> AsyncDriver:
    """
    Create a Neo4j async driver with connection pooling.

    Connectivity is not verified here; bad endpoints or credentials surface on
    the first query.

    Args:
        config: Storage connection parameters

    Returns:
        AsyncDriver: Configured Neo4j async driver
    """
    logger.info(
        "Creating Neo4j driver",
        uri=config.uri,
        database=config.database,
        pool_size=config.max_connection_pool_size,
    )

    return AsyncGraphDatabase.driver(
        config.uri,
        auth=(config.username, config.password),
        max_connection_lifetime=config.max_connection_lifetime,
        max_connection_pool_size=config.max_connection_pool_size,
        connection_acquisition_timeout=config.connection_acquisition_timeout,
    )


@asynccontextmanager
async def session_scope(driver: AsyncDriver, database: str) -> AsyncIterator[AsyncSession]:
    """
    Open a Neo4j async session for one unit of work.

    Example:
        async with session_scope(driver, "neo4j") as session:
            result = await session.run("MATCH (n) RETURN count(n) AS count")
            record = await result.single()
    """
    async with driver.session(database=database) as session:
        yield session

"""
Graph Schema Bootstrap

Uniqueness constraints and lookup indexes for the conversation memory graph.
Every statement is declarative (``IF NOT EXISTS``), so re-running the set
against an initialized database is a no-op.
"""

import structlog
from neo4j import AsyncSession

logger = structlog.get_logger(__name__)

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE CONSTRAINT thread_id_unique IF NOT EXISTS
    FOR (t:Thread) REQUIRE t.id IS UNIQUE
    """,
    """
    CREATE CONSTRAINT message_id_unique IF NOT EXISTS
    FOR (m:Message) REQUIRE m.id IS UNIQUE
    """,
    """
    CREATE CONSTRAINT entity_identity_unique IF NOT EXISTS
    FOR (e:Entity) REQUIRE (e.type, e.value) IS UNIQUE
    """,
    """
    CREATE INDEX thread_resource_id IF NOT EXISTS
    FOR (t:Thread) ON (t.resourceId)
    """,
    """
    CREATE INDEX message_thread_id IF NOT EXISTS
    FOR (m:Message) ON (m.threadId)
    """,
    """
    CREATE INDEX message_created_at IF NOT EXISTS
    FOR (m:Message) ON (m.createdAt)
    """,
)


async def apply_schema(session: AsyncSession) -> None:
    """
    Create constraints and indexes.

    Any failing statement propagates; callers must not treat the schema as
    ready unless this returns normally.

    Args:
        session: Neo4j async session

    Raises:
        Neo4jError: If a statement fails
    """
    for i, statement in enumerate(SCHEMA_STATEMENTS, 1):
        result = await session.run(statement)
        await result.consume()
        logger.debug(
            "Executed schema statement",
            statement_num=i,
            total=len(SCHEMA_STATEMENTS),
        )

    logger.info(
        "Graph schema applied",
        constraints=sum("CONSTRAINT" in s for s in SCHEMA_STATEMENTS),
        indexes=sum("INDEX" in s for s in SCHEMA_STATEMENTS),
    )

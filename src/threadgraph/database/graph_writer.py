"""
Graph Writer for Conversation Memory

Translates threads, messages, resources and extracted entities into Neo4j
mutations. All values are passed as query parameters; only relationship
labels from ``RelationType`` are written into statement text.

Graph shape:
- (:Thread)-[:HAS_MESSAGE]->(:Message)
- (:Message)-[:MENTIONS {confidence}]->(:Entity {type, value, confidence})
- (:Entity)-[:RELATED_TO|INTERESTED_IN|USES|IMPLEMENTS {confidence}]->(:Entity)

Entities and relations are merged on identity; their confidence is raise-only.
"""

from datetime import datetime
from typing import Any

import structlog
from neo4j import AsyncSession
from neo4j.exceptions import DriverError, Neo4jError

from threadgraph.database.mapper import (
    message_properties,
    resource_properties,
    serialize_datetime,
    serialize_metadata,
    thread_properties,
    to_message,
    to_resource,
    to_thread,
)
from threadgraph.models.memory import (
    EntityType,
    ExtractedEntity,
    Message,
    RelationType,
    Resource,
    Thread,
)
from threadgraph.models.requests import LinkingDiagnostic

logger = structlog.get_logger(__name__)

# Directional: only (first, second) in extraction order picks the specific label
RELATION_RULES: dict[tuple[EntityType, EntityType], RelationType] = {
    (EntityType.PERSON, EntityType.TOPIC): RelationType.INTERESTED_IN,
    (EntityType.PERSON, EntityType.TECHNOLOGY): RelationType.USES,
    (EntityType.TOPIC, EntityType.TECHNOLOGY): RelationType.IMPLEMENTS,
}


def relation_type(first: ExtractedEntity, second: ExtractedEntity) -> RelationType:
    """Relationship label for two entities, in extraction order."""
    return RELATION_RULES.get((first.type, second.type), RelationType.RELATED_TO)


def raise_only_confidence(alias: str) -> str:
    """Cypher expression keeping the higher of stored and ``$confidence``."""
    return (
        f"CASE WHEN {alias}.confidence IS NULL OR $confidence > {alias}.confidence "
        f"THEN $confidence ELSE {alias}.confidence END"
    )


MERGE_THREAD_QUERY = """
MERGE (t:Thread {id: $id})
ON CREATE SET t.createdAt = datetime($createdAt)
SET t.resourceId = $resourceId,
    t.title = $title,
    t.metadata = $metadata,
    t.updatedAt = CASE
        WHEN datetime($updatedAt) < t.createdAt THEN t.createdAt
        ELSE datetime($updatedAt)
    END
RETURN t
"""

CREATE_MESSAGE_QUERY = """
MERGE (t:Thread {id: $threadId})
ON CREATE SET
    t.resourceId = $threadResourceId,
    t.title = '',
    t.metadata = '{}',
    t.createdAt = datetime($createdAt),
    t.updatedAt = datetime($createdAt)
ON MATCH SET
    t.updatedAt = CASE
        WHEN t.updatedAt IS NULL OR datetime($createdAt) > t.updatedAt
        THEN datetime($createdAt)
        ELSE t.updatedAt
    END
CREATE (m:Message {
    id: $id,
    threadId: $threadId,
    role: $role,
    content: $content,
    type: $type,
    resourceId: $resourceId,
    createdAt: datetime($createdAt),
    metadata: $metadata
})
CREATE (t)-[:HAS_MESSAGE]->(m)
RETURN m
"""

LINK_ENTITY_QUERY = f"""
MATCH (m:Message {{id: $messageId}})
MERGE (e:Entity {{type: $type, value: $value}})
ON CREATE SET
    e.confidence = $confidence,
    e.createdAt = datetime()
ON MATCH SET
    e.confidence = {raise_only_confidence("e")}
CREATE (m)-[:MENTIONS {{confidence: $confidence}}]->(e)
"""

MERGE_RELATION_QUERY = """
MATCH (source:Entity {{type: $sourceType, value: $sourceValue}})
MATCH (target:Entity {{type: $targetType, value: $targetValue}})
MERGE (source)-[r:{label}]->(target)
ON CREATE SET
    r.confidence = $confidence,
    r.createdAt = datetime()
ON MATCH SET
    r.confidence = {confidence_merge}
"""


class GraphWriter:
    """Mutations for threads, messages, resources and entity links."""

    @staticmethod
    async def merge_thread(session: AsyncSession, thread: Thread) -> Thread:
        """
        Create or overwrite a Thread node, keeping its original createdAt.

        Args:
            session: Neo4j async session
            thread: Thread to store

        Returns:
            Stored thread
        """
        result = await session.run(MERGE_THREAD_QUERY, thread_properties(thread))
        record = await result.single()

        if not record:
            raise RuntimeError(f"Failed to save thread node: {thread.id}")

        logger.info(
            "Saved thread node",
            thread_id=thread.id,
            resource_id=thread.resource_id,
        )
        return to_thread(record["t"])

    @staticmethod
    async def update_thread(
        session: AsyncSession,
        thread_id: str,
        title: str,
        metadata: dict[str, Any],
        updated_at: datetime,
    ) -> Thread | None:
        query = """
        MATCH (t:Thread {id: $id})
        SET t.title = $title,
            t.metadata = $metadata,
            t.updatedAt = datetime($updatedAt)
        RETURN t
        """

        result = await session.run(
            query,
            {
                "id": thread_id,
                "title": title,
                "metadata": serialize_metadata(metadata),
                "updatedAt": serialize_datetime(updated_at),
            },
        )
        record = await result.single()

        logger.info("Updated thread node", thread_id=thread_id, found=record is not None)
        return to_thread(record["t"]) if record else None

    @staticmethod
    async def delete_thread(session: AsyncSession, thread_id: str) -> None:
        """
        Delete a Thread node and its relationships.

        Messages of the thread are detached, not deleted; they stay
        retrievable by id.
        """
        query = """
        MATCH (t:Thread {id: $id})
        DETACH DELETE t
        """

        result = await session.run(query, {"id": thread_id})
        await result.consume()

        logger.info("Deleted thread node", thread_id=thread_id)

    @staticmethod
    async def create_message(session: AsyncSession, message: Message) -> Message:
        """
        Create a Message node and its containment edge in one statement.

        The owning thread is merged on ``message.thread_id``, so a message for
        an unknown thread creates that thread with default fields. Appending
        moves an existing thread's updatedAt forward.

        Args:
            session: Neo4j async session
            message: Message to store

        Returns:
            Stored message

        Raises:
            Neo4jError: If the write fails (e.g. duplicate message id)
        """
        params = message_properties(message)
        params["threadResourceId"] = message.resource_id or ""

        result = await session.run(CREATE_MESSAGE_QUERY, params)
        record = await result.single()

        if not record:
            raise RuntimeError(f"Failed to create message node: {message.id}")

        logger.info(
            "Created message node",
            message_id=message.id,
            thread_id=message.thread_id,
            role=message.role.value,
        )
        return to_message(record["m"])

    @staticmethod
    async def link_entities(
        session: AsyncSession,
        message_id: str,
        entities: list[ExtractedEntity],
    ) -> list[LinkingDiagnostic]:
        """
        Upsert entities mentioned by a message and relate co-occurring pairs.

        Each entity and each pair is written independently; a failed write is
        logged and reported, and the remaining writes still run.

        Args:
            session: Neo4j async session
            message_id: Mentioning message ID
            entities: Entities in extraction order

        Returns:
            One diagnostic per failed write (empty when fully linked)
        """
        diagnostics: list[LinkingDiagnostic] = []

        for entity in entities:
            try:
                result = await session.run(
                    LINK_ENTITY_QUERY,
                    {
                        "messageId": message_id,
                        "type": entity.type.value,
                        "value": entity.value,
                        "confidence": entity.confidence,
                    },
                )
                await result.consume()

                logger.debug(
                    "Linked entity to message",
                    message_id=message_id,
                    entity_type=entity.type.value,
                    value=entity.value,
                )

            except (Neo4jError, DriverError) as e:
                logger.warning(
                    "Failed to link entity",
                    error=str(e),
                    message_id=message_id,
                    entity_type=entity.type.value,
                    value=entity.value,
                )
                diagnostics.append(
                    LinkingDiagnostic(
                        stage="entity",
                        target=f"{entity.type.value}:{entity.value}",
                        error=str(e),
                    )
                )

        if len(entities) < 2:
            return diagnostics

        for i, source in enumerate(entities):
            for target in entities[i + 1 :]:
                label = relation_type(source, target)
                try:
                    await GraphWriter.merge_relation(session, source, target, label)
                except (Neo4jError, DriverError) as e:
                    logger.warning(
                        "Failed to relate entities",
                        error=str(e),
                        message_id=message_id,
                        source=source.value,
                        target=target.value,
                        type=label.value,
                    )
                    diagnostics.append(
                        LinkingDiagnostic(
                            stage="relation",
                            target=(
                                f"{source.type.value}:{source.value}"
                                f"-[{label.value}]->"
                                f"{target.type.value}:{target.value}"
                            ),
                            error=str(e),
                        )
                    )

        return diagnostics

    @staticmethod
    async def merge_relation(
        session: AsyncSession,
        source: ExtractedEntity,
        target: ExtractedEntity,
        label: RelationType,
    ) -> None:
        """Merge a relation edge; confidence is the weaker entity's, raise-only."""
        query = MERGE_RELATION_QUERY.format(
            label=label.value,
            confidence_merge=raise_only_confidence("r"),
        )

        result = await session.run(
            query,
            {
                "sourceType": source.type.value,
                "sourceValue": source.value,
                "targetType": target.type.value,
                "targetValue": target.value,
                "confidence": min(source.confidence, target.confidence),
            },
        )
        await result.consume()

        logger.debug(
            "Merged entity relation",
            source=source.value,
            target=target.value,
            type=label.value,
        )

    @staticmethod
    async def update_message(
        session: AsyncSession, message_id: str, properties: dict[str, Any]
    ) -> Message | None:
        """Set the given properties on a message; ``None`` if it does not exist."""
        query = """
        MATCH (m:Message {id: $id})
        SET m += $properties
        RETURN m
        """

        result = await session.run(query, {"id": message_id, "properties": properties})
        record = await result.single()

        logger.info(
            "Updated message node",
            message_id=message_id,
            fields=sorted(properties),
            found=record is not None,
        )
        return to_message(record["m"]) if record else None

    @staticmethod
    async def delete_messages(session: AsyncSession, message_ids: list[str]) -> None:
        """Delete messages with their containment and mention edges."""
        query = """
        UNWIND $ids AS messageId
        MATCH (m:Message {id: messageId})
        DETACH DELETE m
        """

        result = await session.run(query, {"ids": message_ids})
        await result.consume()

        logger.info("Deleted message nodes", count=len(message_ids))

    @staticmethod
    async def merge_resource(session: AsyncSession, resource: Resource) -> Resource:
        query = """
        MERGE (r:Resource {id: $id})
        ON CREATE SET r.createdAt = datetime($createdAt)
        SET r.workingMemory = $workingMemory,
            r.metadata = $metadata,
            r.updatedAt = datetime($updatedAt)
        RETURN r
        """

        result = await session.run(query, resource_properties(resource))
        record = await result.single()

        if not record:
            raise RuntimeError(f"Failed to save resource node: {resource.id}")

        logger.info("Saved resource node", resource_id=resource.id)
        return to_resource(record["r"])

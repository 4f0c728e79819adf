"""
Neo4jStorage - Graph-Backed Conversation Memory Store

Public storage contract consumed by the agent memory subsystem:
- Thread CRUD and resource-scoped listing (plain and paginated)
- Message save with entity extraction and graph linking, reads by thread,
  by id and by page, field-level updates and bulk deletes
- Resource save, lookup and update
- Parameterized query escape hatch, sequential batch execution, health probe

Every public operation opens its own short-lived session; the storage object
holds the driver and the schema state only, so concurrent callers never share
a session.

Example:
    ```python
    storage = Neo4jStorage(Settings().to_storage_config())
    await storage.initialize()

    result = await storage.save_message(
        Message(thread_id="thread-1", role=MessageRole.USER, content="Hi, I'm Dawn")
    )
    messages = await storage.get_messages(MessageListRequest(thread_id="thread-1"))
    ```
"""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog
from neo4j import AsyncDriver, AsyncSession
from neo4j.exceptions import Neo4jError

from threadgraph.config import Neo4jStorageConfig
from threadgraph.database.connection import create_driver, session_scope
from threadgraph.database.graph_reader import GraphReader, resolve_message_limit
from threadgraph.database.graph_writer import GraphWriter
from threadgraph.database.mapper import serialize_metadata
from threadgraph.database.schema import apply_schema
from threadgraph.models.memory import Message, Resource, Thread
from threadgraph.models.requests import (
    DEFAULT_MESSAGE_LIMIT,
    BatchStatement,
    MessageListRequest,
    MessagePageRequest,
    PaginatedMessages,
    PaginatedThreads,
    SaveMessageResult,
    StorageSupports,
    ThreadListRequest,
    ThreadPageRequest,
    UpdateMessageRequest,
    UpdateResourceRequest,
    UpdateThreadRequest,
    has_more_pages,
)
from threadgraph.services.entity_extractor import extract_entities
from threadgraph.services.unsupported import UnsupportedCapabilities

logger = structlog.get_logger(__name__)


class SchemaState(str, Enum):
    """Schema bootstrap state of a storage instance."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"


class Neo4jStorage:
    """
    Conversation memory storage backed by Neo4j.

    Attributes:
        config: Connection parameters
        database: Target Neo4j database name
        driver: Shared async driver (connection pool)
        schema_state: UNINITIALIZED until ``initialize`` succeeds
        unsupported: No-op workflow/score/eval/trace/table operations
    """

    def __init__(
        self,
        config: Neo4jStorageConfig,
        driver: AsyncDriver | None = None,
        default_message_limit: int = DEFAULT_MESSAGE_LIMIT,
    ):
        """
        Initialize Neo4jStorage.

        Args:
            config: Connection parameters
            driver: Optional pre-built driver (built from ``config`` otherwise)
            default_message_limit: Message cap when ``last`` is unset
        """
        self.config = config
        self.database = config.database
        self.driver = driver or create_driver(config)
        self.default_message_limit = default_message_limit
        self.schema_state = SchemaState.UNINITIALIZED
        self.unsupported = UnsupportedCapabilities()

    async def __aenter__(self) -> "Neo4jStorage":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with session_scope(self.driver, self.database) as session:
            yield session

    @property
    def has_initialized(self) -> bool:
        return self.schema_state is SchemaState.READY

    @property
    def supports(self) -> StorageSupports:
        return StorageSupports()

    async def initialize(self) -> None:
        """
        Create constraints and indexes once per storage instance.

        Later calls return immediately without contacting the store. A failed
        statement propagates and leaves the schema UNINITIALIZED.
        """
        if self.schema_state is SchemaState.READY:
            return

        try:
            async with self._session() as session:
                await apply_schema(session)
        except Neo4jError as e:
            logger.error("Failed to initialize graph schema", error=str(e))
            raise

        self.schema_state = SchemaState.READY
        logger.info("Neo4jStorage initialized", database=self.database)

    async def init(self) -> None:
        await self.initialize()

    async def close(self) -> None:
        """Close the driver and its connection pool."""
        await self.driver.close()
        logger.info("Neo4jStorage closed")

    # Threads

    async def save_thread(self, thread: Thread) -> Thread:
        async with self._session() as session:
            return await GraphWriter.merge_thread(session, thread)

    async def get_thread_by_id(self, thread_id: str) -> Thread | None:
        async with self._session() as session:
            return await GraphReader.get_thread(session, thread_id)

    async def get_threads_by_resource_id(
        self, request: ThreadListRequest
    ) -> list[Thread]:
        async with self._session() as session:
            return await GraphReader.get_threads_by_resource(
                session,
                request.resource_id,
                order_by=request.order_by,
                direction=request.sort_direction,
            )

    async def get_threads_by_resource_id_paginated(
        self, request: ThreadPageRequest
    ) -> PaginatedThreads:
        async with self._session() as session:
            total = await GraphReader.count_threads(session, request.resource_id)
            threads = await GraphReader.get_threads_by_resource(
                session,
                request.resource_id,
                order_by=request.order_by,
                direction=request.sort_direction,
                skip=request.page * request.per_page,
                limit=request.per_page,
            )

        return PaginatedThreads(
            threads=threads,
            total=total,
            page=request.page,
            per_page=request.per_page,
            has_more=has_more_pages(request.page, request.per_page, total),
        )

    async def update_thread(self, request: UpdateThreadRequest) -> Thread | None:
        """
        Update a thread's title and/or metadata.

        Metadata is shallow-merged into the stored map.

        Returns:
            Updated thread, or None if no thread has this id
        """
        async with self._session() as session:
            existing = await GraphReader.get_thread(session, request.id)
            if existing is None:
                logger.info("Thread not found for update", thread_id=request.id)
                return None

            return await GraphWriter.update_thread(
                session,
                request.id,
                title=request.title if request.title is not None else existing.title,
                metadata={**existing.metadata, **(request.metadata or {})},
                updated_at=max(datetime.now(UTC), existing.created_at),
            )

    async def delete_thread(self, thread_id: str) -> None:
        """Delete a thread node; its messages remain and are only detached."""
        async with self._session() as session:
            await GraphWriter.delete_thread(session, thread_id)

    # Messages

    async def save_message(self, message: Message) -> SaveMessageResult:
        """
        Store a message, then link the entities found in its content.

        The message and its containment edge are committed before any entity
        write starts. Entity and relation failures do not fail the save; they
        are returned as diagnostics.

        Raises:
            Neo4jError: If the message itself cannot be stored
        """
        async with self._session() as session:
            return await self._save_message(session, message)

    async def save_messages(self, messages: Sequence[Message]) -> list[SaveMessageResult]:
        if not messages:
            return []

        async with self._session() as session:
            return [await self._save_message(session, message) for message in messages]

    async def _save_message(
        self, session: AsyncSession, message: Message
    ) -> SaveMessageResult:
        stored = await GraphWriter.create_message(session, message)

        entities = extract_entities(message.content)
        if not entities:
            return SaveMessageResult(message=stored)

        diagnostics = await GraphWriter.link_entities(session, stored.id, entities)
        if diagnostics:
            logger.warning(
                "Message stored with incomplete entity links",
                message_id=stored.id,
                failures=len(diagnostics),
            )

        return SaveMessageResult(
            message=stored, entities=entities, diagnostics=diagnostics
        )

    async def get_message_by_id(self, message_id: str) -> Message | None:
        async with self._session() as session:
            return await GraphReader.get_message(session, message_id)

    async def get_messages(self, request: MessageListRequest) -> list[Message]:
        """
        Get the most recent messages of a thread, oldest first.

        ``last=False`` returns an empty list without querying the store.
        """
        limit = resolve_message_limit(request.last, self.default_message_limit)
        if limit == 0:
            return []

        async with self._session() as session:
            return await GraphReader.get_messages(
                session, request.thread_id, limit=limit, offset=request.offset
            )

    async def get_messages_by_id(self, message_ids: Sequence[str]) -> list[Message]:
        if not message_ids:
            return []

        async with self._session() as session:
            return await GraphReader.get_messages_by_ids(session, list(message_ids))

    async def get_messages_paginated(
        self, request: MessagePageRequest
    ) -> PaginatedMessages:
        async with self._session() as session:
            total = await GraphReader.count_messages(
                session, request.thread_id, request.date_range
            )
            messages = await GraphReader.get_messages_page(
                session,
                request.thread_id,
                page=request.page,
                per_page=request.per_page,
                date_range=request.date_range,
            )

        return PaginatedMessages(
            messages=messages,
            total=total,
            page=request.page,
            per_page=request.per_page,
            has_more=has_more_pages(request.page, request.per_page, total),
        )

    async def update_messages(
        self, updates: Sequence[UpdateMessageRequest]
    ) -> list[Message]:
        """
        Apply field-level message updates.

        Unset fields are left untouched; updates for unknown ids are skipped.
        """
        if not updates:
            return []

        updated = []
        async with self._session() as session:
            for update in updates:
                properties = _message_update_properties(update)
                if properties:
                    message = await GraphWriter.update_message(
                        session, update.id, properties
                    )
                else:
                    message = await GraphReader.get_message(session, update.id)

                if message is not None:
                    updated.append(message)

        return updated

    async def delete_messages(self, message_ids: Sequence[str]) -> None:
        if not message_ids:
            logger.debug("No message ids given, nothing to delete")
            return

        async with self._session() as session:
            await GraphWriter.delete_messages(session, list(message_ids))

    async def delete_message(self, message_id: str) -> None:
        await self.delete_messages([message_id])

    # Resources

    async def save_resource(self, resource: Resource) -> Resource:
        async with self._session() as session:
            return await GraphWriter.merge_resource(session, resource)

    async def get_resource_by_id(self, resource_id: str) -> Resource | None:
        async with self._session() as session:
            return await GraphReader.get_resource(session, resource_id)

    async def update_resource(self, request: UpdateResourceRequest) -> Resource:
        """
        Update a resource, creating it when absent.

        Metadata is shallow-merged into the stored map.
        """
        async with self._session() as session:
            existing = await GraphReader.get_resource(session, request.resource_id)

            if existing is None:
                resource = Resource(
                    id=request.resource_id,
                    working_memory=request.working_memory,
                    metadata=request.metadata or {},
                )
            else:
                resource = existing.model_copy(
                    update={
                        "working_memory": (
                            request.working_memory
                            if request.working_memory is not None
                            else existing.working_memory
                        ),
                        "metadata": {**existing.metadata, **(request.metadata or {})},
                        "updated_at": datetime.now(UTC),
                    }
                )

            return await GraphWriter.merge_resource(session, resource)

    # Generic execution

    async def execute_query(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Run a parameterized statement and return its records as dicts."""
        async with self._session() as session:
            result = await session.run(query, params or {})
            return await result.data()

    async def batch(
        self, statements: Sequence[BatchStatement]
    ) -> list[list[dict[str, Any]]]:
        """
        Run statements one after another in a single session.

        Each statement commits on its own; a failure propagates and leaves the
        earlier statements applied.
        """
        results = []
        async with self._session() as session:
            for statement in statements:
                result = await session.run(statement.query, statement.params)
                results.append(await result.data())

        logger.info("Executed statement batch", count=len(statements))
        return results

    async def health_check(self) -> bool:
        """
        Probe the store with a trivial round-trip query.

        Returns:
            bool: True if reachable, False on any failure
        """
        try:
            async with self._session() as session:
                result = await session.run("RETURN 1 AS health")
                record = await result.single()
                healthy = bool(record and record["health"] == 1)
        except Exception as e:
            logger.error("Neo4j health check failed", error=str(e))
            return False

        logger.debug("Neo4j health check completed", healthy=healthy)
        return healthy


def _message_update_properties(update: UpdateMessageRequest) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    if update.content is not None:
        properties["content"] = update.content
    if update.role is not None:
        properties["role"] = update.role.value
    if update.type is not None:
        properties["type"] = update.type
    if update.metadata is not None:
        properties["metadata"] = serialize_metadata(update.metadata)
    return properties

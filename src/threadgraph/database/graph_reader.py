"""
Graph Reader for Conversation Memory

Ordered and paginated reads over threads, messages and resources, plus the
count queries backing pagination metadata. Messages are ordered by
(createdAt, id) so equal timestamps still sort deterministically.
"""

from typing import Any

import structlog
from neo4j import AsyncSession

from threadgraph.database.mapper import (
    serialize_datetime,
    to_message,
    to_resource,
    to_thread,
)
from threadgraph.models.memory import Message, Resource, Thread
from threadgraph.models.requests import DateRange

logger = structlog.get_logger(__name__)

# Thread fields that may be spliced into ORDER BY
SORTABLE_THREAD_FIELDS = frozenset({"createdAt", "updatedAt"})
SORT_DIRECTIONS = frozenset({"ASC", "DESC"})
DEFAULT_THREAD_SORT = ("createdAt", "DESC")


def resolve_thread_sort(order_by: str | None, direction: str | None) -> tuple[str, str]:
    """
    Validate a caller-supplied thread sort.

    Unrecognized fields or directions fall back to createdAt / DESC.

    Returns:
        (field, direction) safe to place in statement text
    """
    field, default_direction = DEFAULT_THREAD_SORT

    if order_by in SORTABLE_THREAD_FIELDS:
        field = order_by
    elif order_by is not None:
        logger.warning("Ignoring unsupported thread sort field", order_by=order_by)

    normalized = direction.upper() if isinstance(direction, str) else None
    if normalized not in SORT_DIRECTIONS:
        normalized = default_direction

    return field, normalized


def resolve_message_limit(last: int | bool | None, default_limit: int) -> int:
    """
    Number of messages requested by ``last``.

    ``False`` means zero messages, an integer is taken as-is, and ``None``
    falls back to ``default_limit``.
    """
    if last is False:
        return 0
    if isinstance(last, int) and not isinstance(last, bool):
        return last
    return default_limit


def _date_range_filter(date_range: DateRange | None) -> tuple[str, dict[str, Any]]:
    clauses = []
    params: dict[str, Any] = {}

    if date_range and date_range.start:
        clauses.append("m.createdAt >= datetime($start)")
        params["start"] = serialize_datetime(date_range.start)
    if date_range and date_range.end:
        clauses.append("m.createdAt <= datetime($end)")
        params["end"] = serialize_datetime(date_range.end)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


class GraphReader:
    """Read queries returning domain models."""

    @staticmethod
    async def get_thread(session: AsyncSession, thread_id: str) -> Thread | None:
        result = await session.run(
            "MATCH (t:Thread {id: $id}) RETURN t", {"id": thread_id}
        )
        record = await result.single()
        return to_thread(record["t"] if record else None)

    @staticmethod
    async def get_threads_by_resource(
        session: AsyncSession,
        resource_id: str,
        order_by: str | None = None,
        direction: str | None = None,
        skip: int | None = None,
        limit: int | None = None,
    ) -> list[Thread]:
        """
        Get threads owned by a resource.

        Args:
            session: Neo4j async session
            resource_id: Resource ID matched against Thread.resourceId
            order_by: Sort field (createdAt or updatedAt)
            direction: ASC or DESC
            skip: Optional number of threads to skip
            limit: Optional page size

        Returns:
            Sorted list of threads
        """
        field, sort_direction = resolve_thread_sort(order_by, direction)
        page_clause = "SKIP $skip LIMIT $limit" if limit is not None else ""

        query = f"""
        MATCH (t:Thread {{resourceId: $resourceId}})
        RETURN t
        ORDER BY t.{field} {sort_direction}, t.id {sort_direction}
        {page_clause}
        """

        params: dict[str, Any] = {"resourceId": resource_id}
        if limit is not None:
            params["skip"] = skip or 0
            params["limit"] = limit

        result = await session.run(query, params)
        records = await result.data()

        threads = [to_thread(record["t"]) for record in records]

        logger.info(
            "Retrieved threads for resource",
            resource_id=resource_id,
            count=len(threads),
            order_by=field,
            direction=sort_direction,
        )
        return threads

    @staticmethod
    async def count_threads(session: AsyncSession, resource_id: str) -> int:
        result = await session.run(
            "MATCH (t:Thread {resourceId: $resourceId}) RETURN count(t) AS total",
            {"resourceId": resource_id},
        )
        record = await result.single()
        return record["total"] if record else 0

    @staticmethod
    async def get_message(session: AsyncSession, message_id: str) -> Message | None:
        result = await session.run(
            "MATCH (m:Message {id: $id}) RETURN m", {"id": message_id}
        )
        record = await result.single()
        return to_message(record["m"] if record else None)

    @staticmethod
    async def get_messages(
        session: AsyncSession, thread_id: str, limit: int, offset: int = 0
    ) -> list[Message]:
        """
        Get the most recent messages of a thread.

        The newest ``limit`` messages after skipping the ``offset`` newest are
        selected, then returned oldest first.
        """
        query = """
        MATCH (m:Message {threadId: $threadId})
        WITH m
        ORDER BY m.createdAt DESC, m.id DESC
        SKIP $offset
        LIMIT $limit
        RETURN m
        ORDER BY m.createdAt ASC, m.id ASC
        """

        result = await session.run(
            query, {"threadId": thread_id, "offset": offset, "limit": limit}
        )
        records = await result.data()

        messages = [to_message(record["m"]) for record in records]

        logger.info(
            "Retrieved thread messages",
            thread_id=thread_id,
            count=len(messages),
            limit=limit,
        )
        return messages

    @staticmethod
    async def get_messages_page(
        session: AsyncSession,
        thread_id: str,
        page: int,
        per_page: int,
        date_range: DateRange | None = None,
    ) -> list[Message]:
        """Get one zero-indexed page of a thread's messages, oldest first."""
        where, params = _date_range_filter(date_range)

        query = f"""
        MATCH (m:Message {{threadId: $threadId}})
        {where}
        RETURN m
        ORDER BY m.createdAt ASC, m.id ASC
        SKIP $skip
        LIMIT $limit
        """

        params.update(
            {"threadId": thread_id, "skip": page * per_page, "limit": per_page}
        )
        result = await session.run(query, params)
        records = await result.data()

        return [to_message(record["m"]) for record in records]

    @staticmethod
    async def count_messages(
        session: AsyncSession, thread_id: str, date_range: DateRange | None = None
    ) -> int:
        where, params = _date_range_filter(date_range)

        query = f"""
        MATCH (m:Message {{threadId: $threadId}})
        {where}
        RETURN count(m) AS total
        """

        params["threadId"] = thread_id
        result = await session.run(query, params)
        record = await result.single()
        return record["total"] if record else 0

    @staticmethod
    async def get_messages_by_ids(
        session: AsyncSession, message_ids: list[str]
    ) -> list[Message]:
        """Get messages by id, oldest first; unknown ids are omitted."""
        query = """
        MATCH (m:Message)
        WHERE m.id IN $ids
        RETURN m
        ORDER BY m.createdAt ASC, m.id ASC
        """

        result = await session.run(query, {"ids": message_ids})
        records = await result.data()

        messages = [to_message(record["m"]) for record in records]

        logger.info(
            "Retrieved messages by id",
            requested=len(message_ids),
            found=len(messages),
        )
        return messages

    @staticmethod
    async def get_resource(session: AsyncSession, resource_id: str) -> Resource | None:
        result = await session.run(
            "MATCH (r:Resource {id: $id}) RETURN r", {"id": resource_id}
        )
        record = await result.single()
        return to_resource(record["r"] if record else None)

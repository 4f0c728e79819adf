"""
Integration Tests for Neo4jStorage

Runs the storage against a real Neo4j 5 container: schema idempotence,
message ordering and windows, pagination, entity linking, thread
auto-creation under concurrency and non-cascading thread deletes.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from threadgraph.database.connection import session_scope
from threadgraph.database.graph_writer import GraphWriter
from threadgraph.models import (
    EntityType,
    ExtractedEntity,
    Message,
    MessageListRequest,
    MessagePageRequest,
    MessageRole,
    Thread,
    ThreadPageRequest,
    UpdateMessageRequest,
    UpdateResourceRequest,
    UpdateThreadRequest,
)
from threadgraph.services.storage import Neo4jStorage

pytestmark = pytest.mark.integration

BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def _message(thread_id: str, index: int, content: str | None = None) -> Message:
    return Message(
        id=f"{thread_id}-msg-{index}",
        thread_id=thread_id,
        role=MessageRole.USER if index % 2 == 0 else MessageRole.ASSISTANT,
        content=content if content is not None else f"message number {index}",
        created_at=BASE_TIME + timedelta(seconds=index),
    )


async def _count(storage: Neo4jStorage, query: str, **params) -> int:
    rows = await storage.execute_query(query, params)
    return rows[0]["total"]


@pytest.mark.asyncio
async def test_schema_is_idempotent(storage, storage_config):
    async with Neo4jStorage(storage_config) as second:
        await second.initialize()
        await second.initialize()

    constraints = await storage.execute_query(
        "SHOW CONSTRAINTS YIELD name RETURN name ORDER BY name"
    )
    names = [row["name"] for row in constraints]
    assert "thread_id_unique" in names
    assert "message_id_unique" in names


@pytest.mark.asyncio
async def test_health_check(storage):
    assert await storage.health_check() is True


@pytest.mark.asyncio
async def test_thread_round_trip(storage):
    thread = Thread(
        id="thread-1",
        resource_id="user-1",
        title="Intro",
        metadata={"tags": ["a", "b"], "nested": {"depth": 2}},
    )

    await storage.save_thread(thread)
    loaded = await storage.get_thread_by_id("thread-1")

    assert loaded == thread


@pytest.mark.asyncio
async def test_resave_keeps_created_at(storage):
    original = await storage.save_thread(Thread(id="thread-1", resource_id="user-1"))

    resaved = await storage.save_thread(
        Thread(
            id="thread-1",
            resource_id="user-1",
            title="Renamed",
            created_at=original.created_at + timedelta(days=1),
        )
    )

    assert resaved.title == "Renamed"
    assert resaved.created_at == original.created_at


@pytest.mark.asyncio
async def test_older_thread_save_after_message_keeps_timestamp_order(storage):
    await storage.save_message(_message("thread-1", 0))
    stale = BASE_TIME - timedelta(hours=1)

    saved = await storage.save_thread(
        Thread(id="thread-1", title="Late", created_at=stale, updated_at=stale)
    )
    loaded = await storage.get_thread_by_id("thread-1")

    assert saved.created_at == BASE_TIME
    assert loaded.title == "Late"
    assert loaded.updated_at >= loaded.created_at


@pytest.mark.asyncio
async def test_message_creates_missing_thread(storage):
    await storage.save_message(_message("ghost-thread", 0))

    thread = await storage.get_thread_by_id("ghost-thread")
    assert thread is not None
    assert thread.title == ""
    assert thread.metadata == {}


@pytest.mark.asyncio
async def test_concurrent_messages_create_one_thread(storage):
    await asyncio.gather(
        *(storage.save_message(_message("busy-thread", i)) for i in range(8))
    )

    total = await _count(
        storage, "MATCH (t:Thread {id: $id}) RETURN count(t) AS total", id="busy-thread"
    )
    assert total == 1
    messages = await storage.get_messages(MessageListRequest(thread_id="busy-thread"))
    assert len(messages) == 8


@pytest.mark.asyncio
async def test_concurrent_mentions_converge_on_one_entity(storage):
    results = await asyncio.gather(
        *(
            storage.save_message(_message(f"thread-{i}", 0, "I use Python daily"))
            for i in range(8)
        )
    )

    entities = await _count(
        storage,
        "MATCH (e:Entity {type: 'Technology', value: 'python'}) "
        "RETURN count(e) AS total",
    )
    assert entities == 1
    assert all(result.entities for result in results)


@pytest.mark.asyncio
async def test_messages_window_is_most_recent_oldest_first(storage):
    for i in range(5):
        await storage.save_message(_message("thread-1", i))

    everything = await storage.get_messages(MessageListRequest(thread_id="thread-1"))
    recent = await storage.get_messages(MessageListRequest(thread_id="thread-1", last=2))
    none = await storage.get_messages(MessageListRequest(thread_id="thread-1", last=False))

    assert [m.id for m in everything] == [f"thread-1-msg-{i}" for i in range(5)]
    assert [m.id for m in recent] == ["thread-1-msg-3", "thread-1-msg-4"]
    assert none == []


@pytest.mark.asyncio
async def test_message_pages_partition_thread(storage):
    for i in range(5):
        await storage.save_message(_message("thread-1", i))

    pages = [
        await storage.get_messages_paginated(
            MessagePageRequest(thread_id="thread-1", page=page, per_page=2)
        )
        for page in range(3)
    ]

    assert [p.has_more for p in pages] == [True, True, False]
    assert all(p.total == 5 for p in pages)
    ids = [m.id for p in pages for m in p.messages]
    assert ids == [f"thread-1-msg-{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_thread_pages_sorted(storage):
    for i in range(3):
        await storage.save_thread(
            Thread(
                id=f"t-{i}",
                resource_id="user-1",
                created_at=BASE_TIME + timedelta(minutes=i),
                updated_at=BASE_TIME + timedelta(minutes=i),
            )
        )
    await storage.save_thread(Thread(id="other", resource_id="user-2"))

    page = await storage.get_threads_by_resource_id_paginated(
        ThreadPageRequest(resource_id="user-1", page=0, per_page=2)
    )

    assert page.total == 3
    assert [t.id for t in page.threads] == ["t-2", "t-1"]
    assert page.has_more is True


@pytest.mark.asyncio
async def test_introduction_builds_entity_graph(storage):
    result = await storage.save_message(
        _message("thread-1", 0, "Hi, my name is Dawn and I love graph databases.")
    )

    assert result.fully_linked
    interested = await _count(
        storage,
        "MATCH (:Entity {type: 'Person', value: 'Dawn'})-[r:INTERESTED_IN]->"
        "(:Entity {type: 'Topic', value: 'graph databases'}) RETURN count(r) AS total",
    )
    mentions = await _count(
        storage,
        "MATCH (:Message {id: $id})-[r:MENTIONS]->(:Entity) RETURN count(r) AS total",
        id="thread-1-msg-0",
    )
    assert interested == 1
    assert mentions == 4


@pytest.mark.asyncio
async def test_entities_merge_across_messages(storage):
    await storage.save_message(_message("thread-1", 0, "I use Python daily"))
    await storage.save_message(_message("thread-1", 1, "Python is great"))

    entities = await _count(
        storage,
        "MATCH (e:Entity {type: 'Technology', value: 'python'}) RETURN count(e) AS total",
    )
    mentions = await _count(
        storage,
        "MATCH (:Message)-[r:MENTIONS]->(:Entity {value: 'python'}) "
        "RETURN count(r) AS total",
    )
    assert entities == 1
    assert mentions == 2


@pytest.mark.asyncio
async def test_update_message_fields(storage):
    await storage.save_message(_message("thread-1", 0))

    updated = await storage.update_messages(
        [
            UpdateMessageRequest(id="thread-1-msg-0", content="edited"),
            UpdateMessageRequest(id="missing", content="ignored"),
        ]
    )

    assert [m.content for m in updated] == ["edited"]
    assert updated[0].role == MessageRole.USER


@pytest.mark.asyncio
async def test_update_thread_merges_metadata(storage):
    await storage.save_thread(Thread(id="thread-1", metadata={"a": 1}))

    updated = await storage.update_thread(
        UpdateThreadRequest(id="thread-1", metadata={"b": 2})
    )

    assert updated.metadata == {"a": 1, "b": 2}
    assert updated.updated_at >= updated.created_at


@pytest.mark.asyncio
async def test_delete_thread_keeps_messages(storage):
    contents = ["I use Python daily", "I enjoy TypeScript", "What is Neo4j?"]
    for i, content in enumerate(contents):
        await storage.save_message(_message("thread-1", i, content))

    mentions_query = "MATCH (:Message)-[r:MENTIONS]->(:Entity) RETURN count(r) AS total"
    mentions_before = await _count(storage, mentions_query)

    await storage.delete_thread("thread-1")

    assert await storage.get_thread_by_id("thread-1") is None
    for i in range(len(contents)):
        assert await storage.get_message_by_id(f"thread-1-msg-{i}") is not None
    assert mentions_before > 0
    assert await _count(storage, mentions_query) == mentions_before
    assert await _count(storage, "MATCH (m:Message) RETURN count(m) AS total") == 3


@pytest.mark.asyncio
async def test_delete_messages(storage):
    for i in range(3):
        await storage.save_message(_message("thread-1", i))

    await storage.delete_messages(["thread-1-msg-0", "thread-1-msg-1"])

    remaining = await storage.get_messages_by_id(
        ["thread-1-msg-0", "thread-1-msg-1", "thread-1-msg-2"]
    )
    assert [m.id for m in remaining] == ["thread-1-msg-2"]


@pytest.mark.asyncio
async def test_update_resource_creates_then_merges(storage):
    created = await storage.update_resource(
        UpdateResourceRequest(resource_id="user-1", working_memory="# Notes")
    )
    updated = await storage.update_resource(
        UpdateResourceRequest(resource_id="user-1", metadata={"lang": "en"})
    )

    assert created.working_memory == "# Notes"
    assert updated.working_memory == "# Notes"
    assert updated.metadata == {"lang": "en"}
    assert (await storage.get_resource_by_id("user-1")) == updated


@pytest.mark.asyncio
@pytest.mark.parametrize("first,second", [(0.6, 0.9), (0.9, 0.6)])
async def test_entity_confidence_is_raise_only(storage, first, second):
    await storage.save_message(_message("thread-1", 0))
    await storage.save_message(_message("thread-1", 1))

    async with session_scope(storage.driver, storage.database) as session:
        for index, confidence in ((0, first), (1, second)):
            diagnostics = await GraphWriter.link_entities(
                session,
                f"thread-1-msg-{index}",
                [
                    ExtractedEntity(EntityType.PERSON, "Ada", confidence),
                    ExtractedEntity(EntityType.TECHNOLOGY, "python", confidence),
                ],
            )
            assert diagnostics == []

    rows = await storage.execute_query(
        "MATCH (p:Entity {type: 'Person', value: 'Ada'})-[r:USES]->"
        "(t:Entity {type: 'Technology', value: 'python'}) "
        "RETURN p.confidence AS person, r.confidence AS relation, count(r) AS edges"
    )
    assert rows == [{"person": 0.9, "relation": 0.9, "edges": 1}]

"""
Graph Record Mapping

Converts raw Neo4j node properties into Thread, Message and Resource models,
and domain values back into storable properties.

Persisted encoding:
- Temporal fields: native Neo4j ``datetime``, exchanged as ISO-8601 strings
- Metadata: JSON-encoded string property
"""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import structlog

from threadgraph.models.memory import Message, Resource, Thread

logger = structlog.get_logger(__name__)

NodeProperties = Mapping[str, Any]


def parse_datetime(value: Any) -> datetime | None:
    """
    Parse a stored temporal value.

    Accepts Neo4j ``DateTime`` values, Python datetimes, ISO-8601 strings and
    epoch milliseconds. Naive values are treated as UTC.
    """
    if value is None or value == "":
        return None

    if hasattr(value, "to_native"):
        value = value.to_native()

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value)
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000, tz=UTC)
    else:
        raise TypeError(f"Unsupported temporal value: {type(value).__name__}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def serialize_datetime(value: datetime | str | None) -> str | None:
    """Serialize a datetime (or ISO string) to ISO-8601 for ``datetime($param)``."""
    parsed = parse_datetime(value)
    return parsed.isoformat() if parsed else None


def parse_metadata(value: Any) -> dict[str, Any]:
    """Decode the JSON metadata property; absent or unreadable values give ``{}``."""
    if value is None or value == "":
        return {}
    if isinstance(value, Mapping):
        return dict(value)

    try:
        decoded = json.loads(value)
    except (TypeError, ValueError) as e:
        logger.warning("Discarding unreadable metadata", error=str(e))
        return {}

    return decoded if isinstance(decoded, dict) else {}


def serialize_metadata(metadata: Mapping[str, Any] | None) -> str:
    return json.dumps(dict(metadata or {}), default=str)


def _timestamps(props: dict[str, Any]) -> dict[str, datetime]:
    """Parsed timestamps, leaving unset ones to the model defaults."""
    timestamps = {
        "created_at": parse_datetime(props.get("createdAt")),
        "updated_at": parse_datetime(props.get("updatedAt")),
    }
    return {name: value for name, value in timestamps.items() if value is not None}


def to_thread(node: NodeProperties | None) -> Thread | None:
    """Map a Thread node; ``None`` maps to ``None``."""
    if node is None:
        return None

    props = dict(node)
    return Thread(
        id=props["id"],
        resource_id=props.get("resourceId") or "",
        title=props.get("title") or "",
        **_timestamps(props),
        metadata=parse_metadata(props.get("metadata")),
    )


def to_message(node: NodeProperties | None) -> Message | None:
    """Map a Message node; ``None`` maps to ``None``."""
    if node is None:
        return None

    props = dict(node)
    return Message(
        id=props["id"],
        thread_id=props["threadId"],
        role=props["role"],
        content=props.get("content") or "",
        type=props.get("type") or "text",
        resource_id=props.get("resourceId"),
        **_timestamps(props),
        metadata=parse_metadata(props.get("metadata")),
    )


def to_resource(node: NodeProperties | None) -> Resource | None:
    """Map a Resource node; ``None`` maps to ``None``."""
    if node is None:
        return None

    props = dict(node)
    return Resource(
        id=props["id"],
        working_memory=props.get("workingMemory"),
        **_timestamps(props),
        metadata=parse_metadata(props.get("metadata")),
    )


def thread_properties(thread: Thread) -> dict[str, Any]:
    return {
        "id": thread.id,
        "resourceId": thread.resource_id,
        "title": thread.title,
        "createdAt": serialize_datetime(thread.created_at),
        "updatedAt": serialize_datetime(thread.updated_at),
        "metadata": serialize_metadata(thread.metadata),
    }


def message_properties(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "threadId": message.thread_id,
        "role": message.role.value,
        "content": message.content,
        "type": message.type,
        "resourceId": message.resource_id,
        "createdAt": serialize_datetime(message.created_at),
        "metadata": serialize_metadata(message.metadata),
    }


def resource_properties(resource: Resource) -> dict[str, Any]:
    return {
        "id": resource.id,
        "workingMemory": resource.working_memory,
        "createdAt": serialize_datetime(resource.created_at),
        "updatedAt": serialize_datetime(resource.updated_at),
        "metadata": serialize_metadata(resource.metadata),
    }

"""
Conversation Memory Models

Pydantic models for the graph-backed conversation memory store:
- Threads (conversation sessions) and the messages they contain
- Resources (external actors, typically end users)
- Entities extracted from message content and the relations between them

Field names are snake_case; camelCase aliases match the shape expected by the
consuming memory subsystem (``threadId``, ``resourceId``, ``createdAt``).
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(UTC)


class MessageRole(str, Enum):
    """Author role of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class EntityType(str, Enum):
    """Entity classification for the knowledge graph."""

    PERSON = "Person"  # Names from introductions
    TOPIC = "Topic"  # Things the speaker likes or is interested in
    TECHNOLOGY = "Technology"  # Known technology vocabulary
    QUESTION = "Question"  # Interrogative messages


class RelationType(str, Enum):
    """Relationship labels between co-occurring entities."""

    RELATED_TO = "RELATED_TO"
    INTERESTED_IN = "INTERESTED_IN"
    USES = "USES"
    IMPLEMENTS = "IMPLEMENTS"


class MemoryModel(BaseModel):
    """Base model accepting both snake_case names and camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_validator("created_at", "updated_at", check_fields=False)
    @classmethod
    def ensure_timezone(cls, v: datetime | None) -> datetime | None:
        """Ensure datetime has timezone."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class Thread(MemoryModel):
    """
    Conversation session scoping an ordered sequence of messages.

    ``updated_at`` never precedes ``created_at``; an earlier value is raised
    to ``created_at``.
    """

    id: str = Field(default_factory=lambda: str(uuid4()), description="Thread ID")
    resource_id: str = Field(default="", description="Owning resource ID")
    title: str = Field(default="", description="Thread title")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def order_timestamps(self) -> "Thread":
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at
        return self


class Message(MemoryModel):
    """One utterance in a thread."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Message ID")
    thread_id: str = Field(..., description="Owning thread ID")
    role: MessageRole = Field(..., description="Author role")
    content: str = Field(default="", description="Message text")
    type: str = Field(default="text", description="Content type")
    resource_id: str | None = Field(
        default=None, description="Resource the message was written for"
    )
    created_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)


class Resource(MemoryModel):
    """External actor associated with threads by ``resource_id``."""

    id: str = Field(..., description="Resource ID")
    working_memory: str | None = Field(
        default=None, description="Free-form working memory text"
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


@dataclass(frozen=True)
class ExtractedEntity:
    """Candidate entity produced by the extractor.

    Attributes:
        type: Entity classification
        value: Entity value; (type, value) is the entity identity
        confidence: Extraction confidence 0.0-1.0
    """

    type: EntityType
    value: str
    confidence: float

    @property
    def key(self) -> tuple[str, str]:
        return (self.type.value, self.value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "value": self.value,
            "confidence": self.confidence,
        }

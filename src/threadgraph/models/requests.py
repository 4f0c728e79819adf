"""
Storage Request and Response Models

Explicit argument and result structs for each storage operation. Optional
fields are ``None`` when the caller leaves them unset.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import Field, field_validator

from threadgraph.models.memory import (
    ExtractedEntity,
    MemoryModel,
    Message,
    MessageRole,
    Thread,
)

SortDirection = Literal["ASC", "DESC"]

DEFAULT_MESSAGE_LIMIT = 100
DEFAULT_THREADS_PER_PAGE = 100
DEFAULT_MESSAGES_PER_PAGE = 40


class ThreadListRequest(MemoryModel):
    """Threads owned by a resource, sorted by a thread timestamp field."""

    resource_id: str
    # Unrecognized fields are ignored by the reader (falls back to createdAt)
    order_by: str = "createdAt"
    sort_direction: SortDirection = "DESC"

    @field_validator("sort_direction", mode="before")
    @classmethod
    def normalize_direction(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class ThreadPageRequest(ThreadListRequest):
    """One zero-indexed page of a resource's threads."""

    page: int = Field(default=0, ge=0)
    per_page: int = Field(default=DEFAULT_THREADS_PER_PAGE, ge=1)


class UpdateThreadRequest(MemoryModel):
    id: str
    title: str | None = None
    metadata: dict[str, Any] | None = None


class MessageListRequest(MemoryModel):
    """
    Most recent messages of a thread, returned oldest first.

    ``last=False`` requests zero messages; an integer overrides the default
    cap of 100.
    """

    thread_id: str
    resource_id: str | None = None
    last: int | bool | None = None
    offset: int = Field(default=0, ge=0)

    @field_validator("last", mode="before")
    @classmethod
    def validate_last(cls, v: Any) -> Any:
        if v is True:
            raise ValueError("last must be a message count or False")
        if isinstance(v, int) and not isinstance(v, bool) and v < 0:
            raise ValueError(f"last must be non-negative, got {v}")
        return v


class DateRange(MemoryModel):
    start: datetime | None = None
    end: datetime | None = None


class MessagePageRequest(MemoryModel):
    """One zero-indexed page of a thread's messages, oldest first."""

    thread_id: str
    resource_id: str | None = None
    page: int = Field(default=0, ge=0)
    per_page: int = Field(default=DEFAULT_MESSAGES_PER_PAGE, ge=1)
    date_range: DateRange | None = None


class UpdateMessageRequest(MemoryModel):
    """Field-by-field message update; unset fields are left untouched."""

    id: str
    content: str | None = None
    role: MessageRole | None = None
    type: str | None = None
    metadata: dict[str, Any] | None = None


class UpdateResourceRequest(MemoryModel):
    resource_id: str
    working_memory: str | None = None
    metadata: dict[str, Any] | None = None


class PaginatedThreads(MemoryModel):
    threads: list[Thread]
    total: int
    page: int
    per_page: int
    has_more: bool


class PaginatedMessages(MemoryModel):
    messages: list[Message]
    total: int
    page: int
    per_page: int
    has_more: bool


class LinkingDiagnostic(MemoryModel):
    """Non-fatal failure recorded while linking entities to a message."""

    stage: Literal["entity", "relation"]
    target: str = Field(..., description="Entity key or relation pair that failed")
    error: str


class SaveMessageResult(MemoryModel):
    """Outcome of a message save.

    The message is durably stored; ``diagnostics`` lists enrichment writes
    that failed.
    """

    message: Message
    entities: list[ExtractedEntity] = Field(default_factory=list)
    diagnostics: list[LinkingDiagnostic] = Field(default_factory=list)

    @property
    def fully_linked(self) -> bool:
        return not self.diagnostics


class StorageSupports(MemoryModel):
    """Capability flags advertised to the memory subsystem."""

    select_by_include_resource_scope: bool = False
    resource_working_memory: bool = False
    has_column: bool = False
    create_table: bool = False
    delete_messages: bool = True
    ai_tracing: bool = False


def has_more_pages(page: int, per_page: int, total: int) -> bool:
    """Whether records remain after the zero-indexed ``page``."""
    return (page + 1) * per_page < total


class BatchStatement(MemoryModel):
    """One parameterized statement for ``Neo4jStorage.batch``."""

    query: str
    params: dict[str, Any] = Field(default_factory=dict)

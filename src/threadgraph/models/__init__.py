"""Domain models and per-operation request/response structs."""

from threadgraph.models.memory import (
    EntityType,
    ExtractedEntity,
    Message,
    MessageRole,
    RelationType,
    Resource,
    Thread,
)
from threadgraph.models.requests import (
    BatchStatement,
    DateRange,
    LinkingDiagnostic,
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
)

__all__ = [
    "BatchStatement",
    "DateRange",
    "EntityType",
    "ExtractedEntity",
    "LinkingDiagnostic",
    "Message",
    "MessageListRequest",
    "MessagePageRequest",
    "MessageRole",
    "PaginatedMessages",
    "PaginatedThreads",
    "RelationType",
    "Resource",
    "SaveMessageResult",
    "StorageSupports",
    "Thread",
    "ThreadListRequest",
    "ThreadPageRequest",
    "UpdateMessageRequest",
    "UpdateResourceRequest",
    "UpdateThreadRequest",
]

"""
threadgraph - Graph-Backed Conversation Memory

Stores chat threads, messages, resources and the entities mentioned in
message content in a Neo4j property graph.
"""

from threadgraph.config import Neo4jStorageConfig, Settings
from threadgraph.services.entity_extractor import extract_entities
from threadgraph.services.storage import Neo4jStorage, SchemaState

__version__ = "0.1.0"

__all__ = [
    "Neo4jStorage",
    "Neo4jStorageConfig",
    "SchemaState",
    "Settings",
    "extract_entities",
]

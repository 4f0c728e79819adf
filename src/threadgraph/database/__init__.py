"""Neo4j connection, schema, mapping, and read/write queries."""

from threadgraph.database.graph_reader import GraphReader
from threadgraph.database.graph_writer import GraphWriter

__all__ = ["GraphReader", "GraphWriter"]

"""
Graph layer for the expert graph in Neo4j:
- Neo4jClient: Repository pattern client with connection pooling
- GraphSearchService: relationship traversal search
- Neo4jProfileStore: candidate profile enrichment
"""

from expertmatch.graph.exceptions import (
    Neo4jConnectionError,
    Neo4jError,
    Neo4jQueryError,
)
from expertmatch.graph.graph_search import GraphSearchService
from expertmatch.graph.neo4j_client import (
    FakeNeo4jClient,
    Neo4jClient,
    Neo4jClientProtocol,
)
from expertmatch.graph.profile_store import Neo4jProfileStore, ProfileStore
from expertmatch.graph.schema import NodeLabels, RelationshipTypes

__all__ = [
    # Exceptions
    "Neo4jError",
    "Neo4jConnectionError",
    "Neo4jQueryError",
    # Client
    "Neo4jClient",
    "Neo4jClientProtocol",
    "FakeNeo4jClient",
    # Services
    "GraphSearchService",
    "Neo4jProfileStore",
    "ProfileStore",
    # Schema
    "NodeLabels",
    "RelationshipTypes",
]

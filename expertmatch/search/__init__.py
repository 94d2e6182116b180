"""
Search module for expert-match.

Provides the three base retrieval sources and their fusion:
- vector.py / vector_search.py: Qdrant nearest-neighbour search
- keyword.py: Neo4j full-text search
- fusion.py: weighted reciprocal-rank fusion
"""

from __future__ import annotations

from expertmatch.search.fusion import DEFAULT_WEIGHTS, ResultFusionService
from expertmatch.search.keyword import KeywordSearchService
from expertmatch.search.vector import FakeQdrantSearchClient, QdrantSearchClient, SearchResult
from expertmatch.search.vector_search import EmbeddingProvider, VectorSearchService

__all__ = [
    "DEFAULT_WEIGHTS",
    "EmbeddingProvider",
    "FakeQdrantSearchClient",
    "KeywordSearchService",
    "QdrantSearchClient",
    "ResultFusionService",
    "SearchResult",
    "VectorSearchService",
]

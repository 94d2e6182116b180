"""
Qdrant vector store client.

Stores one point per work experience; each point's payload carries the
``expert_id`` it belongs to. This module only reads: ingestion and collection
management happen outside the engine.

Design:
- Repository Pattern: abstraction over vector storage
- FakeQdrantSearchClient for testing, same interface (duck typing)
- Connection pooling: one AsyncQdrantClient reused for every request
- Custom exceptions: QdrantConnectionError/QdrantSearchError, not builtins
- Async context manager for resource management
- Score clamping: cosine similarity clamped to [0, 1], order preserved
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import FieldCondition, Filter, MatchAny, MatchValue

from expertmatch.search.exceptions import QdrantConnectionError, QdrantSearchError

# =============================================================================
# Constants
# =============================================================================

_DEFAULT_LIMIT = 10
_DEFAULT_COLLECTION = "expert_experience"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class SearchResult:
    """Represents a single point returned by Qdrant.

    Attributes:
        id: Point identifier
        score: Cosine similarity clamped to the [0, 1] range
        payload: Point metadata (expert_id, project, technologies, ...)
    """

    id: str
    score: float
    payload: dict[str, Any] | None

    def __post_init__(self) -> None:
        """Clamp score into [0, 1]; anti-correlated points score 0."""
        if self.score < 0:
            self.score = 0.0
        elif self.score > 1:
            self.score = 1.0


def build_filter(filter_conditions: dict[str, Any] | None) -> Filter | None:
    """Translate ``{"key": value}`` / ``{"key": [values]}`` into a Qdrant Filter."""
    if not filter_conditions:
        return None
    must = []
    for key, value in filter_conditions.items():
        if isinstance(value, list | tuple | set | frozenset):
            must.append(FieldCondition(key=key, match=MatchAny(any=list(value))))
        else:
            must.append(FieldCondition(key=key, match=MatchValue(value=value)))
    return Filter(must=must)


# =============================================================================
# Protocol for Duck Typing
# =============================================================================


@runtime_checkable
class QdrantSearchClientProtocol(Protocol):
    """Protocol defining the vector store interface used by VectorSearchService."""

    async def connect(self) -> None:
        """Connect to Qdrant."""
        ...

    async def close(self) -> None:
        """Close connection."""
        ...

    async def search(
        self,
        embedding: list[float],
        limit: int | None = None,
        filter_conditions: dict[str, Any] | None = None,
        score_threshold: float | None = None,
    ) -> list[SearchResult]:
        """Execute vector similarity search."""
        ...

    async def get_vector_size(self) -> int:
        """Return the stored vector dimensionality."""
        ...


# =============================================================================
# Real Implementation
# =============================================================================


class QdrantSearchClient:
    """Read-only Qdrant client.

    Usage:
        async with QdrantSearchClient(settings=settings) as client:
            results = await client.search(embedding=[0.1] * 768)
    """

    def __init__(self, settings: Any) -> None:
        """Initialize client with Settings object.

        Args:
            settings: Settings object with qdrant_url, qdrant_collection,
                      and optional qdrant_api_key attributes

        Note:
            Client is NOT created here - uses lazy initialization.
            Call connect() or use as async context manager.
        """
        self._url = settings.qdrant_url
        self._collection = getattr(settings, "qdrant_collection", _DEFAULT_COLLECTION)
        self._api_key = getattr(settings, "qdrant_api_key", None)
        self._client: AsyncQdrantClient | None = None
        self._vector_size: int | None = None

    @property
    def collection(self) -> str:
        return self._collection

    async def connect(self) -> None:
        """Connect to Qdrant server.

        Raises:
            QdrantConnectionError: If connection fails
        """
        try:
            self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
            await self._client.get_collections()
        except Exception as e:
            self._client = None
            raise QdrantConnectionError(
                f"Failed to connect to Qdrant at {self._url}: {e}",
                cause=e,
            ) from e

    async def close(self) -> None:
        """Close the Qdrant client connection. Idempotent."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> QdrantSearchClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def _ensure_connected(self) -> AsyncQdrantClient:
        if self._client is None:
            raise QdrantConnectionError("Client is not connected. Call connect() first.")
        return self._client

    async def search(
        self,
        embedding: list[float],
        limit: int | None = None,
        filter_conditions: dict[str, Any] | None = None,
        score_threshold: float | None = None,
    ) -> list[SearchResult]:
        """Execute vector similarity search.

        Args:
            embedding: Query vector (must match collection vector size)
            limit: Maximum number of points (default: 10)
            filter_conditions: Optional payload filters
            score_threshold: Minimum raw score

        Returns:
            List of SearchResult objects sorted by score descending

        Raises:
            QdrantConnectionError: If not connected
            QdrantSearchError: If search fails
        """
        client = self._ensure_connected()
        actual_limit = limit if limit is not None else _DEFAULT_LIMIT

        try:
            response = await client.query_points(
                collection_name=self._collection,
                query=embedding,
                limit=actual_limit,
                query_filter=build_filter(filter_conditions),
                score_threshold=score_threshold,
                with_payload=True,
            )
        except Exception as e:
            raise QdrantSearchError(
                f"Search failed in collection '{self._collection}': {e}",
                collection=self._collection,
                cause=e,
            ) from e

        return [
            SearchResult(id=str(point.id), score=point.score, payload=point.payload)
            for point in response.points
        ]

    async def get_vector_size(self) -> int:
        """Return the collection's vector width (cached after first lookup).

        Raises:
            QdrantSearchError: If the collection cannot be inspected
        """
        if self._vector_size is not None:
            return self._vector_size

        client = self._ensure_connected()
        try:
            info = await client.get_collection(collection_name=self._collection)
        except Exception as e:
            raise QdrantSearchError(
                f"Failed to inspect collection '{self._collection}': {e}",
                collection=self._collection,
                cause=e,
            ) from e

        vectors = info.config.params.vectors
        if isinstance(vectors, dict):
            # Named vectors: the engine queries the first (default) one
            vectors = next(iter(vectors.values()))
        self._vector_size = int(vectors.size)
        return self._vector_size


# =============================================================================
# Fake Implementation for Testing
# =============================================================================


class FakeQdrantSearchClient:
    """In-memory fake Qdrant client for unit testing.

    Implements the same interface as QdrantSearchClient (duck typing), plus
    ``add_point`` for seeding.
    """

    def __init__(self, vector_size: int = 4) -> None:
        self._storage: dict[str, dict[str, Any]] = {}
        self._vector_size = vector_size
        self._connected = False
        self.search_calls: list[dict[str, Any]] = []

    async def connect(self) -> None:
        await asyncio.sleep(0)  # Yield to event loop
        self._connected = True

    async def close(self) -> None:
        await asyncio.sleep(0)  # Yield to event loop
        self._connected = False

    async def __aenter__(self) -> FakeQdrantSearchClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def add_point(
        self,
        id: str,
        embedding: list[float],
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Store a point in memory."""
        if len(embedding) != self._vector_size:
            raise ValueError(
                f"Expected {self._vector_size} dimensions, got {len(embedding)}"
            )
        self._storage[id] = {"embedding": embedding, "payload": payload or {}}

    async def search(
        self,
        embedding: list[float],
        limit: int | None = None,
        filter_conditions: dict[str, Any] | None = None,
        score_threshold: float | None = None,
    ) -> list[SearchResult]:
        """Simulate vector search with cosine similarity."""
        await asyncio.sleep(0)  # Yield to event loop
        self.search_calls.append(
            {"embedding": list(embedding), "limit": limit, "score_threshold": score_threshold}
        )
        if len(embedding) != self._vector_size:
            raise QdrantSearchError(
                f"Vector dimension error: expected {self._vector_size}, got {len(embedding)}"
            )
        actual_limit = limit if limit is not None else _DEFAULT_LIMIT

        results = []
        for point_id, data in self._storage.items():
            score = self._cosine_similarity(embedding, data["embedding"])
            if score_threshold is not None and score < score_threshold:
                continue
            if filter_conditions:
                payload = data["payload"]
                if not all(payload.get(k) == v for k, v in filter_conditions.items()):
                    continue
            results.append(SearchResult(id=point_id, score=score, payload=data["payload"]))

        results.sort(key=lambda r: (-r.score, r.id))
        return results[:actual_limit]

    async def get_vector_size(self) -> int:
        await asyncio.sleep(0)  # Yield to event loop
        return self._vector_size

    def _cosine_similarity(self, a: list[float], b: list[float]) -> float:
        """Raw cosine similarity in [-1, 1]; SearchResult clamps it."""
        dot_product = sum(x * y for x, y in zip(a, b, strict=False))
        norm_a = math.sqrt(sum(x * x for x in a))
        norm_b = math.sqrt(sum(x * x for x in b))

        if norm_a == 0 or norm_b == 0:
            return 0.0

        return dot_product / (norm_a * norm_b)

"""
Semantic (nearest-neighbour) expert search.

Wraps the vector store client with input validation, dimension adaptation and
per-expert deduplication. The store holds one point per work experience, so
the service over-fetches and keeps each expert's best-scoring point.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from expertmatch.domain.exceptions import InvalidInputError, SourceUnavailableError
from expertmatch.domain.models import RetrievalSource, VectorMatch
from expertmatch.search.exceptions import QdrantError
from expertmatch.search.vector import QdrantSearchClientProtocol

logger = logging.getLogger(__name__)

_DEFAULT_CANDIDATE_MULTIPLIER = 3
_EXPERT_ID_FIELD = "expert_id"


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that turns text into a vector."""

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        ...


def adapt_dimensions(vector: list[float], size: int) -> list[float]:
    """Zero-pad or truncate ``vector`` to ``size`` components."""
    if len(vector) == size:
        return list(vector)
    if len(vector) > size:
        return list(vector[:size])
    return list(vector) + [0.0] * (size - len(vector))


class VectorSearchService:
    """Nearest-neighbour search over pre-computed expert embeddings."""

    def __init__(
        self,
        client: QdrantSearchClientProtocol,
        embedder: EmbeddingProvider | None = None,
        candidate_multiplier: int = _DEFAULT_CANDIDATE_MULTIPLIER,
    ) -> None:
        """Initialize the service.

        Args:
            client: Connected vector store client
            embedder: Embedding provider used by search_by_text()
            candidate_multiplier: Over-fetch factor before per-expert dedup
        """
        self._client = client
        self._embedder = embedder
        self._candidate_multiplier = max(1, candidate_multiplier)

    async def search(
        self,
        vector: list[float],
        top_k: int,
        min_similarity: float,
        filter_conditions: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Find the experts closest to ``vector``.

        Args:
            vector: Query embedding
            top_k: Maximum number of experts to return
            min_similarity: Matches scoring below this are dropped
            filter_conditions: Optional payload filters passed to the store

        Returns:
            Matches ordered by similarity descending, one per expert

        Raises:
            InvalidInputError: On an empty vector, top_k < 1, or a threshold
                outside [0, 1]
            SourceUnavailableError: If the vector store fails
        """
        if not vector:
            raise InvalidInputError("Query vector must not be empty")
        if top_k < 1:
            raise InvalidInputError(f"top_k must be positive, got {top_k}")
        if not 0.0 <= min_similarity <= 1.0:
            raise InvalidInputError(
                f"min_similarity must be within [0, 1], got {min_similarity}"
            )

        try:
            stored_size = await self._client.get_vector_size()
            if len(vector) != stored_size:
                logger.warning(
                    "Query vector has %d dimensions, store expects %d; %s",
                    len(vector),
                    stored_size,
                    "truncating" if len(vector) > stored_size else "zero-padding",
                )
                vector = adapt_dimensions(vector, stored_size)

            points = await self._client.search(
                embedding=vector,
                limit=top_k * self._candidate_multiplier,
                filter_conditions=filter_conditions,
            )
        except QdrantError as e:
            raise SourceUnavailableError(
                f"Vector search failed: {e}",
                source=RetrievalSource.VECTOR.value,
                cause=e,
            ) from e

        matches: list[VectorMatch] = []
        seen: set[str] = set()
        for point in sorted(points, key=lambda p: (-p.score, p.id)):
            if point.score < min_similarity:
                continue
            payload = point.payload or {}
            expert_id = str(payload.get(_EXPERT_ID_FIELD) or point.id)
            if expert_id in seen:
                continue
            seen.add(expert_id)
            matches.append(VectorMatch(expert_id=expert_id, similarity=point.score))
            if len(matches) == top_k:
                break

        logger.debug("Vector search returned %d experts from %d points", len(matches), len(points))
        return matches

    async def search_by_text(
        self,
        text: str,
        top_k: int,
        min_similarity: float,
        filter_conditions: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Embed ``text`` and search with the resulting vector.

        Raises:
            InvalidInputError: On blank text or when no embedder is configured
            SourceUnavailableError: If embedding or the vector store fails
        """
        if not text or not text.strip():
            raise InvalidInputError("Search text must not be blank")
        if self._embedder is None:
            raise InvalidInputError("No embedding provider configured for text search")

        try:
            vector = await self._embedder.embed(text)
        except Exception as e:
            raise SourceUnavailableError(
                f"Embedding failed: {e}",
                source=RetrievalSource.VECTOR.value,
                cause=e,
            ) from e
        return await self.search(vector, top_k, min_similarity, filter_conditions)

"""
Unit tests for the Qdrant search client.

Design follows:
- Repository Pattern: FakeQdrantSearchClient for service tests
- Real client tested against a patched AsyncQdrantClient
- Custom exceptions: QdrantConnectionError/QdrantSearchError, not builtins
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def mock_settings() -> MagicMock:
    """Create mock settings for Qdrant configuration."""
    settings = MagicMock()
    settings.qdrant_url = "http://localhost:6333"
    settings.qdrant_api_key = None
    settings.qdrant_collection = "expert_experience"
    return settings


def _collection_info(vectors: object) -> SimpleNamespace:
    return SimpleNamespace(config=SimpleNamespace(params=SimpleNamespace(vectors=vectors)))


# =============================================================================
# Test: SearchResult
# =============================================================================


class TestSearchResult:
    """Tests for score clamping."""

    def test_negative_score_clamped_to_zero(self) -> None:
        from expertmatch.search.vector import SearchResult

        result = SearchResult(id="p1", score=-0.5, payload=None)

        assert result.score == pytest.approx(0.0)

    def test_in_range_score_unchanged(self) -> None:
        from expertmatch.search.vector import SearchResult

        assert SearchResult(id="p1", score=0.3, payload=None).score == pytest.approx(0.3)

    def test_clamping_preserves_raw_order(self) -> None:
        from expertmatch.search.vector import SearchResult

        raw_scores = [-0.9, -0.1, 0.0, 0.3, 0.8, 1.0, 1.2]
        clamped = [SearchResult(id=str(i), score=s, payload=None).score for i, s in enumerate(raw_scores)]

        assert clamped == sorted(clamped)
        assert SearchResult(id="a", score=-0.1, payload=None).score < SearchResult(
            id="b", score=0.3, payload=None
        ).score

    def test_score_above_one_clamped(self) -> None:
        from expertmatch.search.vector import SearchResult

        assert SearchResult(id="p1", score=1.2, payload=None).score == pytest.approx(1.0)


class TestBuildFilter:
    """Tests for payload filter translation."""

    def test_empty_conditions_give_no_filter(self) -> None:
        from expertmatch.search.vector import build_filter

        assert build_filter(None) is None
        assert build_filter({}) is None

    def test_conditions_become_must_clauses(self) -> None:
        from expertmatch.search.vector import build_filter

        qdrant_filter = build_filter({"seniority": "Senior", "technologies": ["Java", "Kafka"]})

        assert qdrant_filter is not None
        assert len(qdrant_filter.must) == 2


# =============================================================================
# Test: QdrantSearchClient
# =============================================================================


class TestQdrantSearchClient:
    """Tests for the real client against a patched AsyncQdrantClient."""

    def test_lazy_initialization(self, mock_settings: MagicMock) -> None:
        from expertmatch.search.vector import QdrantSearchClient

        client = QdrantSearchClient(settings=mock_settings)

        assert client._client is None
        assert client.collection == "expert_experience"

    @pytest.mark.asyncio
    async def test_connect_failure_raises_connection_error(
        self, mock_settings: MagicMock
    ) -> None:
        from expertmatch.search.exceptions import QdrantConnectionError
        from expertmatch.search.vector import QdrantSearchClient

        with patch("expertmatch.search.vector.AsyncQdrantClient") as mock_cls:
            mock_cls.return_value.get_collections = AsyncMock(side_effect=OSError("refused"))
            client = QdrantSearchClient(settings=mock_settings)

            with pytest.raises(QdrantConnectionError):
                await client.connect()

        assert client._client is None

    @pytest.mark.asyncio
    async def test_search_requires_connection(self, mock_settings: MagicMock) -> None:
        from expertmatch.search.exceptions import QdrantConnectionError
        from expertmatch.search.vector import QdrantSearchClient

        client = QdrantSearchClient(settings=mock_settings)

        with pytest.raises(QdrantConnectionError):
            await client.search(embedding=[0.1, 0.2])

    @pytest.mark.asyncio
    async def test_search_maps_points(self, mock_settings: MagicMock) -> None:
        from expertmatch.search.vector import QdrantSearchClient

        with patch("expertmatch.search.vector.AsyncQdrantClient") as mock_cls:
            qdrant = mock_cls.return_value
            qdrant.get_collections = AsyncMock()
            qdrant.query_points = AsyncMock(
                return_value=SimpleNamespace(
                    points=[SimpleNamespace(id=7, score=0.91, payload={"expert_id": "e1"})]
                )
            )
            client = QdrantSearchClient(settings=mock_settings)
            await client.connect()

            results = await client.search(embedding=[0.1, 0.2], limit=5)

        assert results[0].id == "7"
        assert results[0].payload == {"expert_id": "e1"}
        kwargs = qdrant.query_points.call_args.kwargs
        assert kwargs["collection_name"] == "expert_experience"
        assert kwargs["limit"] == 5
        assert kwargs["with_payload"] is True

    @pytest.mark.asyncio
    async def test_search_failure_raises_search_error(self, mock_settings: MagicMock) -> None:
        from expertmatch.search.exceptions import QdrantSearchError
        from expertmatch.search.vector import QdrantSearchClient

        with patch("expertmatch.search.vector.AsyncQdrantClient") as mock_cls:
            qdrant = mock_cls.return_value
            qdrant.get_collections = AsyncMock()
            qdrant.query_points = AsyncMock(side_effect=RuntimeError("bad request"))
            client = QdrantSearchClient(settings=mock_settings)
            await client.connect()

            with pytest.raises(QdrantSearchError) as exc_info:
                await client.search(embedding=[0.1])

        assert exc_info.value.collection == "expert_experience"

    @pytest.mark.asyncio
    async def test_vector_size_cached(self, mock_settings: MagicMock) -> None:
        from expertmatch.search.vector import QdrantSearchClient

        with patch("expertmatch.search.vector.AsyncQdrantClient") as mock_cls:
            qdrant = mock_cls.return_value
            qdrant.get_collections = AsyncMock()
            qdrant.get_collection = AsyncMock(
                return_value=_collection_info(SimpleNamespace(size=768))
            )
            client = QdrantSearchClient(settings=mock_settings)
            await client.connect()

            assert await client.get_vector_size() == 768
            assert await client.get_vector_size() == 768

        qdrant.get_collection.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_named_vectors_use_first(self, mock_settings: MagicMock) -> None:
        from expertmatch.search.vector import QdrantSearchClient

        with patch("expertmatch.search.vector.AsyncQdrantClient") as mock_cls:
            qdrant = mock_cls.return_value
            qdrant.get_collections = AsyncMock()
            qdrant.get_collection = AsyncMock(
                return_value=_collection_info({"default": SimpleNamespace(size=384)})
            )
            client = QdrantSearchClient(settings=mock_settings)
            await client.connect()

            assert await client.get_vector_size() == 384


# =============================================================================
# Test: FakeQdrantSearchClient
# =============================================================================


class TestFakeQdrantSearchClient:
    """Tests for the in-memory fake."""

    @pytest.mark.asyncio
    async def test_results_sorted_by_similarity(self) -> None:
        from expertmatch.search.vector import FakeQdrantSearchClient

        client = FakeQdrantSearchClient(vector_size=2)
        client.add_point("far", [0.0, 1.0])
        client.add_point("near", [1.0, 0.0])

        results = await client.search(embedding=[1.0, 0.0])

        assert [r.id for r in results] == ["near", "far"]
        assert results[0].score == pytest.approx(1.0)

    def test_add_point_rejects_wrong_dimension(self) -> None:
        from expertmatch.search.vector import FakeQdrantSearchClient

        client = FakeQdrantSearchClient(vector_size=2)

        with pytest.raises(ValueError):
            client.add_point("p", [1.0, 0.0, 0.0])

    @pytest.mark.asyncio
    async def test_search_rejects_wrong_dimension(self) -> None:
        from expertmatch.search.exceptions import QdrantSearchError
        from expertmatch.search.vector import FakeQdrantSearchClient

        client = FakeQdrantSearchClient(vector_size=2)

        with pytest.raises(QdrantSearchError):
            await client.search(embedding=[1.0])

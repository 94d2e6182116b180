"""
Unit tests for KeywordSearchService.

Runs against FakeNeo4jClient; asserts on the Cypher parameters sent and on
validation happening before any query.
"""

from __future__ import annotations

import pytest

from expertmatch.domain.exceptions import InvalidInputError, SourceUnavailableError
from expertmatch.graph.exceptions import Neo4jQueryError
from expertmatch.graph.neo4j_client import FakeNeo4jClient
from expertmatch.graph.schema import EXPERTS_BY_TECHNOLOGIES, FULLTEXT_EXPERTS
from expertmatch.search.keyword import (
    KeywordSearchService,
    build_fulltext_query,
    escape_lucene,
)


@pytest.fixture
def client() -> FakeNeo4jClient:
    return FakeNeo4jClient()


@pytest.fixture
def service(client: FakeNeo4jClient) -> KeywordSearchService:
    return KeywordSearchService(client, index_name="expertText")


# =============================================================================
# Test: Query Building
# =============================================================================


class TestFulltextQuery:
    """Tests for Lucene escaping and OR-joining."""

    def test_special_characters_escaped(self) -> None:
        assert escape_lucene("C++") == r"C\+\+"
        assert escape_lucene("node:js") == r"node\:js"

    def test_terms_or_joined(self) -> None:
        assert build_fulltext_query(["kafka", "payments"]) == "kafka OR payments"

    def test_multi_word_terms_quoted(self) -> None:
        assert build_fulltext_query(["Spring Boot", "java"]) == '"Spring Boot" OR java'


# =============================================================================
# Test: search_by_keywords
# =============================================================================


class TestSearchByKeywords:
    """Tests for full-text search."""

    @pytest.mark.asyncio
    async def test_returns_ids_in_index_order(
        self, service: KeywordSearchService, client: FakeNeo4jClient
    ) -> None:
        client.set_query_results(
            [{"expert_id": "e2", "score": 3.1}, {"expert_id": "e1", "score": 2.0}]
        )

        ids = await service.search_by_keywords(["kafka", "payments"], max_results=10)

        assert ids == ["e2", "e1"]
        cypher, params = client.queries[0]
        assert cypher == FULLTEXT_EXPERTS
        assert params == {"index": "expertText", "query": "kafka OR payments", "limit": 10}

    @pytest.mark.asyncio
    async def test_duplicate_rows_collapsed(
        self, service: KeywordSearchService, client: FakeNeo4jClient
    ) -> None:
        client.set_query_results([{"expert_id": "e1"}, {"expert_id": "e1"}, {"expert_id": "e3"}])

        assert await service.search_by_keywords(["java"], max_results=5) == ["e1", "e3"]

    @pytest.mark.asyncio
    async def test_blank_keywords_dropped(
        self, service: KeywordSearchService, client: FakeNeo4jClient
    ) -> None:
        await service.search_by_keywords(["  ", "kafka"], max_results=5)

        assert client.queries[0][1]["query"] == "kafka"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("keywords", [[], ["", "  "]])
    async def test_empty_keywords_rejected_before_query(
        self,
        service: KeywordSearchService,
        client: FakeNeo4jClient,
        keywords: list[str],
    ) -> None:
        with pytest.raises(InvalidInputError):
            await service.search_by_keywords(keywords, max_results=5)

        assert client.queries == []

    @pytest.mark.asyncio
    async def test_non_positive_max_results_rejected(
        self, service: KeywordSearchService, client: FakeNeo4jClient
    ) -> None:
        with pytest.raises(InvalidInputError):
            await service.search_by_keywords(["java"], max_results=0)

        assert client.queries == []

    @pytest.mark.asyncio
    async def test_backend_error_wrapped(
        self, service: KeywordSearchService, client: FakeNeo4jClient
    ) -> None:
        client.set_error(Neo4jQueryError("index missing", query=FULLTEXT_EXPERTS))

        with pytest.raises(SourceUnavailableError) as exc_info:
            await service.search_by_keywords(["java"], max_results=5)

        assert exc_info.value.source == "keyword"


# =============================================================================
# Test: search_by_technologies
# =============================================================================


class TestSearchByTechnologies:
    """Tests for technology-count ranking."""

    @pytest.mark.asyncio
    async def test_technologies_lowercased_and_deduplicated(
        self, service: KeywordSearchService, client: FakeNeo4jClient
    ) -> None:
        client.set_query_results([{"expert_id": "e1", "matched": 2}])

        ids = await service.search_by_technologies(["Java", "java", "Kafka"], max_results=3)

        assert ids == ["e1"]
        cypher, params = client.queries[0]
        assert cypher == EXPERTS_BY_TECHNOLOGIES
        assert params == {"technologies": ["java", "kafka"], "limit": 3}

    @pytest.mark.asyncio
    async def test_empty_technologies_rejected(self, service: KeywordSearchService) -> None:
        with pytest.raises(InvalidInputError):
            await service.search_by_technologies([], max_results=3)

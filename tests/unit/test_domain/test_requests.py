"""
Unit tests for request validation.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from expertmatch.domain.models import RetrievalSource
from expertmatch.domain.requests import QueryOptions, QueryRequest


class TestQueryRequest:
    """Tests for QueryRequest."""

    def test_query_stripped(self) -> None:
        assert QueryRequest(query="  Java experts ").query == "Java experts"

    @pytest.mark.parametrize("query", ["", "   "])
    def test_blank_query_rejected(self, query: str) -> None:
        with pytest.raises(ValidationError):
            QueryRequest(query=query)

    def test_overlong_query_rejected(self) -> None:
        with pytest.raises(ValidationError):
            QueryRequest(query="x" * 5001)

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            QueryRequest(query="Java", top_k=5)

    def test_with_query_disables_deep_research(self) -> None:
        request = QueryRequest(
            query="Java experts",
            options=QueryOptions(deep_research=True, max_results=7, rerank=False),
        )

        sub_request = request.with_query("Kafka Streams engineers")

        assert sub_request.query == "Kafka Streams engineers"
        assert sub_request.options.deep_research is False
        assert sub_request.options.max_results == 7
        assert sub_request.options.rerank is False
        assert request.options.deep_research is True


class TestQueryOptions:
    """Tests for QueryOptions."""

    def test_defaults(self) -> None:
        options = QueryOptions()

        assert options.max_results == 10
        assert options.min_similarity == pytest.approx(0.7)
        assert options.rerank is True
        assert options.deep_research is False
        assert options.enabled_sources is None

    @pytest.mark.parametrize(
        "field,value",
        [("max_results", 0), ("max_results", 101), ("min_similarity", 1.5), ("min_similarity", -0.1)],
    )
    def test_out_of_range_rejected(self, field: str, value: float) -> None:
        with pytest.raises(ValidationError):
            QueryOptions(**{field: value})

    def test_enabled_sources_coerced(self) -> None:
        options = QueryOptions(enabled_sources=["vector", "graph"])

        assert options.enabled_sources == {RetrievalSource.VECTOR, RetrievalSource.GRAPH}

    def test_empty_enabled_sources_rejected(self) -> None:
        with pytest.raises(ValidationError):
            QueryOptions(enabled_sources=[])

    def test_unknown_source_rejected(self) -> None:
        with pytest.raises(ValidationError):
            QueryOptions(enabled_sources=["sql"])

    def test_frozen(self) -> None:
        options = QueryOptions()

        with pytest.raises(ValidationError):
            options.max_results = 3

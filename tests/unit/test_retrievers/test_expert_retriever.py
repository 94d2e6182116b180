"""
Unit tests for the LangChain ExpertRetriever.

Uses FakeHybridRetrieval from tests/fakes.py; results are keyed by the parsed
query text.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from expertmatch.query.parser import QueryParser
from tests.fakes import FakeHybridRetrieval, FakeProfileStore, make_result

QUERY = "Java payments experts"


@pytest.fixture
def retrieval() -> FakeHybridRetrieval:
    return FakeHybridRetrieval(
        {QUERY: make_result([("e1", 1.0), ("e2", 0.8), ("e3", 0.5)], degraded=["vector", "graph"])}
    )


# =============================================================================
# Test: Construction
# =============================================================================


class TestExpertRetrieverInit:
    """Tests for field validation."""

    def test_is_langchain_retriever(self, retrieval) -> None:
        from langchain_core.retrievers import BaseRetriever

        from expertmatch.retrievers import ExpertRetriever

        assert isinstance(ExpertRetriever(retrieval=retrieval, parser=QueryParser()), BaseRetriever)

    def test_k_must_be_positive(self, retrieval) -> None:
        from expertmatch.retrievers import ExpertRetriever

        with pytest.raises(ValidationError):
            ExpertRetriever(retrieval=retrieval, parser=QueryParser(), k=0)


# =============================================================================
# Test: Retrieval
# =============================================================================


class TestExpertRetrieverRetrieval:
    """Tests for document production."""

    @pytest.mark.asyncio
    async def test_documents_carry_metadata(self, retrieval) -> None:
        from expertmatch.retrievers import ExpertRetriever

        retriever = ExpertRetriever(retrieval=retrieval, parser=QueryParser(), k=2)

        docs = await retriever.ainvoke(QUERY)

        assert [d.metadata["id"] for d in docs] == ["e1", "e2"]
        assert docs[1].metadata == {
            "id": "e2",
            "rank": 1,
            "score": 0.8,
            "source": "expertmatch",
            "degraded_sources": ["graph", "vector"],
        }
        assert docs[0].page_content == "Expert ID: e1"

    @pytest.mark.asyncio
    async def test_options_forwarded(self, retrieval) -> None:
        from expertmatch.retrievers import ExpertRetriever

        retriever = ExpertRetriever(
            retrieval=retrieval, parser=QueryParser(), k=3, rerank=False, min_similarity=0.4
        )

        await retriever.ainvoke(QUERY)

        _, options = retrieval.calls[0]
        assert options.max_results == 3
        assert options.rerank is False
        assert options.min_similarity == pytest.approx(0.4)

    @pytest.mark.asyncio
    async def test_profiles_rendered(self, retrieval, sample_profiles) -> None:
        from expertmatch.retrievers import ExpertRetriever

        retriever = ExpertRetriever(
            retrieval=retrieval,
            parser=QueryParser(),
            profile_store=FakeProfileStore(sample_profiles),
        )

        docs = await retriever.ainvoke(QUERY)

        assert docs[0].page_content.startswith("Expert ID: e1\nName: Ada Byte")

    @pytest.mark.asyncio
    async def test_profile_failure_falls_back_to_ids(self, retrieval) -> None:
        from expertmatch.retrievers import ExpertRetriever

        retriever = ExpertRetriever(
            retrieval=retrieval,
            parser=QueryParser(),
            profile_store=FakeProfileStore(error=RuntimeError("graph down")),
        )

        docs = await retriever.ainvoke(QUERY)

        assert [d.page_content for d in docs] == ["Expert ID: e1", "Expert ID: e2", "Expert ID: e3"]

    @pytest.mark.asyncio
    async def test_deep_research_used_when_requested(self, retrieval) -> None:
        from expertmatch.retrievers import ExpertRetriever

        deep_research = MagicMock()
        deep_research.perform_deep_research = AsyncMock(return_value=make_result([("e9", 0.7)]))
        retriever = ExpertRetriever(
            retrieval=retrieval,
            parser=QueryParser(),
            deep_research_service=deep_research,
            deep_research=True,
        )

        docs = await retriever.ainvoke(QUERY)

        assert [d.metadata["id"] for d in docs] == ["e9"]
        assert retrieval.calls == []
        request = deep_research.perform_deep_research.call_args.args[0]
        assert request.options.deep_research is True

    @pytest.mark.asyncio
    async def test_failure_wrapped(self) -> None:
        from expertmatch.retrievers import ExpertRetriever, RetrieverError

        retrieval = FakeHybridRetrieval({QUERY: RuntimeError("all backends down")})
        retriever = ExpertRetriever(retrieval=retrieval, parser=QueryParser())

        with pytest.raises(RetrieverError) as exc_info:
            await retriever.ainvoke(QUERY)

        assert "all backends down" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_blank_query_returns_nothing(self, retrieval) -> None:
        from expertmatch.retrievers import ExpertRetriever

        retriever = ExpertRetriever(retrieval=retrieval, parser=QueryParser())

        assert await retriever.ainvoke("  ") == []
        assert retrieval.calls == []

    def test_sync_invoke(self, retrieval) -> None:
        from expertmatch.retrievers import ExpertRetriever

        retriever = ExpertRetriever(retrieval=retrieval, parser=QueryParser(), k=1)

        docs = retriever.invoke(QUERY)

        assert [d.metadata["id"] for d in docs] == ["e1"]

"""
LangChain retriever over the hybrid expert search.

Wraps HybridRetrievalService (and optionally DeepResearchService) so expert
matching can be dropped into LCEL chains:

    retriever = ExpertRetriever(retrieval=hybrid, parser=QueryParser(), k=5)
    chain = retriever | format_experts | prompt | llm

Each Document is one expert: page_content is the rendered profile when a
profile store is available (otherwise just the id), metadata carries id,
rank, relevance score and degraded sources.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from langchain_core.callbacks import (
    AsyncCallbackManagerForRetrieverRun,
    CallbackManagerForRetrieverRun,
)
from langchain_core.documents import Document
from langchain_core.retrievers import BaseRetriever
from pydantic import Field

from expertmatch.domain.requests import QueryOptions, QueryRequest
from expertmatch.llm.prompts import render_profile
from expertmatch.retrievers.exceptions import RetrieverError

logger = logging.getLogger(__name__)


class ExpertRetriever(BaseRetriever):
    """LangChain retriever returning one Document per matched expert.

    Attributes:
        k: Number of experts to return (default: 5)
        rerank: Rerank fused candidates with the chat model
        deep_research: Use the deep-research loop when configured
        min_similarity: Vector similarity floor
    """

    # Pydantic fields for LangChain BaseRetriever
    k: int = Field(default=5, ge=1, le=100, description="Number of experts to return")
    rerank: bool = Field(default=True, description="Rerank with the chat model")
    deep_research: bool = Field(default=False, description="Run deep research")
    min_similarity: float = Field(default=0.7, ge=0.0, le=1.0)

    # Private attributes (not Pydantic fields)
    _retrieval: Any = None
    _parser: Any = None
    _deep_research_service: Any = None
    _profile_store: Any = None

    def __init__(
        self,
        retrieval: Any,
        parser: Any,
        deep_research_service: Any | None = None,
        profile_store: Any | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize retriever with the engine services.

        Args:
            retrieval: HybridRetrievalService
            parser: QueryParser for incoming query text
            deep_research_service: Optional DeepResearchService
            profile_store: Optional ProfileStore for page content
            **kwargs: Field values and BaseRetriever arguments
        """
        super().__init__(**kwargs)
        self._retrieval = retrieval
        self._parser = parser
        self._deep_research_service = deep_research_service
        self._profile_store = profile_store

    def _get_relevant_documents(
        self,
        query: str,
        *,
        run_manager: CallbackManagerForRetrieverRun | None = None,
    ) -> list[Document]:
        """Synchronous entry point; runs the async path in a fresh event loop."""
        _ = run_manager
        if not query or not query.strip():
            return []
        return asyncio.run(self._aget_relevant_documents(query))

    async def _aget_relevant_documents(
        self,
        query: str,
        *,
        run_manager: AsyncCallbackManagerForRetrieverRun | None = None,
    ) -> list[Document]:
        """Retrieve experts for ``query``.

        Raises:
            RetrieverError: If retrieval fails as a whole
        """
        _ = run_manager
        if not query or not query.strip():
            return []

        request = QueryRequest(
            query=query,
            options=QueryOptions(
                max_results=self.k,
                min_similarity=self.min_similarity,
                rerank=self.rerank,
                deep_research=self.deep_research,
            ),
        )
        try:
            parsed = await self._parser.aparse(request.query)
            if request.options.deep_research and self._deep_research_service is not None:
                result = await self._deep_research_service.perform_deep_research(request, parsed)
            else:
                result = await self._retrieval.retrieve(parsed, options=request.options)
        except Exception as e:
            raise RetrieverError(f"Expert retrieval failed: {e}") from e

        expert_ids = list(result.expert_ids[: self.k])
        profiles: dict[str, Any] = {}
        if self._profile_store is not None and expert_ids:
            try:
                found = await self._profile_store.find_profiles(expert_ids)
                profiles = {p.expert_id: p for p in found}
            except Exception as e:
                logger.warning("Profile lookup failed, returning bare ids: %s", e)
                profiles = {}

        documents: list[Document] = []
        for rank, expert_id in enumerate(expert_ids):
            profile = profiles.get(expert_id)
            documents.append(
                Document(
                    page_content=render_profile(profile) if profile else f"Expert ID: {expert_id}",
                    metadata={
                        "id": expert_id,
                        "rank": rank,
                        "score": result.relevance_scores[expert_id],
                        "source": "expertmatch",
                        "degraded_sources": sorted(result.degraded_sources),
                    },
                )
            )
        return documents

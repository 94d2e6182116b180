"""
Service wiring for expert-match.

Builds the backend clients and retrieval services from Settings and keeps
them in one container for the lifetime of a process (or a CLI invocation).

Usage:
    async with create_services(get_settings()) as services:
        result = await services.search(QueryRequest(query="Senior Java experts"))
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from expertmatch.core.config import Settings
from expertmatch.core.tracing import ExecutionTrace
from expertmatch.domain.models import RetrievalResult
from expertmatch.domain.requests import QueryRequest
from expertmatch.embedding.sentence_transformer import SentenceTransformerEmbedder
from expertmatch.graph.graph_search import GraphSearchService
from expertmatch.graph.neo4j_client import Neo4jClient, Neo4jClientProtocol
from expertmatch.graph.profile_store import Neo4jProfileStore, ProfileStore
from expertmatch.llm.completion import (
    ChatModelCompletionClient,
    CompletionClient,
    build_chat_model,
)
from expertmatch.query.parser import QueryParser
from expertmatch.retrieval.deep_research import DeepResearchService
from expertmatch.retrieval.hybrid import HybridRetrievalService
from expertmatch.retrieval.reranker import SemanticReranker
from expertmatch.search.fusion import ResultFusionService
from expertmatch.search.keyword import KeywordSearchService
from expertmatch.search.vector import QdrantSearchClient, QdrantSearchClientProtocol
from expertmatch.search.vector_search import EmbeddingProvider, VectorSearchService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Container for all service dependencies."""

    settings: Settings
    parser: QueryParser
    graph_client: Neo4jClientProtocol
    vector_client: QdrantSearchClientProtocol
    profile_store: ProfileStore
    retrieval: HybridRetrievalService
    deep_research: DeepResearchService | None = None

    async def search(
        self,
        request: QueryRequest,
        trace: ExecutionTrace | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RetrievalResult:
        """Parse ``request.query`` and run hybrid retrieval or deep research.

        Deep research needs a chat model; without one the request degrades
        to a single hybrid pass.
        """
        parsed = await self.parser.aparse(request.query)
        if request.options.deep_research:
            if self.deep_research is not None:
                return await self.deep_research.perform_deep_research(
                    request, parsed, trace=trace, cancel_event=cancel_event
                )
            logger.warning("Deep research requested but no chat model is configured")
        return await self.retrieval.retrieve(parsed, options=request.options, trace=trace)


def build_services(
    settings: Settings,
    graph_client: Neo4jClientProtocol,
    vector_client: QdrantSearchClientProtocol,
    embedder: EmbeddingProvider | None = None,
    completion_client: CompletionClient | None = None,
) -> ServiceContainer:
    """Assemble the services on top of already-created clients."""
    profile_store = Neo4jProfileStore(graph_client)
    parser = QueryParser(
        completion_client=completion_client if settings.llm_query_analysis else None
    )
    reranker = SemanticReranker(completion_client, profile_store)
    retrieval = HybridRetrievalService(
        vector_search=VectorSearchService(
            vector_client,
            embedder,
            candidate_multiplier=settings.vector_candidate_multiplier,
        ),
        graph_search=GraphSearchService(graph_client, limit=settings.graph_result_limit),
        keyword_search=KeywordSearchService(
            graph_client, index_name=settings.keyword_fulltext_index
        ),
        fusion=ResultFusionService(k=settings.fusion_rrf_k),
        reranker=reranker,
        settings=settings,
    )
    deep_research = None
    if completion_client is not None:
        deep_research = DeepResearchService(
            retrieval,
            completion_client,
            profile_store,
            query_parser=parser,
            settings=settings,
        )
    return ServiceContainer(
        settings=settings,
        parser=parser,
        graph_client=graph_client,
        vector_client=vector_client,
        profile_store=profile_store,
        retrieval=retrieval,
        deep_research=deep_research,
    )


@asynccontextmanager
async def create_services(settings: Settings) -> AsyncIterator[ServiceContainer]:
    """Connect the backends, yield the wired container, close on exit.

    Raises:
        Neo4jConnectionError: If Neo4j is unreachable
        QdrantConnectionError: If Qdrant is unreachable
    """
    graph_client = Neo4jClient(settings=settings)
    vector_client = QdrantSearchClient(settings=settings)
    await graph_client.connect()
    try:
        await vector_client.connect()
        try:
            chat_model = build_chat_model(settings)
            completion_client = (
                ChatModelCompletionClient(chat_model, model_name=settings.llm_model)
                if chat_model is not None
                else None
            )
            yield build_services(
                settings,
                graph_client,
                vector_client,
                embedder=SentenceTransformerEmbedder(settings.embedding_model),
                completion_client=completion_client,
            )
        finally:
            await vector_client.close()
    finally:
        await graph_client.close()

"""
Hybrid retrieval: concurrent vector, graph and keyword search, fused into one
ranking and optionally reranked by a language model.

Fan-out:
- every enabled source runs concurrently (asyncio.gather) under its own
  timeout
- a failing or timed-out source contributes an empty, degraded ranking; the
  other sources are unaffected
- a source with nothing to search for (no keywords, no graph filters) is
  skipped, which is not a degradation

Fusion weights come from Settings and are adjusted per query: keyword search
weighs more when the query names technologies, graph search weighs more for
team formation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable

from expertmatch.core.config import Settings, get_settings
from expertmatch.core.tracing import ExecutionTrace, StepStatus, trace_step
from expertmatch.domain.exceptions import InvalidInputError
from expertmatch.domain.models import (
    ALL_SOURCES,
    GraphFilters,
    ParsedQuery,
    QueryIntent,
    RetrievalResult,
    RetrievalSource,
    SourceOutcome,
)
from expertmatch.domain.requests import QueryOptions
from expertmatch.graph.graph_search import GraphSearchService
from expertmatch.retrieval.reranker import SemanticReranker
from expertmatch.search.fusion import ResultFusionService
from expertmatch.search.keyword import KeywordSearchService
from expertmatch.search.vector_search import VectorSearchService

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

_CANDIDATE_POOL_FACTOR = 2
_MIN_CANDIDATE_POOL = 20
_TECHNOLOGY_KEYWORD_WEIGHT = 0.8
_TEAM_FORMATION_GRAPH_WEIGHT = 1.0

_SOURCE_STEP_NAMES = {
    RetrievalSource.VECTOR: "Vector Search",
    RetrievalSource.GRAPH: "Graph Search",
    RetrievalSource.KEYWORD: "Keyword Search",
}


def resolve_sources(
    sources: Iterable[str | RetrievalSource] | None,
) -> frozenset[RetrievalSource]:
    """Normalise source names; None means every source.

    Raises:
        InvalidInputError: On an unknown source name or an empty selection
    """
    if sources is None:
        return ALL_SOURCES
    resolved: set[RetrievalSource] = set()
    for name in sources:
        try:
            resolved.add(RetrievalSource(name))
        except ValueError as e:
            raise InvalidInputError(
                f"Unknown retrieval source '{name}'; "
                f"valid: {', '.join(sorted(s.value for s in RetrievalSource))}",
                cause=e,
            ) from e
    if not resolved:
        raise InvalidInputError("At least one retrieval source must be enabled")
    return frozenset(resolved)


class HybridRetrievalService:
    """Orchestrates the base searches, fusion and reranking."""

    def __init__(
        self,
        vector_search: VectorSearchService,
        graph_search: GraphSearchService,
        keyword_search: KeywordSearchService,
        fusion: ResultFusionService | None = None,
        reranker: SemanticReranker | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize with the base search services.

        Args:
            vector_search: Semantic search source
            graph_search: Relationship-graph source
            keyword_search: Full-text source
            fusion: Rank fusion (default: k from settings)
            reranker: Optional model reranker
            settings: Weights, timeouts (default: get_settings())
        """
        self._settings = settings or get_settings()
        self._vector = vector_search
        self._graph = graph_search
        self._keyword = keyword_search
        self._fusion = fusion or ResultFusionService(k=self._settings.fusion_rrf_k)
        self._reranker = reranker
        self._timeout = self._settings.source_timeout_seconds

    def source_weights(self, parsed_query: ParsedQuery) -> dict[str, float]:
        """Fusion weight per source for this query."""
        weights = {
            RetrievalSource.VECTOR.value: self._settings.fusion_vector_weight,
            RetrievalSource.GRAPH.value: self._settings.fusion_graph_weight,
            RetrievalSource.KEYWORD.value: self._settings.fusion_keyword_weight,
        }
        if parsed_query.technologies:
            weights[RetrievalSource.KEYWORD.value] = max(
                weights[RetrievalSource.KEYWORD.value], _TECHNOLOGY_KEYWORD_WEIGHT
            )
        if parsed_query.intent is QueryIntent.TEAM_FORMATION:
            weights[RetrievalSource.GRAPH.value] = max(
                weights[RetrievalSource.GRAPH.value], _TEAM_FORMATION_GRAPH_WEIGHT
            )
        return weights

    async def retrieve(
        self,
        parsed_query: ParsedQuery,
        enabled_sources: Iterable[str | RetrievalSource] | None = None,
        filters: GraphFilters | None = None,
        *,
        options: QueryOptions | None = None,
        trace: ExecutionTrace | None = None,
    ) -> RetrievalResult:
        """Run the enabled sources concurrently and fuse their rankings.

        Args:
            parsed_query: Parsed query
            enabled_sources: Sources to run; falls back to
                ``options.enabled_sources``, then to every source
            filters: Extra graph filters merged with the query's entities
            options: Result size, similarity floor, rerank flag
            trace: Optional execution trace

        Returns:
            Fused (and possibly reranked) result; ``degraded_sources`` names
            the sources whose backend failed

        Raises:
            InvalidInputError: On an unknown source name
        """
        options = options or QueryOptions()
        if enabled_sources is None:
            enabled_sources = options.enabled_sources
        sources = resolve_sources(enabled_sources)
        pool = max(options.max_results * _CANDIDATE_POOL_FACTOR, _MIN_CANDIDATE_POOL)
        graph_filters = GraphFilters.from_parsed_query(parsed_query).merged(filters)

        calls: dict[RetrievalSource, Callable[[], Awaitable[SourceOutcome]] | None] = {
            RetrievalSource.VECTOR: lambda: self._search_vector(parsed_query, pool, options),
            RetrievalSource.GRAPH: (
                None if graph_filters.is_empty else lambda: self._graph.search_outcome(graph_filters)
            ),
            RetrievalSource.KEYWORD: (
                None
                if not parsed_query.search_terms
                else lambda: self._search_keywords(parsed_query, pool)
            ),
        }
        # Fixed source order keeps fusion tie-breaking deterministic
        ordered = [source for source in RetrievalSource if source in sources]
        outcomes = await asyncio.gather(
            *(self._run_source(source, calls[source], trace) for source in ordered)
        )

        degraded = frozenset(o.source.value for o in outcomes if o.degraded)
        named_results = {o.source.value: list(o.expert_ids) for o in outcomes}
        if not any(named_results.values()):
            logger.info(
                "No candidates from %s (degraded: %s)",
                [s.value for s in ordered],
                sorted(degraded) or "none",
            )
            return RetrievalResult.empty(degraded)

        async with trace_step(
            trace,
            "Result Fusion",
            type(self._fusion).__name__,
            "fuse",
            input_summary=", ".join(f"{k}={len(v)}" for k, v in named_results.items()),
        ) as step:
            fused = self._fusion.fuse_with_scores(named_results, self.source_weights(parsed_query))
            step.output_summary = f"{len(fused)} candidates"

        if options.rerank and self._reranker is not None and self._reranker.enabled:
            result = await self._rerank(parsed_query, fused, options, degraded, trace)
            if not result.is_empty:
                return result
            logger.warning("Reranking produced no candidates, using fused order")

        return _normalized_result(fused[: options.max_results], degraded)

    async def _search_vector(
        self,
        parsed_query: ParsedQuery,
        pool: int,
        options: QueryOptions,
    ) -> SourceOutcome:
        matches = await self._vector.search_by_text(
            parsed_query.text,
            top_k=pool,
            min_similarity=options.min_similarity,
        )
        return SourceOutcome(
            source=RetrievalSource.VECTOR,
            expert_ids=tuple(m.expert_id for m in matches),
        )

    async def _search_keywords(self, parsed_query: ParsedQuery, pool: int) -> SourceOutcome:
        ids = await self._keyword.search_by_keywords(parsed_query.search_terms, pool)
        return SourceOutcome(source=RetrievalSource.KEYWORD, expert_ids=tuple(ids))

    async def _run_source(
        self,
        source: RetrievalSource,
        call: Callable[[], Awaitable[SourceOutcome]] | None,
        trace: ExecutionTrace | None,
    ) -> SourceOutcome:
        """Run one source in isolation; never raises except on cancellation."""
        name = _SOURCE_STEP_NAMES[source]
        if call is None:
            if trace is not None:
                trace.record(
                    name,
                    "HybridRetrievalService",
                    source.value,
                    StepStatus.SKIPPED,
                    output_summary="nothing to search for",
                )
            return SourceOutcome(source=source)

        started = time.perf_counter()
        try:
            outcome = await asyncio.wait_for(call(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs", name, self._timeout)
            outcome = SourceOutcome.failed(source, f"timed out after {self._timeout}s")
        except Exception as e:
            logger.warning("%s failed, continuing without it: %s", name, e)
            logger.debug("%s failure detail", name, exc_info=True)
            outcome = SourceOutcome.failed(source, e)

        if trace is not None:
            trace.record(
                name,
                "HybridRetrievalService",
                source.value,
                StepStatus.DEGRADED if outcome.degraded else StepStatus.SUCCESS,
                duration_ms=(time.perf_counter() - started) * 1000,
                output_summary=(
                    f"degraded: {outcome.error}"
                    if outcome.degraded
                    else f"{len(outcome.expert_ids)} experts"
                ),
            )
        return outcome

    async def _rerank(
        self,
        parsed_query: ParsedQuery,
        fused: list[tuple[str, float]],
        options: QueryOptions,
        degraded: frozenset[str],
        trace: ExecutionTrace | None,
    ) -> RetrievalResult:
        assert self._reranker is not None  # For type checker
        candidate_ids = [expert_id for expert_id, _ in fused]
        reranked = await self._reranker.rerank(
            parsed_query.text, candidate_ids, options.max_results, trace
        )
        scores = await self._reranker.calculate_relevance_scores(
            parsed_query.text, reranked, trace
        )
        return RetrievalResult(
            expert_ids=tuple(reranked),
            relevance_scores=scores,
            degraded_sources=degraded,
        )


def _normalized_result(
    fused: list[tuple[str, float]],
    degraded: frozenset[str],
) -> RetrievalResult:
    """Scale fused scores so the top candidate scores 1.0."""
    if not fused:
        return RetrievalResult.empty(degraded)
    top_score = fused[0][1] or 1.0
    return RetrievalResult(
        expert_ids=tuple(expert_id for expert_id, _ in fused),
        relevance_scores={expert_id: score / top_score for expert_id, score in fused},
        degraded_sources=degraded,
    )

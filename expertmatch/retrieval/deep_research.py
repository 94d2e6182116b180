"""
Deep research: iterative expand-and-remerge retrieval.

Phases (each may end the request early with the initial result):

1. Initial retrieval with the original query. No candidates: done, without
   any model call.
2. Enrichment: load profiles for the initial candidates.
3. Gap analysis: the model judges what the candidates are missing. An
   unparseable reply is fatal (ModelResponseUnparseableError propagates).
4. No significant gaps: done.
5. Query refinement: the model proposes alternative queries. An unusable
   reply or an empty list: done.
6. Expanded retrieval: every refined query is retrieved concurrently and in
   isolation, through a sub-request that can never trigger deep research
   again. Failed expansions are skipped; if all fail: done.
7. Merge: union of candidates, each keeping its best score.

A cooperative cancellation event is checked between phases.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from expertmatch.core.config import Settings, get_settings
from expertmatch.core.tracing import ExecutionTrace, StepStatus, trace_step
from expertmatch.domain.exceptions import (
    ModelResponseUnparseableError,
    RetrievalCancelledError,
)
from expertmatch.domain.models import CandidateProfile, GapAnalysis, ParsedQuery, RetrievalResult
from expertmatch.domain.requests import QueryRequest
from expertmatch.graph.profile_store import ProfileStore
from expertmatch.llm.completion import CompletionClient
from expertmatch.llm.json_response import parse_json_response
from expertmatch.llm.prompts import (
    format_gap_analysis_prompt,
    format_query_refinement_prompt,
    render_profiles,
)
from expertmatch.query.parser import QueryParser
from expertmatch.retrieval.hybrid import HybridRetrievalService

logger = logging.getLogger(__name__)

_COMPONENT = "DeepResearchService"


# =============================================================================
# Reply Parsing
# =============================================================================


class _GapAnalysisReply(BaseModel):
    model_config = ConfigDict(extra="ignore")

    identified_gaps: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("identifiedGaps", "identified_gaps")
    )
    ambiguities: list[str] = Field(default_factory=list)
    missing_information: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("missingInformation", "missing_information"),
    )
    needs_expansion: bool = Field(
        default=False, validation_alias=AliasChoices("needsExpansion", "needs_expansion")
    )
    reasoning: str | None = None


def parse_gap_analysis(text: str) -> GapAnalysis:
    """Parse a gap-analysis reply.

    Raises:
        ModelResponseUnparseableError: If the reply is not a JSON object of
            the expected shape
    """
    data = parse_json_response(text)
    if not isinstance(data, dict):
        raise ModelResponseUnparseableError("Gap analysis must be a JSON object", response=text)
    try:
        reply = _GapAnalysisReply.model_validate(data)
    except ValidationError as e:
        raise ModelResponseUnparseableError(
            f"Gap analysis does not match the expected shape: {e.error_count()} errors",
            response=text,
            cause=e,
        ) from e
    return GapAnalysis(
        identified_gaps=tuple(g for g in reply.identified_gaps if g.strip()),
        ambiguities=tuple(a for a in reply.ambiguities if a.strip()),
        missing_information=tuple(m for m in reply.missing_information if m.strip()),
        needs_expansion=reply.needs_expansion,
        reasoning=reply.reasoning,
    )


def parse_refined_queries(text: str) -> list[str]:
    """Parse a refinement reply: a JSON array of strings, or {"queries": [...]}.

    Raises:
        ModelResponseUnparseableError: If no list of strings can be found
    """
    data = parse_json_response(text)
    if isinstance(data, dict):
        data = data.get("queries", data.get("refinedQueries"))
    if not isinstance(data, list):
        raise ModelResponseUnparseableError("Refined queries must be a JSON array", response=text)
    return [item for item in data if isinstance(item, str)]


def merge_results(initial: RetrievalResult, expanded: Sequence[RetrievalResult]) -> RetrievalResult:
    """Union of ``initial`` and ``expanded``; every candidate keeps its best score.

    Candidates are ordered by merged score descending; equal scores keep
    first-seen order, initial candidates first.
    """
    scores: dict[str, float] = dict(initial.relevance_scores)
    order: list[str] = list(initial.expert_ids)
    degraded = set(initial.degraded_sources)
    for result in expanded:
        degraded.update(result.degraded_sources)
        for expert_id in result.expert_ids:
            score = result.score_of(expert_id)
            if expert_id in scores:
                scores[expert_id] = max(scores[expert_id], score)
            else:
                scores[expert_id] = score
                order.append(expert_id)
    ranked = sorted(order, key=lambda eid: -scores[eid])
    return RetrievalResult(
        expert_ids=tuple(ranked),
        relevance_scores={eid: scores[eid] for eid in ranked},
        degraded_sources=frozenset(degraded),
    )


# =============================================================================
# Service
# =============================================================================


class DeepResearchService:
    """Runs the gap-analysis / refinement / expansion loop around hybrid retrieval."""

    def __init__(
        self,
        retrieval: HybridRetrievalService,
        completion_client: CompletionClient,
        profile_store: ProfileStore,
        query_parser: QueryParser | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            retrieval: Hybrid retrieval used for the initial and expanded passes
            completion_client: Model used for gap analysis and refinement
            profile_store: Enrichment source for candidate summaries
            query_parser: Parser for refined queries (default: QueryParser())
            settings: Caps on refined queries and concurrency
        """
        settings = settings or get_settings()
        self._retrieval = retrieval
        self._client = completion_client
        self._profiles = profile_store
        self._parser = query_parser or QueryParser()
        self._max_refined_queries = settings.max_refined_queries
        self._max_concurrent = settings.max_concurrent_expansions

    @property
    def _model_name(self) -> str | None:
        return getattr(self._client, "model_name", None)

    async def perform_deep_research(
        self,
        request: QueryRequest,
        parsed_query: ParsedQuery,
        trace: ExecutionTrace | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RetrievalResult:
        """Retrieve, analyse gaps, expand and merge.

        Args:
            request: Original request (options are inherited by sub-requests)
            parsed_query: Parsed form of ``request.query``
            trace: Optional execution trace
            cancel_event: Set to abandon the request between phases

        Returns:
            The merged result, or the initial result when no expansion ran

        Raises:
            ModelResponseUnparseableError: If the gap analysis is unparseable
            CompletionError: If the gap-analysis model call fails
            RetrievalCancelledError: If ``cancel_event`` is set
        """
        base_options = request.options.model_copy(update={"deep_research": False})

        _check_cancelled(cancel_event, "initial retrieval")
        async with trace_step(
            trace,
            "Initial Retrieval",
            _COMPONENT,
            "perform_deep_research",
            input_summary=request.query,
        ) as step:
            initial = await self._retrieval.retrieve(parsed_query, options=base_options, trace=trace)
            step.output_summary = f"{len(initial)} experts"
        if initial.is_empty:
            logger.info("Deep research: initial retrieval found no experts, stopping")
            return initial

        _check_cancelled(cancel_event, "enrichment")
        profiles = await self._enrich(initial, trace)

        _check_cancelled(cancel_event, "gap analysis")
        gaps = await self._analyze_gaps(request.query, initial, profiles, trace)
        if not gaps.has_significant_gaps():
            logger.info("Deep research: no significant gaps, returning initial results")
            return initial

        _check_cancelled(cancel_event, "query refinement")
        refined = await self._refine_queries(request.query, gaps, trace)
        if not refined:
            logger.info("Deep research: no refined queries, returning initial results")
            return initial

        _check_cancelled(cancel_event, "expanded retrieval")
        expanded = await self._expanded_retrieval(request, refined, trace)
        if not expanded:
            logger.warning("Deep research: every expanded retrieval failed, returning initial results")
            return initial

        _check_cancelled(cancel_event, "synthesis")
        async with trace_step(
            trace,
            "Result Synthesis",
            _COMPONENT,
            "merge_results",
            input_summary=f"initial={len(initial)}, expansions={len(expanded)}",
        ) as step:
            merged = merge_results(initial, expanded)
            step.output_summary = f"{len(merged)} experts"
        logger.info(
            "Deep research merged %d initial and %d expanded result sets into %d experts",
            len(initial),
            len(expanded),
            len(merged),
        )
        return merged

    async def _enrich(
        self,
        initial: RetrievalResult,
        trace: ExecutionTrace | None,
    ) -> list[CandidateProfile]:
        async with trace_step(
            trace,
            "Candidate Enrichment",
            _COMPONENT,
            "enrich",
            input_summary=f"{len(initial)} experts",
        ) as step:
            try:
                profiles = await self._profiles.find_profiles(list(initial.expert_ids))
            except Exception as e:
                # Gap analysis still works on bare ids
                logger.warning("Candidate enrichment failed, analysing ids only: %s", e)
                step.status = StepStatus.DEGRADED
                step.output_summary = f"degraded: {e}"
                return []
            step.output_summary = f"{len(profiles)} profiles"
            return profiles

    async def _analyze_gaps(
        self,
        query: str,
        initial: RetrievalResult,
        profiles: list[CandidateProfile],
        trace: ExecutionTrace | None,
    ) -> GapAnalysis:
        async with trace_step(
            trace,
            "Gap Analysis",
            _COMPONENT,
            "analyze_gaps",
            model=self._model_name,
        ) as step:
            prompt = format_gap_analysis_prompt(
                query, render_profiles(profiles, initial.expert_ids)
            )
            reply = await self._client.complete(prompt)
            gaps = parse_gap_analysis(reply)
            step.output_summary = (
                f"needs_expansion={gaps.needs_expansion}, gaps={len(gaps.identified_gaps)}"
            )
            return gaps

    async def _refine_queries(
        self,
        query: str,
        gaps: GapAnalysis,
        trace: ExecutionTrace | None,
    ) -> list[str]:
        async with trace_step(
            trace,
            "Query Refinement",
            _COMPONENT,
            "refine_queries",
            model=self._model_name,
        ) as step:
            prompt = format_query_refinement_prompt(
                query,
                gaps.identified_gaps,
                gaps.ambiguities,
                gaps.missing_information,
                self._max_refined_queries,
            )
            try:
                reply = await self._client.complete(prompt)
                candidates = parse_refined_queries(reply)
            except Exception as e:
                logger.warning("Query refinement unusable, skipping expansion: %s", e)
                step.status = StepStatus.DEGRADED
                step.output_summary = f"degraded: {e}"
                return []

            seen = {query.strip().casefold()}
            refined: list[str] = []
            for candidate in candidates:
                text = candidate.strip()
                if not text or text.casefold() in seen:
                    continue
                seen.add(text.casefold())
                refined.append(text)
            refined = refined[: self._max_refined_queries]
            step.output_summary = f"{len(refined)} queries"
            return refined

    async def _expanded_retrieval(
        self,
        request: QueryRequest,
        refined: list[str],
        trace: ExecutionTrace | None,
    ) -> list[RetrievalResult]:
        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def _retrieve_one(query: str) -> RetrievalResult | None:
            async with semaphore:
                sub_request = request.with_query(query)
                try:
                    parsed = await self._parser.aparse(sub_request.query)
                    return await self._retrieval.retrieve(
                        parsed, options=sub_request.options, trace=trace
                    )
                except Exception as e:
                    logger.warning("Expanded retrieval failed for %r: %s", query, e)
                    logger.debug("Expanded retrieval failure detail", exc_info=True)
                    return None

        async with trace_step(
            trace,
            "Expanded Retrieval",
            _COMPONENT,
            "expanded_retrieval",
            input_summary=" | ".join(refined),
        ) as step:
            results = await asyncio.gather(*(_retrieve_one(q) for q in refined))
            successful = [r for r in results if r is not None]
            if len(successful) < len(refined):
                step.status = StepStatus.DEGRADED
            step.output_summary = f"{len(successful)}/{len(refined)} succeeded"
            return successful


def _check_cancelled(cancel_event: asyncio.Event | None, phase: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise RetrievalCancelledError(f"Deep research cancelled before {phase}")

"""
Language-model reranking of fused candidates.

The reranker asks the model to score each candidate against the query and
reorders by that score. It never fails the request: without a model, on a
model error, or on an unusable reply it falls back to the input order (and to
a fixed placeholder score).

Reply handling:
- fenced or prose-wrapped JSON is accepted
- ids the model invents make the whole reply untrusted (input order kept)
- ids the model leaves out follow the scored ones, in input order
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from expertmatch.core.tracing import ExecutionTrace, StepStatus, trace_step
from expertmatch.domain.exceptions import InvalidInputError, ModelResponseUnparseableError
from expertmatch.graph.profile_store import ProfileStore
from expertmatch.llm.completion import CompletionClient
from expertmatch.llm.json_response import parse_json_response
from expertmatch.llm.prompts import format_rerank_prompt, render_profiles

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

PLACEHOLDER_SCORE = 0.8
MISSING_SCORE = 0.5


class RankedCandidate(BaseModel):
    """One scored entry of the model's reply."""

    model_config = ConfigDict(extra="ignore")

    expert_id: str = Field(validation_alias=AliasChoices("expertId", "expert_id", "id"))
    score: float = Field(default=0.0)
    reason: str | None = None


_RANKED_LIST = TypeAdapter(list[RankedCandidate])


def parse_rankings(text: str) -> list[RankedCandidate]:
    """Parse a model reply into scored entries.

    Accepts a bare JSON array or an object wrapping one array
    (``{"rankings": [...]}``).

    Raises:
        ModelResponseUnparseableError: If the reply has no usable array
    """
    data = parse_json_response(text)
    if isinstance(data, dict):
        lists = [value for value in data.values() if isinstance(value, list)]
        if len(lists) != 1:
            raise ModelResponseUnparseableError("Expected a JSON array of rankings", response=text)
        data = lists[0]
    try:
        entries = _RANKED_LIST.validate_python(data)
    except ValidationError as e:
        raise ModelResponseUnparseableError(
            f"Rankings do not match the expected shape: {e.error_count()} errors",
            response=text,
            cause=e,
        ) from e
    for entry in entries:
        entry.expert_id = entry.expert_id.strip()
    return entries


class SemanticReranker:
    """Reorders candidates by model-judged relevance."""

    def __init__(
        self,
        completion_client: CompletionClient | None = None,
        profile_store: ProfileStore | None = None,
    ) -> None:
        """Initialize the reranker.

        Args:
            completion_client: Model client; None means always fall back
            profile_store: Enrichment source for candidate summaries
        """
        self._client = completion_client
        self._profiles = profile_store

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @property
    def model_name(self) -> str | None:
        return getattr(self._client, "model_name", None) if self._client else None

    async def rerank(
        self,
        query: str,
        candidate_ids: Sequence[str],
        max_results: int,
        trace: ExecutionTrace | None = None,
    ) -> list[str]:
        """Reorder ``candidate_ids`` by relevance to ``query``.

        Args:
            query: Original query text
            candidate_ids: Fused candidates, best first
            max_results: Maximum number of ids to return
            trace: Optional execution trace

        Returns:
            At most ``max_results`` of the input ids, most relevant first

        Raises:
            InvalidInputError: On a blank query or max_results < 1
        """
        self._validate(query)
        if max_results < 1:
            raise InvalidInputError(f"max_results must be positive, got {max_results}")
        ids = list(dict.fromkeys(candidate_ids))
        if not ids:
            return []
        if self._client is None:
            logger.debug("No completion client, keeping fused order")
            return ids[:max_results]

        async with trace_step(
            trace,
            "Semantic Reranking",
            type(self).__name__,
            "rerank",
            input_summary=f"{len(ids)} candidates",
            model=self.model_name,
        ) as step:
            entries = await self._score(query, ids)
            if entries is None:
                step.status = StepStatus.DEGRADED
                step.output_summary = "fallback: input order"
                return ids[:max_results]

            known = set(ids)
            invented = [e.expert_id for e in entries if e.expert_id not in known]
            if invented:
                logger.warning(
                    "Reranker reply names unknown ids %s, keeping input order", invented
                )
                step.status = StepStatus.DEGRADED
                step.output_summary = "fallback: unknown ids in reply"
                return ids[:max_results]

            ordered: list[str] = []
            for entry in sorted(entries, key=lambda e: -e.score):
                if entry.expert_id not in ordered:
                    ordered.append(entry.expert_id)
            ordered.extend(eid for eid in ids if eid not in ordered)
            step.output_summary = f"{min(len(ordered), max_results)} reranked"
            return ordered[:max_results]

    async def calculate_relevance_scores(
        self,
        query: str,
        candidate_ids: Sequence[str],
        trace: ExecutionTrace | None = None,
    ) -> dict[str, float]:
        """Score each candidate in [0, 1].

        Falls back to PLACEHOLDER_SCORE for every candidate when no model is
        available or the reply is unusable; candidates the model skipped get
        MISSING_SCORE.

        Raises:
            InvalidInputError: On a blank query
        """
        self._validate(query)
        ids = list(dict.fromkeys(candidate_ids))
        if not ids:
            return {}
        if self._client is None:
            return dict.fromkeys(ids, PLACEHOLDER_SCORE)

        async with trace_step(
            trace,
            "Relevance Scoring",
            type(self).__name__,
            "calculate_relevance_scores",
            input_summary=f"{len(ids)} candidates",
            model=self.model_name,
        ) as step:
            entries = await self._score(query, ids)
            if not entries:
                step.status = StepStatus.DEGRADED
                step.output_summary = "fallback: placeholder scores"
                return dict.fromkeys(ids, PLACEHOLDER_SCORE)

            scored: dict[str, float] = {}
            for entry in entries:
                scored.setdefault(entry.expert_id, min(1.0, max(0.0, entry.score)))
            step.output_summary = f"{len(scored)} scored by model"
            return {eid: scored.get(eid, MISSING_SCORE) for eid in ids}

    @staticmethod
    def _validate(query: str) -> None:
        if not query or not query.strip():
            raise InvalidInputError("Query must not be blank")

    async def _score(self, query: str, ids: list[str]) -> list[RankedCandidate] | None:
        """One model round-trip; None on any failure."""
        assert self._client is not None  # For type checker
        try:
            profiles = await self._profiles.find_profiles(ids) if self._profiles else []
            prompt = format_rerank_prompt(query, render_profiles(profiles, ids))
            reply = await self._client.complete(prompt)
            entries = parse_rankings(reply)
        except Exception as e:
            logger.warning("Reranking failed, falling back to fused order: %s", e)
            logger.debug("Reranking failure detail", exc_info=True)
            return None
        if not entries:
            logger.warning("Reranker returned no rankings, falling back to fused order")
            return None
        return entries

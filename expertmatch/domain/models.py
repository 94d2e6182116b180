"""
Core value types shared by the retrieval engine.

All types are immutable: results are never mutated in place, new results are
built by fusion or merge. Identifiers are opaque strings (expert ids).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

# =============================================================================
# Enumerations
# =============================================================================


class QueryIntent(str, Enum):
    """Classified purpose of a query."""

    EXPERT_SEARCH = "expert_search"
    TEAM_FORMATION = "team_formation"
    RFP_RESPONSE = "rfp_response"
    DOMAIN_INQUIRY = "domain_inquiry"


class RetrievalSource(str, Enum):
    """Independent retrieval backends fused by the hybrid engine."""

    VECTOR = "vector"
    GRAPH = "graph"
    KEYWORD = "keyword"


ALL_SOURCES: frozenset[RetrievalSource] = frozenset(RetrievalSource)


# =============================================================================
# Query Types
# =============================================================================


@dataclass(frozen=True)
class ParsedQuery:
    """Structured view of a raw query.

    Attributes:
        text: Raw query text as entered
        keywords: Extracted content words (stop words removed)
        technologies: Technology names recognised in the text
        customers: Customer names recognised in the text
        intent: Classified intent
        seniority_levels: Requested seniority levels (constraint)
        language: Requested working language (constraint)
    """

    text: str
    keywords: tuple[str, ...] = ()
    technologies: tuple[str, ...] = ()
    customers: tuple[str, ...] = ()
    intent: QueryIntent = QueryIntent.EXPERT_SEARCH
    seniority_levels: tuple[str, ...] = ()
    language: str | None = None

    @property
    def search_terms(self) -> list[str]:
        """Keywords followed by technologies, without duplicates."""
        seen: dict[str, None] = {}
        for term in (*self.keywords, *self.technologies):
            seen.setdefault(term, None)
        return list(seen)


@dataclass(frozen=True)
class GraphFilters:
    """Entity filters for relationship-graph search."""

    technologies: tuple[str, ...] = ()
    customers: tuple[str, ...] = ()
    project_types: tuple[str, ...] = ()
    domains: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.technologies or self.customers or self.project_types or self.domains)

    @classmethod
    def from_parsed_query(cls, parsed_query: ParsedQuery) -> GraphFilters:
        return cls(
            technologies=parsed_query.technologies,
            customers=parsed_query.customers,
        )

    def merged(self, other: GraphFilters | None) -> GraphFilters:
        """Union of both filter sets, keeping first-seen order."""
        if other is None:
            return self
        return GraphFilters(
            technologies=_ordered_union(self.technologies, other.technologies),
            customers=_ordered_union(self.customers, other.customers),
            project_types=_ordered_union(self.project_types, other.project_types),
            domains=_ordered_union(self.domains, other.domains),
        )


def _ordered_union(first: Iterable[str], second: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys((*first, *second)))


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class VectorMatch:
    """One expert found by nearest-neighbour search."""

    expert_id: str
    similarity: float


@dataclass(frozen=True)
class SourceOutcome:
    """Contribution of one retrieval source to a hybrid request.

    ``degraded`` distinguishes a backend failure or timeout (empty ids, flag
    set) from a legitimate empty answer (empty ids, flag clear).
    """

    source: RetrievalSource
    expert_ids: tuple[str, ...] = ()
    degraded: bool = False
    error: str | None = None

    @classmethod
    def failed(cls, source: RetrievalSource, error: BaseException | str) -> SourceOutcome:
        return cls(source=source, degraded=True, error=str(error) or type(error).__name__)


@dataclass(frozen=True)
class RetrievalResult:
    """Ordered unique candidate ids with per-candidate relevance scores.

    Attributes:
        expert_ids: Candidates, best first, no duplicates
        relevance_scores: Score per candidate id (typically in [0, 1])
        degraded_sources: Sources whose backend failed while producing this result
    """

    expert_ids: tuple[str, ...] = ()
    relevance_scores: Mapping[str, float] = field(default_factory=dict)
    degraded_sources: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if len(set(self.expert_ids)) != len(self.expert_ids):
            raise ValueError("expert_ids must be unique")
        missing = [eid for eid in self.expert_ids if eid not in self.relevance_scores]
        if missing:
            raise ValueError(f"No relevance score for ids: {missing}")
        object.__setattr__(self, "relevance_scores", MappingProxyType(dict(self.relevance_scores)))

    @classmethod
    def empty(cls, degraded_sources: Iterable[str] = ()) -> RetrievalResult:
        return cls(degraded_sources=frozenset(degraded_sources))

    @property
    def is_empty(self) -> bool:
        return not self.expert_ids

    @property
    def is_degraded(self) -> bool:
        return bool(self.degraded_sources)

    def __len__(self) -> int:
        return len(self.expert_ids)

    def score_of(self, expert_id: str) -> float:
        return self.relevance_scores[expert_id]

    def top(self, limit: int) -> RetrievalResult:
        """Return a copy truncated to the first ``limit`` candidates."""
        kept = self.expert_ids[:limit]
        return RetrievalResult(
            expert_ids=kept,
            relevance_scores={eid: self.relevance_scores[eid] for eid in kept},
            degraded_sources=self.degraded_sources,
        )


# =============================================================================
# Deep Research Types
# =============================================================================


@dataclass(frozen=True)
class GapAnalysis:
    """Language-model assessment of what an initial result set is missing."""

    identified_gaps: tuple[str, ...] = ()
    ambiguities: tuple[str, ...] = ()
    missing_information: tuple[str, ...] = ()
    needs_expansion: bool = False
    reasoning: str | None = None

    @classmethod
    def no_expansion_needed(cls) -> GapAnalysis:
        return cls()

    def has_significant_gaps(self) -> bool:
        """True only when expansion is requested AND something concrete is listed."""
        return self.needs_expansion and bool(
            self.identified_gaps or self.ambiguities or self.missing_information
        )


# =============================================================================
# Enrichment Types
# =============================================================================


@dataclass(frozen=True)
class ProjectExperience:
    """One project an expert worked on."""

    name: str
    role: str | None = None
    customer: str | None = None
    technologies: tuple[str, ...] = ()


@dataclass(frozen=True)
class CandidateProfile:
    """Enrichment view of a candidate, used only for prompting."""

    expert_id: str
    name: str | None = None
    seniority: str | None = None
    summary: str | None = None
    projects: tuple[ProjectExperience, ...] = ()

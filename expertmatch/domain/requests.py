"""
Pydantic models for inbound retrieval requests.

These models define the contract callers use to drive the engine; they are
validated once on construction and are immutable afterwards.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from expertmatch.domain.models import RetrievalSource

_MAX_QUERY_LENGTH = 5000


class QueryOptions(BaseModel):
    """Per-request retrieval options."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_results: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum number of candidates to return",
    )
    min_similarity: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum vector similarity for semantic matches",
    )
    rerank: bool = Field(default=True, description="Rerank fused candidates with the chat model")
    deep_research: bool = Field(
        default=False,
        description="Run gap analysis and query expansion after the first pass",
    )
    include_execution_trace: bool = Field(default=False)
    enabled_sources: frozenset[RetrievalSource] | None = Field(
        default=None,
        description="Subset of sources to query; all when unset",
    )

    @field_validator("enabled_sources")
    @classmethod
    def validate_enabled_sources(
        cls, value: frozenset[RetrievalSource] | None
    ) -> frozenset[RetrievalSource] | None:
        """An explicit empty selection would silently return nothing."""
        if value is not None and not value:
            msg = "enabled_sources must name at least one source"
            raise ValueError(msg)
        return value


class QueryRequest(BaseModel):
    """A query plus its options."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    query: str = Field(..., min_length=1, max_length=_MAX_QUERY_LENGTH)
    options: QueryOptions = Field(default_factory=QueryOptions)

    @field_validator("query")
    @classmethod
    def validate_query_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            msg = "query must not be blank"
            raise ValueError(msg)
        return stripped

    def with_query(self, query: str) -> QueryRequest:
        """Derive a sub-request for ``query`` that can never trigger deep research."""
        return QueryRequest(
            query=query,
            options=self.options.model_copy(update={"deep_research": False}),
        )

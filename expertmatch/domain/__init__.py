"""
Domain layer: immutable value types, request models and the exception
taxonomy shared by every retrieval component.
"""

from expertmatch.domain.exceptions import (
    CompletionError,
    ExpertMatchError,
    GraphEngineError,
    InvalidInputError,
    ModelResponseUnparseableError,
    RetrievalCancelledError,
    SourceUnavailableError,
)
from expertmatch.domain.models import (
    ALL_SOURCES,
    CandidateProfile,
    GapAnalysis,
    GraphFilters,
    ParsedQuery,
    ProjectExperience,
    QueryIntent,
    RetrievalResult,
    RetrievalSource,
    SourceOutcome,
    VectorMatch,
)
from expertmatch.domain.requests import QueryOptions, QueryRequest

__all__ = [
    # Exceptions
    "ExpertMatchError",
    "InvalidInputError",
    "SourceUnavailableError",
    "GraphEngineError",
    "CompletionError",
    "ModelResponseUnparseableError",
    "RetrievalCancelledError",
    # Models
    "ALL_SOURCES",
    "CandidateProfile",
    "GapAnalysis",
    "GraphFilters",
    "ParsedQuery",
    "ProjectExperience",
    "QueryIntent",
    "RetrievalResult",
    "RetrievalSource",
    "SourceOutcome",
    "VectorMatch",
    # Requests
    "QueryOptions",
    "QueryRequest",
]

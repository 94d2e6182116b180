"""
Retrieval orchestration: hybrid fan-out and fusion, model reranking, and
deep research.
"""

from expertmatch.retrieval.deep_research import DeepResearchService, merge_results
from expertmatch.retrieval.hybrid import HybridRetrievalService, resolve_sources
from expertmatch.retrieval.reranker import SemanticReranker

__all__ = [
    "DeepResearchService",
    "HybridRetrievalService",
    "SemanticReranker",
    "merge_results",
    "resolve_sources",
]

"""
LangChain retriever adapters for expert-match.

Provides a BaseRetriever implementation for LCEL chains:
- ExpertRetriever: hybrid expert search, optionally with deep research
"""

from expertmatch.retrievers.exceptions import RetrieverError
from expertmatch.retrievers.expert_retriever import ExpertRetriever

__all__ = ["ExpertRetriever", "RetrieverError"]

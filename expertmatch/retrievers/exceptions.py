"""
Retriever exceptions module.

Custom exceptions for the LangChain retriever adapter; named to avoid
shadowing Python builtins.
"""

from __future__ import annotations


class RetrieverError(Exception):
    """Raised when the retriever cannot produce documents."""

    pass

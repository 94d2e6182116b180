"""
Custom exceptions for the retrieval engine.

Exception naming avoids shadowing Python builtins (ConnectionError,
TimeoutError). Backend adapters keep their own families
(``expertmatch.graph.exceptions``, ``expertmatch.search.exceptions``); the
services translate those into the classes below at their boundaries.
"""

from __future__ import annotations


class ExpertMatchError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        """Initialize with message and optional cause.

        Args:
            message: Human-readable error description
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.cause = cause


class InvalidInputError(ExpertMatchError, ValueError):
    """Raised for bad parameters, before any backend or model call."""


class SourceUnavailableError(ExpertMatchError):
    """Raised when one retrieval backend fails or times out."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.source = source


class GraphEngineError(SourceUnavailableError):
    """Raised when the graph engine rejects or fails a traversal."""


class CompletionError(ExpertMatchError):
    """Raised when the completion backend fails or returns no text."""


class ModelResponseUnparseableError(ExpertMatchError):
    """Raised when model output cannot be parsed into the expected shape.

    Attributes:
        response: The raw model output that failed to parse
    """

    def __init__(
        self,
        message: str,
        response: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.response = response


class RetrievalCancelledError(ExpertMatchError):
    """Raised when a request is cancelled between deep-research phases."""

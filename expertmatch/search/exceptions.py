"""
Custom exceptions for the vector store adapter.

Exception naming avoids shadowing Python builtins (ConnectionError):
QdrantConnectionError, QdrantSearchError.
"""

from __future__ import annotations


class QdrantError(Exception):
    """Base exception for all Qdrant-related errors."""

    pass


class QdrantConnectionError(QdrantError):
    """Raised when connection to Qdrant fails.

    Named QdrantConnectionError to avoid shadowing Python's
    built-in ConnectionError.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize with message and optional cause.

        Args:
            message: Human-readable error description
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.cause = cause


class QdrantSearchError(QdrantError):
    """Raised when a search or collection lookup fails."""

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with message, collection name, and optional cause.

        Args:
            message: Human-readable error description
            collection: The collection the operation targeted
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.collection = collection
        self.cause = cause

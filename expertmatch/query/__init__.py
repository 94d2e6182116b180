"""Query parsing: free text to ParsedQuery."""

from expertmatch.query.parser import DEFAULT_TECHNOLOGIES, QueryParser

__all__ = ["DEFAULT_TECHNOLOGIES", "QueryParser"]

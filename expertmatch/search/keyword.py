"""
Lexical expert search over the Neo4j full-text index.

Keywords are escaped for Lucene and OR-ed into one full-text query; the
index's relevance score orders the result. Technology search reuses the graph
traversal and ranks experts by how many of the requested technologies they
used.
"""

from __future__ import annotations

import logging
import re

from expertmatch.domain.exceptions import InvalidInputError, SourceUnavailableError
from expertmatch.domain.models import RetrievalSource
from expertmatch.graph.exceptions import Neo4jError
from expertmatch.graph.neo4j_client import Neo4jClientProtocol
from expertmatch.graph.schema import EXPERTS_BY_TECHNOLOGIES, FULLTEXT_EXPERTS

logger = logging.getLogger(__name__)

_DEFAULT_INDEX = "expertText"
_LUCENE_SPECIAL = re.compile(r'([+\-!(){}\[\]^"~*?:\\/&|])')


def escape_lucene(term: str) -> str:
    """Escape Lucene query syntax characters in ``term``."""
    return _LUCENE_SPECIAL.sub(r"\\\1", term)


def build_fulltext_query(keywords: list[str]) -> str:
    """OR-join escaped keywords; multi-word keywords become phrases."""
    parts = []
    for keyword in keywords:
        escaped = escape_lucene(keyword.strip())
        parts.append(f'"{escaped}"' if " " in escaped else escaped)
    return " OR ".join(parts)


class KeywordSearchService:
    """Full-text expert search."""

    def __init__(self, client: Neo4jClientProtocol, index_name: str = _DEFAULT_INDEX) -> None:
        self._client = client
        self._index_name = index_name

    async def search_by_keywords(self, keywords: list[str], max_results: int) -> list[str]:
        """Rank experts by full-text relevance to ``keywords``.

        Args:
            keywords: Terms to search for (blank entries ignored)
            max_results: Maximum number of expert ids

        Returns:
            Expert ids, most relevant first

        Raises:
            InvalidInputError: On no usable keywords or max_results < 1
            SourceUnavailableError: If the full-text query fails
        """
        cleaned = self._validate(keywords, max_results, "keywords")
        query = build_fulltext_query(cleaned)
        logger.debug("Full-text query on %s: %s", self._index_name, query)
        return await self._run(
            FULLTEXT_EXPERTS,
            {"index": self._index_name, "query": query, "limit": max_results},
        )

    async def search_by_technologies(self, technologies: list[str], max_results: int) -> list[str]:
        """Rank experts by the number of ``technologies`` they used.

        Raises:
            InvalidInputError: On no usable technologies or max_results < 1
            SourceUnavailableError: If the query fails
        """
        cleaned = self._validate(technologies, max_results, "technologies")
        return await self._run(
            EXPERTS_BY_TECHNOLOGIES,
            {
                "technologies": list(dict.fromkeys(t.lower() for t in cleaned)),
                "limit": max_results,
            },
        )

    @staticmethod
    def _validate(values: list[str], max_results: int, name: str) -> list[str]:
        if not values:
            raise InvalidInputError(f"{name} must not be empty")
        cleaned = [v.strip() for v in values if v and v.strip()]
        if not cleaned:
            raise InvalidInputError(f"{name} must contain at least one non-blank value")
        if max_results < 1:
            raise InvalidInputError(f"max_results must be positive, got {max_results}")
        return cleaned

    async def _run(self, cypher: str, parameters: dict[str, object]) -> list[str]:
        try:
            rows = await self._client.query(cypher, parameters)
        except Neo4jError as e:
            raise SourceUnavailableError(
                f"Keyword search failed: {e}",
                source=RetrievalSource.KEYWORD.value,
                cause=e,
            ) from e
        return list(dict.fromkeys(str(row["expert_id"]) for row in rows if row.get("expert_id")))

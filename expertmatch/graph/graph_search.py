"""
Relationship-graph expert search.

Each filter dimension (technologies, customers, project types, domains) runs
its own Cypher query; experts matched by more dimensions rank first, ties keep
the order the engine returned them in. Customer and technology filters given
together use the combined customer+technology traversal.

Graceful degradation: the graph is one signal among several, so any engine
error is logged and turned into an empty, degraded outcome instead of failing
the whole retrieval. The explicit ``find_*`` methods raise GraphEngineError
for callers that want to see failures.
"""

from __future__ import annotations

import logging
from typing import Any

from expertmatch.core.tracing import ExecutionTrace, StepStatus, trace_step
from expertmatch.domain.exceptions import GraphEngineError, InvalidInputError
from expertmatch.domain.models import GraphFilters, RetrievalSource, SourceOutcome
from expertmatch.graph import schema
from expertmatch.graph.exceptions import Neo4jError
from expertmatch.graph.neo4j_client import Neo4jClientProtocol

logger = logging.getLogger(__name__)

_DEFAULT_LIMIT = 100
_EXPERT_ID_COLUMN = "expert_id"


def _lowered(values: tuple[str, ...] | list[str]) -> list[str]:
    return list(dict.fromkeys(v.strip().lower() for v in values if v and v.strip()))


class GraphSearchService:
    """Expert search over the expert/project/customer/technology graph."""

    def __init__(self, client: Neo4jClientProtocol, limit: int = _DEFAULT_LIMIT) -> None:
        self._client = client
        self._limit = limit

    # -------------------------------------------------------------------------
    # Composite search (degrading)
    # -------------------------------------------------------------------------

    async def search(
        self,
        filters: GraphFilters,
        trace: ExecutionTrace | None = None,
    ) -> list[str]:
        """Return ranked expert ids matching ``filters``; empty on engine error."""
        outcome = await self.search_outcome(filters, trace)
        return list(outcome.expert_ids)

    async def search_outcome(
        self,
        filters: GraphFilters,
        trace: ExecutionTrace | None = None,
    ) -> SourceOutcome:
        """Like search(), but reports whether the graph engine failed."""
        source = RetrievalSource.GRAPH
        filters = GraphFilters(
            technologies=tuple(_lowered(filters.technologies)),
            customers=tuple(_lowered(filters.customers)),
            project_types=tuple(_lowered(filters.project_types)),
            domains=tuple(_lowered(filters.domains)),
        )
        if filters.is_empty:
            return SourceOutcome(source=source)

        async with trace_step(
            trace,
            "Graph Search",
            type(self).__name__,
            "search",
            input_summary=f"filters={filters}",
        ) as step:
            try:
                ranked = await self._search_dimensions(filters)
            except Exception as e:
                logger.warning("Graph search degraded, returning no graph results: %s", e)
                logger.debug("Graph search failure detail", exc_info=True)
                step.status = StepStatus.DEGRADED
                step.output_summary = f"degraded: {e}"
                return SourceOutcome.failed(source, e)
            step.output_summary = f"{len(ranked)} experts"
            return SourceOutcome(source=source, expert_ids=tuple(ranked))

    async def _search_dimensions(self, filters: GraphFilters) -> list[str]:
        dimension_results: list[list[str]] = []
        if filters.customers and filters.technologies:
            dimension_results.append(
                await self.find_by_customer_and_technologies(
                    list(filters.customers), list(filters.technologies)
                )
            )
        else:
            if filters.technologies:
                dimension_results.append(
                    await self.find_by_technologies(list(filters.technologies))
                )
            if filters.customers:
                dimension_results.append(await self.find_by_customers(list(filters.customers)))
        if filters.project_types:
            dimension_results.append(
                await self.find_by_project_types(list(filters.project_types))
            )
        if filters.domains:
            dimension_results.append(await self.find_by_domains(list(filters.domains)))

        hits: dict[str, int] = {}
        for ids in dimension_results:
            for expert_id in ids:
                hits[expert_id] = hits.get(expert_id, 0) + 1
        # sorted() is stable: equal hit counts keep first-seen order
        return sorted(hits, key=lambda eid: -hits[eid])[: self._limit]

    # -------------------------------------------------------------------------
    # Single-dimension finders (raising)
    # -------------------------------------------------------------------------

    async def find_by_technologies(self, technologies: list[str]) -> list[str]:
        """Experts who worked on projects using any of ``technologies``."""
        values = self._require(technologies, "technologies")
        return await self._run(
            schema.EXPERTS_BY_TECHNOLOGIES,
            {"technologies": values, "limit": self._limit},
        )

    async def find_by_customers(self, customers: list[str]) -> list[str]:
        values = self._require(customers, "customers")
        return await self._run(
            schema.EXPERTS_BY_CUSTOMERS,
            {"customers": values, "limit": self._limit},
        )

    async def find_by_customer_and_technologies(
        self,
        customers: list[str],
        technologies: list[str],
    ) -> list[str]:
        """Experts who used ``technologies`` on projects for ``customers``."""
        return await self._run(
            schema.EXPERTS_BY_CUSTOMER_AND_TECHNOLOGIES,
            {
                "customers": self._require(customers, "customers"),
                "technologies": self._require(technologies, "technologies"),
                "limit": self._limit,
            },
        )

    async def find_by_project_types(self, project_types: list[str]) -> list[str]:
        values = self._require(project_types, "project_types")
        return await self._run(
            schema.EXPERTS_BY_PROJECT_TYPES,
            {"project_types": values, "limit": self._limit},
        )

    async def find_by_domains(self, domains: list[str]) -> list[str]:
        values = self._require(domains, "domains")
        return await self._run(
            schema.EXPERTS_BY_DOMAINS,
            {"domains": values, "limit": self._limit},
        )

    async def find_collaborators(self, expert_id: str, limit: int = 50) -> list[str]:
        """Experts who shared at least one project with ``expert_id``."""
        if not expert_id or not expert_id.strip():
            raise InvalidInputError("expert_id must not be blank")
        if limit < 1:
            raise InvalidInputError(f"limit must be positive, got {limit}")
        return await self._run(
            schema.COLLABORATING_EXPERTS,
            {"expert_id": expert_id, "limit": limit},
        )

    @staticmethod
    def _require(values: list[str], name: str) -> list[str]:
        cleaned = _lowered(values)
        if not cleaned:
            raise InvalidInputError(f"{name} must not be empty")
        return cleaned

    async def _run(self, cypher: str, parameters: dict[str, Any]) -> list[str]:
        try:
            rows = await self._client.query(cypher, parameters)
        except Neo4jError as e:
            raise GraphEngineError(
                f"Graph query failed: {e}",
                source=RetrievalSource.GRAPH.value,
                cause=e,
            ) from e
        ids: list[str] = []
        for row in rows:
            value = row.get(_EXPERT_ID_COLUMN)
            if value is not None and str(value) not in ids:
                ids.append(str(value))
        return ids

"""
Candidate profile enrichment backed by the expert graph.

Deep research and reranking only see expert ids; before prompting a model
they need a readable summary of each candidate (name, seniority, recent
projects with roles and technologies). This store provides it.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from expertmatch.domain.exceptions import SourceUnavailableError
from expertmatch.domain.models import CandidateProfile, ProjectExperience
from expertmatch.graph.exceptions import Neo4jError
from expertmatch.graph.neo4j_client import Neo4jClientProtocol
from expertmatch.graph.schema import EXPERT_PROFILES

logger = logging.getLogger(__name__)


@runtime_checkable
class ProfileStore(Protocol):
    """Enrichment collaborator: ids in, profiles out (input order kept)."""

    async def find_profiles(self, expert_ids: list[str]) -> list[CandidateProfile]:
        """Return profiles for the known ids, ordered as ``expert_ids``."""
        ...


class Neo4jProfileStore:
    """ProfileStore reading expert profiles from Neo4j."""

    def __init__(self, client: Neo4jClientProtocol) -> None:
        self._client = client

    async def find_profiles(self, expert_ids: list[str]) -> list[CandidateProfile]:
        """Load profiles for ``expert_ids``.

        Unknown ids are skipped. The result follows the order of
        ``expert_ids``, not the order the graph returns rows in.

        Raises:
            SourceUnavailableError: If the graph query fails
        """
        if not expert_ids:
            return []

        try:
            rows = await self._client.query(EXPERT_PROFILES, {"ids": list(expert_ids)})
        except Neo4jError as e:
            raise SourceUnavailableError(
                f"Profile lookup failed: {e}",
                source="profiles",
                cause=e,
            ) from e

        by_id = {str(row["expert_id"]): _profile_from_row(row) for row in rows if row.get("expert_id")}
        missing = [eid for eid in expert_ids if eid not in by_id]
        if missing:
            logger.debug("No profile found for %d experts: %s", len(missing), missing)
        return [by_id[eid] for eid in dict.fromkeys(expert_ids) if eid in by_id]


def _profile_from_row(row: dict[str, Any]) -> CandidateProfile:
    projects = tuple(
        ProjectExperience(
            name=project.get("name") or "Unnamed project",
            role=project.get("role"),
            customer=project.get("customer"),
            technologies=tuple(project.get("technologies") or ()),
        )
        for project in row.get("projects") or ()
        if project
    )
    return CandidateProfile(
        expert_id=str(row["expert_id"]),
        name=row.get("name"),
        seniority=row.get("seniority"),
        summary=row.get("summary"),
        projects=projects,
    )

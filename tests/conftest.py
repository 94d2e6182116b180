"""
Pytest configuration and fixtures for expert-match tests.
"""

from __future__ import annotations

import pytest

from expertmatch.core.config import Settings
from expertmatch.domain.models import CandidateProfile, ProjectExperience


@pytest.fixture
def settings() -> Settings:
    """Provide test settings with the chat model disabled and short timeouts."""
    return Settings(
        _env_file=None,
        neo4j_uri="bolt://localhost:7687",
        neo4j_user="neo4j",
        neo4j_password="testpassword",
        qdrant_url="http://localhost:6333",
        llm_enabled=False,
        llm_api_key=None,
        source_timeout_seconds=0.5,
        max_refined_queries=3,
        max_concurrent_expansions=2,
    )


@pytest.fixture
def sample_profiles() -> list[CandidateProfile]:
    """Three enriched candidates."""
    return [
        CandidateProfile(
            expert_id="e1",
            name="Ada Byte",
            seniority="Senior",
            summary="Backend engineer focused on payments",
            projects=(
                ProjectExperience(
                    name="Ledger",
                    role="Tech Lead",
                    customer="Acme Bank",
                    technologies=("Java", "Kafka"),
                ),
            ),
        ),
        CandidateProfile(expert_id="e2", name="Linus Stack", seniority="Middle"),
        CandidateProfile(expert_id="e3", name="Grace Loop", summary="Data engineer"),
    ]

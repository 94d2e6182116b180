"""
Unit tests for Settings.

Covers defaults, environment overrides and validation bounds.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError


class TestSettingsDefaults:
    """Tests for default configuration values."""

    def test_fusion_defaults(self) -> None:
        """Default weights favour vector, then graph, then keyword."""
        from expertmatch.core.config import Settings

        settings = Settings(_env_file=None)

        assert settings.fusion_vector_weight == pytest.approx(1.0)
        assert settings.fusion_graph_weight == pytest.approx(0.8)
        assert settings.fusion_keyword_weight == pytest.approx(0.6)
        assert settings.fusion_rrf_k == 0

    def test_retrieval_defaults(self) -> None:
        from expertmatch.core.config import Settings

        settings = Settings(_env_file=None)

        assert settings.vector_min_similarity == pytest.approx(0.7)
        assert settings.qdrant_collection == "expert_experience"
        assert settings.keyword_fulltext_index == "expertText"
        assert settings.max_refined_queries == 3


class TestSettingsEnvironment:
    """Tests for environment variable overrides."""

    def test_env_overrides_are_case_insensitive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from expertmatch.core.config import Settings

        monkeypatch.setenv("FUSION_RRF_K", "60")
        monkeypatch.setenv("neo4j_uri", "bolt://graph:7687")

        settings = Settings(_env_file=None)

        assert settings.fusion_rrf_k == 60
        assert settings.neo4j_uri == "bolt://graph:7687"

    def test_unknown_env_vars_are_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from expertmatch.core.config import Settings

        monkeypatch.setenv("SOMETHING_UNRELATED", "x")

        Settings(_env_file=None)


class TestSettingsValidation:
    """Tests for rejected values."""

    def test_negative_weight_rejected(self) -> None:
        from expertmatch.core.config import Settings

        with pytest.raises(ValidationError):
            Settings(_env_file=None, fusion_graph_weight=-0.1)

    def test_zero_timeout_rejected(self) -> None:
        from expertmatch.core.config import Settings

        with pytest.raises(ValidationError):
            Settings(_env_file=None, source_timeout_seconds=0)

    def test_get_settings_is_cached(self) -> None:
        from expertmatch.core.config import get_settings

        assert get_settings() is get_settings()

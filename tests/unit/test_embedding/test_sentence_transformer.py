"""
Unit tests for SentenceTransformerEmbedder.

The model is replaced by a mock; sentence-transformers is never imported.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from expertmatch.embedding.sentence_transformer import SentenceTransformerEmbedder
from expertmatch.search.vector_search import EmbeddingProvider


class TestSentenceTransformerEmbedder:
    """Tests for the lazy embedding provider."""

    def test_model_not_loaded_on_init(self) -> None:
        embedder = SentenceTransformerEmbedder("all-MiniLM-L6-v2")

        assert embedder.model_name == "all-MiniLM-L6-v2"
        assert embedder._model is None

    @pytest.mark.asyncio
    async def test_embed_returns_floats(self) -> None:
        embedder = SentenceTransformerEmbedder()
        model = MagicMock()
        model.encode.return_value = [0.25, 0.5, 0.75]
        embedder._model = model

        vector = await embedder.embed("Java payments")

        assert vector == [0.25, 0.5, 0.75]
        model.encode.assert_called_once_with("Java payments", normalize_embeddings=True)

    def test_satisfies_protocol(self) -> None:
        assert isinstance(SentenceTransformerEmbedder(), EmbeddingProvider)

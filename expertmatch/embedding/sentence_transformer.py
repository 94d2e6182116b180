"""
Sentence-BERT embedding provider.

The model is loaded lazily on first use (importing sentence-transformers pulls
in torch, which is slow and not needed by callers that only use graph or
keyword search). Encoding runs in a worker thread so the event loop is not
blocked.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "all-mpnet-base-v2"


class SentenceTransformerEmbedder:
    """EmbeddingProvider backed by a sentence-transformers model."""

    def __init__(self, model_name: str = _DEFAULT_MODEL, device: str | None = None) -> None:
        self._model_name = model_name
        self._device = device
        self._model: Any = None
        self._lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return self._model_name

    def _load(self) -> Any:
        with self._lock:
            if self._model is None:
                from sentence_transformers import SentenceTransformer

                logger.info("Loading embedding model %s", self._model_name)
                self._model = SentenceTransformer(self._model_name, device=self._device)
        return self._model

    def _encode(self, text: str) -> list[float]:
        model = self._load()
        vector = model.encode(text, normalize_embeddings=True)
        return [float(x) for x in vector]

    async def embed(self, text: str) -> list[float]:
        """Embed ``text`` without blocking the event loop."""
        return await asyncio.to_thread(self._encode, text)

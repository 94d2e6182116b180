"""Embedding providers."""

from expertmatch.embedding.sentence_transformer import SentenceTransformerEmbedder

__all__ = ["SentenceTransformerEmbedder"]

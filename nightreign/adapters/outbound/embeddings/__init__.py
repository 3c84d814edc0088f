"""Embedding provider adapters."""

from .sentence_transformer_adapter import SentenceTransformerEmbeddings

__all__ = ["SentenceTransformerEmbeddings"]

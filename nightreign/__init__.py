"""Nightreign hybrid search: keyword + vector retrieval with cross-encoder re-ranking."""

__version__ = "0.1.0"

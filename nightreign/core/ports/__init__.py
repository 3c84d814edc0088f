"""Ports between the search core and its collaborators."""

from .diagnostics_port import DiagnosticsSink
from .document_index_port import DocumentIndexPort
from .embedding_port import EmbeddingPort
from .relevance_port import RelevanceScorerPort

__all__ = [
    "DiagnosticsSink",
    "DocumentIndexPort",
    "EmbeddingPort",
    "RelevanceScorerPort",
]

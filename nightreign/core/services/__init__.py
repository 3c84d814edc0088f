"""Search services: index, reranker, orchestrator and diagnostics."""

from .diagnostics import (
    DiagnosticEvent,
    DiagnosticLevel,
    EmbeddingFailed,
    EmbeddingGenerated,
    IndexStats,
    NullDiagnosticsSink,
    PipelineSummary,
    QueryReceived,
    RerankCompleted,
    RerankFailed,
    SearchDiagnostics,
    SearchExecuted,
    SearchResults,
    ZeroResultsDetected,
)
from .document_index import DEFAULT_FIELD_BOOSTS, InMemoryDocumentIndex, IndexSnapshot
from .prewarm import PREWARM_QUERIES, PrewarmResult, prewarm_embedding_cache
from .query_embedder import EmbeddingCache, QueryEmbedder
from .reranker import CrossEncoderReranker, sigmoid
from .search_service import SearchService

__all__ = [
    # Index
    "DEFAULT_FIELD_BOOSTS",
    "InMemoryDocumentIndex",
    "IndexSnapshot",
    # Reranking
    "CrossEncoderReranker",
    "sigmoid",
    # Embedding
    "EmbeddingCache",
    "QueryEmbedder",
    "PREWARM_QUERIES",
    "PrewarmResult",
    "prewarm_embedding_cache",
    # Orchestration
    "SearchService",
    # Diagnostics
    "DiagnosticEvent",
    "DiagnosticLevel",
    "SearchDiagnostics",
    "NullDiagnosticsSink",
    "QueryReceived",
    "EmbeddingGenerated",
    "EmbeddingFailed",
    "SearchExecuted",
    "SearchResults",
    "ZeroResultsDetected",
    "RerankCompleted",
    "RerankFailed",
    "IndexStats",
    "PipelineSummary",
]

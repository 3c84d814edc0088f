"""Composition root wiring adapters to the search services.

All long-lived handles (index, models, diagnostics) are created here and
owned by one ``SearchContainer``. The API keeps its container on
``app.state``; the CLI builds one per command.
"""

import logging
from dataclasses import dataclass

from ..adapters.outbound.diagnostics import LoggingDiagnosticsSink
from ..adapters.outbound.embeddings import SentenceTransformerEmbeddings
from ..adapters.outbound.relevance import CrossEncoderScorer
from ..adapters.outbound.storage import IndexFileStore
from ..config.settings import Settings
from ..core.ports import DiagnosticsSink, EmbeddingPort, RelevanceScorerPort
from ..core.services import (
    CrossEncoderReranker,
    EmbeddingCache,
    InMemoryDocumentIndex,
    PrewarmResult,
    QueryEmbedder,
    SearchDiagnostics,
    SearchService,
    prewarm_embedding_cache,
)

logger = logging.getLogger(__name__)


@dataclass
class SearchContainer:
    """Handles shared by every request."""

    settings: Settings
    index: InMemoryDocumentIndex
    store: IndexFileStore
    embedding_provider: EmbeddingPort
    embedder: QueryEmbedder
    reranker: CrossEncoderReranker
    diagnostics: SearchDiagnostics
    search_service: SearchService

    def load_index(self) -> bool:
        """Restore the index from its snapshot file."""
        return self.store.load()

    def prewarm(self) -> PrewarmResult:
        """Fill the query embedding cache with popular queries."""
        return prewarm_embedding_cache(self.embedder)

    def close(self) -> None:
        self.search_service.close()


def build_container(
    settings: Settings,
    *,
    embedding_provider: EmbeddingPort | None = None,
    relevance_scorer: RelevanceScorerPort | None = None,
    diagnostics_sink: DiagnosticsSink | None = None,
) -> SearchContainer:
    """Create every search handle from settings.

    Args:
        settings: Application settings.
        embedding_provider: Override for the sentence-transformers embedder.
        relevance_scorer: Override for the cross-encoder scorer.
        diagnostics_sink: Override for the logging diagnostics sink.

    Returns:
        A fully wired SearchContainer. The index is empty until
        ``load_index`` is called.
    """
    logger.info("Initializing search container...")

    diagnostics = SearchDiagnostics(
        diagnostics_sink or LoggingDiagnosticsSink(), enabled=settings.search_debug
    )

    index = InMemoryDocumentIndex(
        dimensions=settings.embedding_dimensions,
        field_boosts=settings.field_boosts.model_dump(),
        similarity_threshold=settings.similarity_threshold,
        text_weight=settings.hybrid_text_weight,
        vector_weight=settings.hybrid_vector_weight,
    )
    store = IndexFileStore(index, settings.index_path, diagnostics=diagnostics)

    provider = embedding_provider or SentenceTransformerEmbeddings(settings.embedding_model)
    embedder = QueryEmbedder(
        provider,
        dimensions=settings.embedding_dimensions,
        cache=EmbeddingCache(
            max_size=settings.embedding_cache_size,
            ttl_seconds=settings.embedding_cache_ttl_seconds,
        ),
    )

    reranker = CrossEncoderReranker(
        relevance_scorer or CrossEncoderScorer(settings.reranker_model),
        batch_size=settings.rerank_batch_size,
    )

    search_service = SearchService(
        index,
        reranker=reranker,
        embedder=embedder,
        diagnostics=diagnostics,
        rerank_enabled=settings.rerank_enabled,
        overfetch_factor=settings.rerank_overfetch_factor,
        embedding_timeout=settings.embedding_timeout_seconds,
        rerank_timeout=settings.rerank_timeout_seconds,
        default_limit=settings.default_limit,
        max_limit=settings.max_limit,
        max_query_length=settings.max_query_length,
    )

    return SearchContainer(
        settings=settings,
        index=index,
        store=store,
        embedding_provider=provider,
        embedder=embedder,
        reranker=reranker,
        diagnostics=diagnostics,
        search_service=search_service,
    )

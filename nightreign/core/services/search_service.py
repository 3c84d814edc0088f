"""Query orchestration: embedding, retrieval and re-ranking.

The search service turns a user query into a ranked, limited result list. It
chooses the retrieval mode, over-fetches candidates when re-ranking, and
degrades gracefully when an external model fails:

- embedding failure (after one retry) falls back to keyword search;
- reranker failure or timeout falls back to the retrieval order.
"""

import logging
import time
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any

from ..domain import (
    DEFAULT_LIMIT,
    ContentType,
    RerankItem,
    SearchCandidate,
    SearchHit,
    SearchMode,
    SearchOptions,
    SearchRequest,
    SearchResponse,
    SearchTiming,
    has_query_vector,
    resolve_search_mode,
)
from ..domain.exceptions import (
    DependencyTimeoutError,
    DependencyUnavailableError,
    DimensionMismatchError,
    QueryTooLongError,
    ValidationError,
)
from ..domain.utils import clean_text
from ..ports.document_index_port import DocumentIndexPort
from .diagnostics import NullDiagnosticsSink, PipelineSummary, SearchDiagnostics, StageTiming
from .query_embedder import QueryEmbedder
from .reranker import CrossEncoderReranker

logger = logging.getLogger(__name__)

DEFAULT_OVERFETCH_FACTOR = 3
DEFAULT_MAX_LIMIT = 100
DEFAULT_MAX_QUERY_LENGTH = 500


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class SearchService:
    """Coordinates the embed, retrieve and rerank stages of a search.

    Example:
        service = SearchService(index, reranker=reranker, embedder=embedder)
        response = service.search(SearchRequest(text="how to beat Gladius"))
    """

    def __init__(
        self,
        index: DocumentIndexPort,
        reranker: CrossEncoderReranker | None = None,
        embedder: QueryEmbedder | None = None,
        diagnostics: SearchDiagnostics | None = None,
        *,
        rerank_enabled: bool = True,
        overfetch_factor: int = DEFAULT_OVERFETCH_FACTOR,
        embedding_timeout: float | None = 5.0,
        rerank_timeout: float | None = 10.0,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = DEFAULT_MAX_LIMIT,
        max_query_length: int = DEFAULT_MAX_QUERY_LENGTH,
        max_workers: int = 8,
    ):
        """Initialize the search service.

        Args:
            index: Document index to search.
            reranker: Optional cross-encoder reranker.
            embedder: Optional query embedder. Without one, text-only queries
                run in keyword mode.
            diagnostics: Diagnostics facade. A disabled one is used if omitted.
            rerank_enabled: Global switch for re-ranking.
            overfetch_factor: Candidate multiplier when re-ranking.
            embedding_timeout: Seconds to wait for a query embedding.
            rerank_timeout: Seconds to wait for re-ranking.
            default_limit: Limit used when a request does not give one.
            max_limit: Upper bound applied to requested limits.
            max_query_length: Maximum accepted query length in characters.
            max_workers: Worker threads used to enforce model timeouts.
        """
        self.index = index
        self.reranker = reranker
        self.embedder = embedder
        self.diagnostics = diagnostics or SearchDiagnostics(NullDiagnosticsSink())
        self.rerank_enabled = rerank_enabled
        self.overfetch_factor = max(overfetch_factor, 1)
        self.embedding_timeout = embedding_timeout
        self.rerank_timeout = rerank_timeout
        self.default_limit = min(default_limit, max_limit)
        self.max_limit = max_limit
        self.max_query_length = max_query_length
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="search")

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def search(self, request: SearchRequest) -> SearchResponse:
        """Run the full search pipeline for one request.

        Args:
            request: Query text and/or vector, filters, limit and rerank flag.

        Returns:
            SearchResponse with ranked hits, per-stage timing and the mode.
            A request with neither text nor vector returns an empty response.

        Raises:
            QueryTooLongError: If the query exceeds ``max_query_length``.
            DimensionMismatchError: If the query vector has the wrong length.
            ValidationError: If the limit or type filters are invalid.
        """
        start = time.perf_counter()
        request_id = str(uuid.uuid4())

        text = clean_text(request.text or "").strip()
        if len(text) > self.max_query_length:
            raise QueryTooLongError(
                f"Query exceeds {self.max_query_length} characters",
                context={"length": len(text), "max_length": self.max_query_length},
            )

        vector = list(request.vector) if has_query_vector(request.vector) else None
        if not text and vector is None:
            return SearchResponse(
                timing=SearchTiming(total=_elapsed_ms(start)), request_id=request_id
            )

        limit = self._resolve_limit(request.limit)
        types = self._resolve_types(request.types)
        type_names = [t.value for t in types]

        if vector is not None:
            self._check_query_vector(vector)

        self.diagnostics.query_received(request_id, text, type_names, limit)

        embedding_ms: float | None = None
        cache_hit = False
        if text and vector is None and self.embedder is not None:
            vector, embedding_ms, cache_hit = self._embed_query(request_id, text)

        mode = resolve_search_mode(text, vector)
        should_rerank = (
            request.rerank and self.rerank_enabled and self.reranker is not None and bool(text)
        )
        fetch_limit = limit * self.overfetch_factor if should_rerank else limit

        self.diagnostics.search_executed(
            request_id, mode.value, text or None, vector, type_names, limit, fetch_limit
        )

        search_start = time.perf_counter()
        candidates = self.index.search(
            SearchOptions(
                query=text or None, vector=vector, types=types, limit=fetch_limit, mode=mode
            )
        )
        search_ms = _elapsed_ms(search_start)
        self.diagnostics.search_results(request_id, mode.value, candidates, search_ms)

        rerank_ms: float | None = None
        if should_rerank and candidates:
            hits, rerank_ms = self._rerank(request_id, text, candidates, limit)
        else:
            hits = [SearchHit.from_candidate(c) for c in candidates[:limit]]

        if not hits:
            self.diagnostics.zero_results(
                request_id, text or None, mode.value, type_names, self.index.count()
            )

        timing = SearchTiming(
            search=search_ms,
            total=_elapsed_ms(start),
            embedding=embedding_ms,
            rerank=rerank_ms,
        )
        self.diagnostics.pipeline_summary(
            PipelineSummary(
                request_id=request_id,
                query=text or None,
                total_duration_ms=timing.total,
                final_result_count=len(hits),
                search=StageTiming(
                    search_ms, {"mode": mode.value, "resultCount": len(candidates)}
                ),
                embedding=(
                    StageTiming(embedding_ms, {"cacheHit": cache_hit})
                    if embedding_ms is not None
                    else None
                ),
                rerank=(
                    StageTiming(
                        rerank_ms, {"inputCount": len(candidates), "outputCount": len(hits)}
                    )
                    if rerank_ms is not None
                    else None
                ),
            )
        )

        logger.debug(
            "Search %s: mode=%s results=%d total=%.1fms",
            request_id,
            mode.value,
            len(hits),
            timing.total,
        )
        return SearchResponse(results=hits, timing=timing, mode=mode, request_id=request_id)

    def text_search(
        self,
        text: str,
        types: Sequence[ContentType | str] | None = None,
        limit: int | None = None,
    ) -> list[SearchHit]:
        """Keyword-only search without embedding or re-ranking."""
        candidates = self.index.search(
            SearchOptions(
                query=text,
                types=self._resolve_types(types),
                limit=self._resolve_limit(limit),
                mode=SearchMode.KEYWORD,
            )
        )
        return [SearchHit.from_candidate(c) for c in candidates]

    def vector_search(
        self,
        vector: Sequence[float],
        types: Sequence[ContentType | str] | None = None,
        limit: int | None = None,
    ) -> list[SearchHit]:
        """Vector-only similarity search."""
        self._check_query_vector(vector)
        candidates = self.index.search(
            SearchOptions(
                vector=vector,
                types=self._resolve_types(types),
                limit=self._resolve_limit(limit),
                mode=SearchMode.VECTOR,
            )
        )
        return [SearchHit.from_candidate(c) for c in candidates]

    def find_similar(
        self,
        embedding: Sequence[float],
        exclude_id: str | None = None,
        limit: int = 5,
    ) -> list[SearchHit]:
        """Find documents similar to a given embedding.

        Args:
            embedding: Embedding of the source document.
            exclude_id: Id of the source document, dropped from the results.
            limit: Number of similar documents to return.
        """
        limit = self._resolve_limit(limit)
        hits = self.vector_search(embedding, limit=limit + 1 if exclude_id else limit)
        return [hit for hit in hits if hit.id != exclude_id][:limit]

    def document_count(self) -> int:
        return self.index.count()

    def close(self) -> None:
        """Release worker threads."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _resolve_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.default_limit
        if limit < 1:
            raise ValidationError("Limit must be at least 1", context={"limit": limit})
        return min(limit, self.max_limit)

    @staticmethod
    def _resolve_types(types: Sequence[ContentType | str] | None) -> list[ContentType]:
        resolved = []
        for value in types or []:
            try:
                resolved.append(ContentType(value))
            except ValueError as e:
                raise ValidationError(
                    f"Unknown content type: {value!r}",
                    context={"allowed": [t.value for t in ContentType]},
                ) from e
        return resolved

    def _check_query_vector(self, vector: Sequence[float]) -> None:
        expected = self.index.dimensions
        if len(vector) != expected:
            raise DimensionMismatchError(
                f"Query vector has {len(vector)} dimensions, expected {expected}",
                context={"expected": expected, "actual": len(vector)},
            )

    # ------------------------------------------------------------------
    # External model calls
    # ------------------------------------------------------------------

    def _call_with_timeout(
        self, fn: Callable[..., Any], *args: Any, timeout: float | None, what: str
    ) -> Any:
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=timeout)
        except FuturesTimeoutError as e:
            future.cancel()
            raise DependencyTimeoutError(
                f"{what} timed out after {timeout}s",
                cause=e,
                context={"timeout_seconds": timeout},
            ) from e

    def _embed_query(
        self, request_id: str, text: str
    ) -> tuple[list[float] | None, float, bool]:
        """Embed the query, retrying once.

        Returns:
            Tuple of (vector or None on failure, elapsed ms, cache_hit).
        """
        start = time.perf_counter()
        error: Exception | None = None

        for attempt in (1, 2):
            try:
                vector, cache_hit = self._call_with_timeout(
                    self.embedder.embed,
                    text,
                    timeout=self.embedding_timeout,
                    what="Query embedding",
                )
            except DimensionMismatchError as e:
                # A misconfigured model returns the same length every time
                error = e
                break
            except DependencyUnavailableError as e:
                error = e
                logger.warning(f"Embedding attempt {attempt} failed: {e.message}")
                continue

            elapsed = _elapsed_ms(start)
            self.diagnostics.embedding_generated(request_id, text, vector, cache_hit, elapsed)
            return vector, elapsed, cache_hit

        elapsed = _elapsed_ms(start)
        logger.warning(f"Query embedding failed, falling back to keyword search: {error}")
        self.diagnostics.embedding_failed(request_id, text, error, elapsed)
        return None, elapsed, False

    def _rerank(
        self,
        request_id: str,
        text: str,
        candidates: list[SearchCandidate],
        limit: int,
    ) -> tuple[list[SearchHit], float]:
        items = [RerankItem.from_candidate(c) for c in candidates]
        start = time.perf_counter()

        try:
            reranked = self._call_with_timeout(
                self.reranker.rerank,
                text,
                items,
                limit,
                timeout=self.rerank_timeout,
                what="Reranking",
            )
        except Exception as e:
            elapsed = _elapsed_ms(start)
            logger.warning(f"Reranking failed, using retrieval order: {e}")
            self.diagnostics.rerank_failed(request_id, len(items), e, elapsed)
            return [SearchHit.from_candidate(c) for c in candidates[:limit]], elapsed

        elapsed = _elapsed_ms(start)
        by_id = {c.id: c for c in candidates}
        hits = [
            SearchHit.from_candidate(by_id[result.id], score=result.score)
            for result in reranked
            if result.id in by_id
        ]

        self.diagnostics.rerank_completed(
            request_id,
            len(items),
            hits,
            {c.id: c.score.value for c in candidates},
            elapsed,
        )
        return hits, elapsed

"""Structured diagnostics for the search pipeline.

Every stage of a request reports a typed event to a ``DiagnosticsSink``.
Events are plain data; sinks decide how to render them. Diagnostics never
influence search decisions, and a failing sink never fails a request.

Most events are emitted only when debugging is enabled (``search_debug``).
Zero-result escalation is the exception: an empty result for a real query is
always reported.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from ..domain import SearchCandidate, SearchHit
from ..domain.utils import truncate
from ..ports.diagnostics_port import DiagnosticsSink

logger = logging.getLogger(__name__)

ZERO_RESULT_CAUSES = (
    "Query terms not in index",
    "Embedding similarity too low",
    "Type filters excluding all matches",
    "Index may be empty or corrupted",
)

ZERO_RESULT_SUGGESTIONS = (
    "Check index document count",
    "Try broader search terms",
    "Remove type filters",
    "Verify index was built correctly",
)


class DiagnosticLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def logging_level(self) -> int:
        return {
            DiagnosticLevel.DEBUG: logging.DEBUG,
            DiagnosticLevel.INFO: logging.INFO,
            DiagnosticLevel.WARNING: logging.WARNING,
            DiagnosticLevel.ERROR: logging.ERROR,
        }[self]


@dataclass(kw_only=True)
class DiagnosticEvent:
    """Base class for pipeline events.

    Subclasses set ``stage`` and implement ``message`` and ``data``.
    """

    stage: ClassVar[str] = "search"
    request_id: str = ""

    @property
    def level(self) -> DiagnosticLevel:
        return DiagnosticLevel.DEBUG

    @property
    def message(self) -> str:
        return type(self).__name__

    def data(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the event to a JSON-serializable dictionary."""
        result: dict[str, Any] = {
            "stage": self.stage,
            "level": self.level.value,
            "message": self.message,
            "data": self.data(),
        }
        if self.request_id:
            result["request_id"] = self.request_id
        return result


@dataclass(kw_only=True)
class QueryReceived(DiagnosticEvent):
    stage: ClassVar[str] = "query"

    text: str
    types: list[str] = field(default_factory=list)
    limit: int

    @property
    def char_count(self) -> int:
        return len(self.text.strip())

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    @property
    def message(self) -> str:
        return "Query received"

    def data(self) -> dict[str, Any]:
        return {
            "original": self.text,
            "charCount": self.char_count,
            "wordCount": self.word_count,
            "filters": {"types": self.types, "limit": self.limit},
            "isEmpty": self.char_count == 0,
            "isShort": self.word_count < 2,
        }


@dataclass(kw_only=True)
class EmbeddingGenerated(DiagnosticEvent):
    stage: ClassVar[str] = "embedding"

    query: str
    cache_hit: bool
    duration_ms: float
    dimensions: int
    first_values: list[float] = field(default_factory=list)

    @property
    def message(self) -> str:
        return "Cache hit" if self.cache_hit else "Generated embedding"

    def data(self) -> dict[str, Any]:
        return {
            "query": truncate(self.query),
            "cacheHit": self.cache_hit,
            "durationMs": round(self.duration_ms, 2),
            "dimensions": self.dimensions,
            "firstValues": self.first_values[:5],
        }


@dataclass(kw_only=True)
class EmbeddingFailed(DiagnosticEvent):
    stage: ClassVar[str] = "embedding"

    query: str
    error: str
    duration_ms: float

    @property
    def level(self) -> DiagnosticLevel:
        return DiagnosticLevel.ERROR

    @property
    def message(self) -> str:
        return "Embedding failed, falling back to keyword search"

    def data(self) -> dict[str, Any]:
        return {
            "query": truncate(self.query),
            "durationMs": round(self.duration_ms, 2),
            "error": self.error,
        }


@dataclass(kw_only=True)
class SearchExecuted(DiagnosticEvent):
    stage: ClassVar[str] = "search"

    mode: str
    query: str | None
    has_vector: bool
    vector_dimensions: int | None = None
    types: list[str] = field(default_factory=list)
    requested_limit: int
    effective_limit: int

    @property
    def message(self) -> str:
        return f"Executing {self.mode} search"

    def data(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "query": self.query[:50] if self.query else None,
            "hasVector": self.has_vector,
            "vectorDimensions": self.vector_dimensions,
            "typeFilters": self.types,
            "requestedLimit": self.requested_limit,
            "actualSearchLimit": self.effective_limit,
        }


@dataclass(kw_only=True)
class SearchResults(DiagnosticEvent):
    stage: ClassVar[str] = "results"

    mode: str
    duration_ms: float
    candidates: list[SearchCandidate] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.candidates)

    @property
    def level(self) -> DiagnosticLevel:
        return DiagnosticLevel.WARNING if self.total == 0 else DiagnosticLevel.DEBUG

    @property
    def message(self) -> str:
        return f"Found {self.total} results"

    def data(self) -> dict[str, Any]:
        scores = [c.score.value for c in self.candidates]
        result: dict[str, Any] = {
            "mode": self.mode,
            "totalResults": self.total,
            "durationMs": round(self.duration_ms, 2),
            "topScores": scores[:5],
            "topResults": [
                {
                    "name": c.document.name,
                    "type": c.document.type.value,
                    "score": f"{c.score.value:.4f}",
                    "section": c.document.section,
                }
                for c in self.candidates[:5]
            ],
        }
        if scores:
            result["scoreRange"] = {"min": min(scores), "max": max(scores)}
        return result


@dataclass(kw_only=True)
class ZeroResultsDetected(DiagnosticEvent):
    stage: ClassVar[str] = "diagnostic"

    query: str | None
    mode: str | None
    types: list[str] = field(default_factory=list)
    index_count: int | None = None

    @property
    def level(self) -> DiagnosticLevel:
        return DiagnosticLevel.WARNING

    @property
    def message(self) -> str:
        return "ZERO RESULTS - Potential issues:"

    def data(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "mode": self.mode,
            "typeFilters": self.types,
            "indexCount": self.index_count,
            "possibleCauses": list(ZERO_RESULT_CAUSES),
            "suggestions": list(ZERO_RESULT_SUGGESTIONS),
        }


@dataclass
class ScoreChange:
    id: str
    name: str
    original_score: float | None
    reranked_score: float


@dataclass(kw_only=True)
class RerankCompleted(DiagnosticEvent):
    stage: ClassVar[str] = "rerank"

    input_count: int
    output_count: int
    duration_ms: float
    score_changes: list[ScoreChange] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Reranked {self.input_count} -> {self.output_count} results"

    def data(self) -> dict[str, Any]:
        return {
            "inputCount": self.input_count,
            "outputCount": self.output_count,
            "durationMs": round(self.duration_ms, 2),
            "topScoreChanges": [
                {
                    "name": change.name,
                    "before": (
                        f"{change.original_score:.4f}"
                        if change.original_score is not None
                        else None
                    ),
                    "after": f"{change.reranked_score:.4f}",
                }
                for change in self.score_changes[:3]
            ],
        }


@dataclass(kw_only=True)
class RerankFailed(DiagnosticEvent):
    stage: ClassVar[str] = "rerank"

    input_count: int
    duration_ms: float
    error: str

    @property
    def level(self) -> DiagnosticLevel:
        return DiagnosticLevel.WARNING

    @property
    def message(self) -> str:
        return "Reranking failed, using retrieval order"

    def data(self) -> dict[str, Any]:
        return {
            "inputCount": self.input_count,
            "durationMs": round(self.duration_ms, 2),
            "error": self.error,
        }


@dataclass(kw_only=True)
class IndexStats(DiagnosticEvent):
    stage: ClassVar[str] = "index"

    document_count: int
    index_path: str | None = None
    initialized: bool = True
    error: str | None = None

    @property
    def level(self) -> DiagnosticLevel:
        return DiagnosticLevel.WARNING if self.error else DiagnosticLevel.INFO

    @property
    def message(self) -> str:
        return "Index statistics"

    def data(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "documentCount": self.document_count,
            "indexPath": self.index_path,
            "initialized": self.initialized,
            "isEmpty": self.document_count == 0,
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class StageTiming:
    duration_ms: float
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"durationMs": round(self.duration_ms, 2), **self.details}


@dataclass(kw_only=True)
class PipelineSummary(DiagnosticEvent):
    stage: ClassVar[str] = "summary"

    query: str | None
    total_duration_ms: float
    final_result_count: int
    search: StageTiming
    embedding: StageTiming | None = None
    rerank: StageTiming | None = None

    @property
    def has_results(self) -> bool:
        return self.final_result_count > 0

    @property
    def level(self) -> DiagnosticLevel:
        return DiagnosticLevel.INFO if self.has_results else DiagnosticLevel.WARNING

    @property
    def message(self) -> str:
        return (
            f"Search completed: {self.final_result_count} results "
            f"in {self.total_duration_ms:.0f}ms"
        )

    def data(self) -> dict[str, Any]:
        stages: dict[str, Any] = {"search": self.search.to_dict()}
        if self.embedding:
            stages["embedding"] = self.embedding.to_dict()
        if self.rerank:
            stages["rerank"] = self.rerank.to_dict()
        return {
            "requestId": self.request_id,
            "query": truncate(self.query or ""),
            "totalDurationMs": round(self.total_duration_ms, 2),
            "stages": stages,
            "finalResultCount": self.final_result_count,
            "hasResults": self.has_results,
        }


class NullDiagnosticsSink:
    """Discards every event."""

    def emit(self, event: DiagnosticEvent) -> None:
        pass


class SearchDiagnostics:
    """Facade that builds events and forwards them to a sink.

    Args:
        sink: Destination for events.
        enabled: Whether debug-level pipeline events are emitted. Zero-result
            escalation is emitted regardless.
    """

    def __init__(self, sink: DiagnosticsSink, enabled: bool = False) -> None:
        self.sink = sink
        self.enabled = enabled

    def _emit(self, event: DiagnosticEvent, always: bool = False) -> None:
        if not (self.enabled or always):
            return
        try:
            self.sink.emit(event)
        except Exception as e:
            logger.warning("Diagnostics sink failed for %s event: %s", event.stage, e)

    def query_received(
        self,
        request_id: str,
        text: str | None,
        types: Sequence[str],
        limit: int,
    ) -> None:
        self._emit(
            QueryReceived(request_id=request_id, text=text or "", types=list(types), limit=limit)
        )

    def embedding_generated(
        self,
        request_id: str,
        query: str,
        vector: Sequence[float],
        cache_hit: bool,
        duration_ms: float,
    ) -> None:
        self._emit(
            EmbeddingGenerated(
                request_id=request_id,
                query=query,
                cache_hit=cache_hit,
                duration_ms=duration_ms,
                dimensions=len(vector),
                first_values=list(vector[:5]),
            )
        )

    def embedding_failed(
        self, request_id: str, query: str, error: Exception, duration_ms: float
    ) -> None:
        self._emit(
            EmbeddingFailed(
                request_id=request_id, query=query, error=str(error), duration_ms=duration_ms
            )
        )

    def search_executed(
        self,
        request_id: str,
        mode: str,
        query: str | None,
        vector: Sequence[float] | None,
        types: Sequence[str],
        requested_limit: int,
        effective_limit: int,
    ) -> None:
        self._emit(
            SearchExecuted(
                request_id=request_id,
                mode=mode,
                query=query,
                has_vector=bool(vector),
                vector_dimensions=len(vector) if vector else None,
                types=list(types),
                requested_limit=requested_limit,
                effective_limit=effective_limit,
            )
        )

    def search_results(
        self,
        request_id: str,
        mode: str,
        candidates: list[SearchCandidate],
        duration_ms: float,
    ) -> None:
        self._emit(
            SearchResults(
                request_id=request_id,
                mode=mode,
                duration_ms=duration_ms,
                candidates=list(candidates),
            )
        )

    def zero_results(
        self,
        request_id: str,
        query: str | None,
        mode: str | None,
        types: Sequence[str],
        index_count: int | None,
    ) -> None:
        self._emit(
            ZeroResultsDetected(
                request_id=request_id,
                query=query,
                mode=mode,
                types=list(types),
                index_count=index_count,
            ),
            always=True,
        )

    def rerank_completed(
        self,
        request_id: str,
        input_count: int,
        hits: list[SearchHit],
        original_scores: dict[str, float],
        duration_ms: float,
    ) -> None:
        changes = [
            ScoreChange(
                id=hit.id,
                name=hit.name,
                original_score=original_scores.get(hit.id),
                reranked_score=hit.score,
            )
            for hit in hits[:3]
        ]
        self._emit(
            RerankCompleted(
                request_id=request_id,
                input_count=input_count,
                output_count=len(hits),
                duration_ms=duration_ms,
                score_changes=changes,
            )
        )

    def rerank_failed(
        self, request_id: str, input_count: int, error: Exception, duration_ms: float
    ) -> None:
        self._emit(
            RerankFailed(
                request_id=request_id,
                input_count=input_count,
                duration_ms=duration_ms,
                error=str(error),
            )
        )

    def index_stats(
        self,
        document_count: int,
        index_path: str | None = None,
        error: str | None = None,
    ) -> None:
        # Restore failures are surfaced whether or not debugging is on
        self._emit(
            IndexStats(
                document_count=document_count,
                index_path=index_path,
                initialized=error is None,
                error=error,
            ),
            always=error is not None,
        )

    def pipeline_summary(self, summary: PipelineSummary) -> None:
        self._emit(summary, always=not summary.has_results)

"""Domain models for the Nightreign search service.

Models are organized by area:

- document: Document, SearchCandidate, RetrievalScore and the rerank records
- search: SearchOptions, SearchRequest, SearchHit, SearchResponse and mode
  inference

All models are re-exported here for convenient importing:

    from nightreign.core.domain import Document, SearchMode, SearchRequest
"""

from .document import (
    ContentType,
    Document,
    RerankedResult,
    RerankItem,
    RetrievalScore,
    SearchCandidate,
    SearchMode,
)
from .search import (
    DEFAULT_LIMIT,
    SearchHit,
    SearchOptions,
    SearchRequest,
    SearchResponse,
    SearchTiming,
    has_query_text,
    has_query_vector,
    resolve_search_mode,
)

__all__ = [
    # Document models
    "ContentType",
    "Document",
    "SearchMode",
    "RetrievalScore",
    "SearchCandidate",
    "RerankItem",
    "RerankedResult",
    # Search models
    "DEFAULT_LIMIT",
    "SearchOptions",
    "SearchRequest",
    "SearchHit",
    "SearchTiming",
    "SearchResponse",
    "has_query_text",
    "has_query_vector",
    "resolve_search_mode",
]

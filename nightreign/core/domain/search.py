"""Request, response and option models for search."""

from collections.abc import Sequence
from dataclasses import dataclass, field

from .document import ContentType, SearchCandidate, SearchMode

DEFAULT_LIMIT = 10


def has_query_text(query: str | None) -> bool:
    """Whether a query string carries any searchable text."""
    return bool(query and query.strip())


def has_query_vector(vector: Sequence[float] | None) -> bool:
    """Whether a query vector was supplied."""
    return vector is not None and len(vector) > 0


def resolve_search_mode(
    query: str | None,
    vector: Sequence[float] | None,
    requested: SearchMode | None = None,
) -> SearchMode | None:
    """Pick the retrieval mode for a query.

    Priority: an explicit mode whose input is present, then hybrid when both
    text and vector are given, then vector-only, then keyword-only.

    Returns:
        The resolved mode, or None when neither text nor vector is present.
    """
    text = has_query_text(query)
    vec = has_query_vector(vector)

    if requested is SearchMode.VECTOR and vec:
        return SearchMode.VECTOR
    if requested is SearchMode.KEYWORD and text:
        return SearchMode.KEYWORD
    if requested is SearchMode.HYBRID and text and vec:
        return SearchMode.HYBRID

    if text and vec:
        return SearchMode.HYBRID
    if vec:
        return SearchMode.VECTOR
    if text:
        return SearchMode.KEYWORD
    return None


@dataclass
class SearchOptions:
    """Options accepted by the document index.

    Attributes:
        query: Free-text query for keyword matching.
        vector: Query embedding for similarity matching.
        types: Only documents of these types are eligible.
        limit: Maximum number of candidates to return.
        mode: Explicit mode; inferred from query/vector when omitted.
    """

    query: str | None = None
    vector: Sequence[float] | None = None
    types: Sequence[ContentType] | None = None
    limit: int = DEFAULT_LIMIT
    mode: SearchMode | None = None


@dataclass
class SearchRequest:
    """A user-facing query handled by the search service.

    A ``limit`` of None uses the service's configured default.
    """

    text: str | None = None
    vector: Sequence[float] | None = None
    types: Sequence[ContentType] | None = None
    limit: int | None = None
    rerank: bool = True


@dataclass
class SearchHit:
    """A final, ranked search result.

    ``score`` is in (0, 1) when ``reranked`` is set, otherwise it is the
    retrieval stage's native score for ``mode``.
    """

    id: str
    type: ContentType
    name: str
    section: str
    content: str
    tags: list[str]
    source_url: str
    score: float
    mode: SearchMode
    reranked: bool = False

    @classmethod
    def from_candidate(
        cls, candidate: SearchCandidate, score: float | None = None
    ) -> "SearchHit":
        doc = candidate.document
        return cls(
            id=candidate.id,
            type=doc.type,
            name=doc.name,
            section=doc.section,
            content=doc.content,
            tags=list(doc.tags),
            source_url=doc.source_url,
            score=candidate.score.value if score is None else score,
            mode=candidate.mode,
            reranked=score is not None,
        )


@dataclass
class SearchTiming:
    """Per-stage timings in milliseconds."""

    search: float = 0.0
    total: float = 0.0
    embedding: float | None = None
    rerank: float | None = None


@dataclass
class SearchResponse:
    """Ranked results plus timing and the resolved mode."""

    results: list[SearchHit] = field(default_factory=list)
    timing: SearchTiming = field(default_factory=SearchTiming)
    mode: SearchMode | None = None
    request_id: str = ""

    @property
    def count(self) -> int:
        return len(self.results)

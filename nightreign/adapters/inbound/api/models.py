"""Pydantic models for API requests and responses."""

from pydantic import BaseModel, ConfigDict, Field

from ....core.domain import ContentType, SearchHit, SearchResponse


class SearchRequestBody(BaseModel):
    """Request model for a search."""

    query: str | None = Field(
        None,
        description="Free-text query, at most `max_query_length` characters",
        json_schema_extra={"example": "how to beat Gladius"},
    )
    vector: list[float] | None = Field(
        None, description="Precomputed query embedding (384 dimensions)"
    )
    types: list[ContentType] | None = Field(
        None, description="Only return documents of these content types"
    )
    limit: int | None = Field(
        None,
        ge=1,
        description="Maximum number of results (`default_limit` when omitted, at most `max_limit`)",
    )
    rerank: bool = Field(True, description="Re-rank candidates with the cross-encoder")


class SearchResultItem(BaseModel):
    """A single ranked search result."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: ContentType
    name: str
    section: str
    content: str
    tags: list[str] = Field(default_factory=list)
    source_url: str = Field("", alias="sourceUrl")
    score: float
    mode: str
    reranked: bool = False

    @classmethod
    def from_hit(cls, hit: SearchHit) -> "SearchResultItem":
        return cls(
            id=hit.id,
            type=hit.type,
            name=hit.name,
            section=hit.section,
            content=hit.content,
            tags=hit.tags,
            source_url=hit.source_url,
            score=hit.score,
            mode=hit.mode.value,
            reranked=hit.reranked,
        )


class TimingInfo(BaseModel):
    """Per-stage timings in milliseconds."""

    embedding: float | None = None
    search: float
    rerank: float | None = None
    total: float


class SearchResponseBody(BaseModel):
    """Response model for a search."""

    model_config = ConfigDict(populate_by_name=True)

    results: list[SearchResultItem] = Field(default_factory=list)
    count: int = 0
    timing: TimingInfo
    mode: str | None = None
    request_id: str = Field("", alias="requestId")

    @classmethod
    def from_response(cls, response: SearchResponse) -> "SearchResponseBody":
        timing = response.timing
        return cls(
            results=[SearchResultItem.from_hit(hit) for hit in response.results],
            count=response.count,
            timing=TimingInfo(
                embedding=round(timing.embedding, 2) if timing.embedding is not None else None,
                search=round(timing.search, 2),
                rerank=round(timing.rerank, 2) if timing.rerank is not None else None,
                total=round(timing.total, 2),
            ),
            mode=response.mode.value if response.mode else None,
            request_id=response.request_id,
        )


class WarmupDetails(BaseModel):
    queries_warmed: int = Field(..., alias="queriesWarmed")
    queries_failed: int = Field(..., alias="queriesFailed")
    warmup_duration_ms: float = Field(..., alias="warmupDurationMs")
    cache_size: int = Field(..., alias="cacheSize")
    cache_max_size: int = Field(..., alias="cacheMaxSize")

    model_config = ConfigDict(populate_by_name=True)


class WarmupResponse(BaseModel):
    """Response model for cache pre-warming."""

    status: str
    message: str
    details: WarmupDetails


class CacheStats(BaseModel):
    size: int
    max_size: int = Field(..., alias="maxSize")
    utilization: str

    model_config = ConfigDict(populate_by_name=True)


class CacheStatsResponse(BaseModel):
    """Response model for cache statistics."""

    status: str
    cache: CacheStats


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")
    index: str = Field(..., description="Search index status")
    document_count: int | None = Field(None, alias="documentCount")

    model_config = ConfigDict(populate_by_name=True)


class ErrorDetail(BaseModel):
    """Structured error detail information."""

    type: str = Field(..., description="Exception type name")
    code: str = Field(..., description="Error code (e.g., NR_VAL_002)")
    message: str = Field(..., description="Human-readable error message")


class ErrorLocation(BaseModel):
    """Source location where error occurred."""

    model_config = ConfigDict(populate_by_name=True)

    class_name: str = Field(..., alias="class", description="Class name or <module>")
    method: str = Field(..., description="Method/function name")
    file: str = Field(..., description="Source file name")
    line: int = Field(..., description="Line number")
    timestamp: str | None = Field(None, description="When the error occurred")


class ErrorResponse(BaseModel):
    """Response model for structured errors.

    Example:
        {
            "error": {"type": "DimensionMismatchError", "code": "NR_VAL_002", "message": "..."},
            "location": {"class": "SearchService", "method": "_check_query_vector", ...},
            "context": {"expected": 384, "actual": 3},
            "stack_trace": ["Traceback...", ...]  # Only in debug mode
        }
    """

    error: ErrorDetail = Field(..., description="Error details including type, code, and message")
    location: ErrorLocation | None = Field(None, description="Source location of the error")
    context: dict | None = Field(None, description="Additional debugging context")
    cause: dict | None = Field(None, description="Underlying exception that caused this error")
    stack_trace: list[str] | None = Field(None, description="Stack trace (debug mode only)")

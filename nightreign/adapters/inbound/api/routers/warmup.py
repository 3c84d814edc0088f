"""Embedding cache warmup endpoints."""

import logging

from fastapi import APIRouter, Depends, Response

from .....composition import SearchContainer
from ..deps import get_container
from ..models import CacheStats, CacheStatsResponse, WarmupDetails, WarmupResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["warmup"])


@router.post("/warmup", response_model=WarmupResponse)
def warmup(
    response: Response, container: SearchContainer = Depends(get_container)
) -> WarmupResponse:
    """Pre-warm the embedding cache with popular queries."""
    result = container.prewarm()
    cache = container.embedder.cache

    response.headers["Cache-Control"] = "no-store"
    return WarmupResponse(
        status="success",
        message=f"Pre-warmed {result.success} queries in {result.duration_ms:.0f}ms",
        details=WarmupDetails(
            queries_warmed=result.success,
            queries_failed=result.failed,
            warmup_duration_ms=round(result.duration_ms, 2),
            cache_size=len(cache),
            cache_max_size=cache.max_size,
        ),
    )


@router.get("/warmup", response_model=CacheStatsResponse)
def cache_stats(container: SearchContainer = Depends(get_container)) -> CacheStatsResponse:
    """Current embedding cache statistics, without warming."""
    cache = container.embedder.cache
    size = len(cache)
    utilization = round(size / cache.max_size * 100) if cache.max_size else 0

    return CacheStatsResponse(
        status="ok",
        cache=CacheStats(size=size, max_size=cache.max_size, utilization=f"{utilization}%"),
    )

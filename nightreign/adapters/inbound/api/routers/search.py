"""Search endpoint."""

import logging

from fastapi import APIRouter, Depends, Response

from .....config.settings import Settings
from .....core.domain import SearchRequest
from .....core.domain.exceptions import ValidationError
from .....core.services import SearchService
from ..deps import get_search_service, get_settings
from ..models import ErrorResponse, SearchRequestBody, SearchResponseBody

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["search"])


@router.post(
    "/search",
    response_model=SearchResponseBody,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
        503: {"model": ErrorResponse, "description": "Search index unavailable"},
    },
)
def search(
    body: SearchRequestBody,
    response: Response,
    service: SearchService = Depends(get_search_service),
    settings: Settings = Depends(get_settings),
) -> SearchResponseBody:
    """Run a hybrid search over the game-content index.

    Args:
        body: Query text and/or vector, type filters, limit and rerank flag.

    Returns:
        SearchResponseBody with ranked results, timing and the resolved mode.

    Raises:
        ValidationError: If the limit exceeds the configured maximum.
        QueryTooLongError: If the query exceeds the configured length.
    """
    if body.limit is not None and body.limit > settings.max_limit:
        raise ValidationError(
            f"Limit must not exceed {settings.max_limit}",
            context={"limit": body.limit, "max_limit": settings.max_limit},
        )

    result = service.search(
        SearchRequest(
            text=body.query,
            vector=body.vector,
            types=body.types,
            limit=body.limit,
            rerank=body.rerank,
        )
    )

    response.headers["X-Search-Mode"] = result.mode.value if result.mode else "none"
    response.headers["X-Total-Time"] = f"{result.timing.total:.2f}"
    response.headers["X-Request-Id"] = result.request_id

    return SearchResponseBody.from_response(result)

"""Health check endpoints."""

from fastapi import APIRouter, Depends

from ..... import __version__
from .....composition import SearchContainer
from ..deps import get_container
from ..models import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic liveness check.

    Returns:
        HealthResponse with current status and version.
    """
    return HealthResponse(status="healthy", version=__version__, index="not_checked")


@router.get("/ready", response_model=HealthResponse)
def readiness_check(container: SearchContainer = Depends(get_container)) -> HealthResponse:
    """Readiness probe reporting the number of indexed documents.

    Returns:
        HealthResponse with index status.
    """
    count = container.index.count()
    return HealthResponse(
        status="ready",
        version=__version__,
        index="loaded" if count else "empty",
        document_count=count,
    )

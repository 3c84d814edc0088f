"""FastAPI application for the Nightreign search API."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .... import __version__
from ....composition import SearchContainer, build_container
from ....config.logging import setup_logging
from ....config.settings import Settings
from ....core.domain.exceptions import NightreignError
from ...common.exception_handler import (
    format_exception_json,
    get_http_status_code,
    log_exception,
)
from .routers import health, search, warmup

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    container: SearchContainer | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Application settings. Loaded from the environment if omitted.
        container: Prebuilt search container. Built from settings on startup
            if omitted.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or (container.settings if container else Settings())
    debug_mode = settings.debug

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(settings.log_level, json_format=settings.log_json)
        logger.info("Nightreign search API starting up...")
        settings.ensure_directories()
        logger.info("Debug mode: %s", "ENABLED" if debug_mode else "DISABLED")

        app.state.container = container or build_container(settings)
        app.state.container.load_index()
        logger.info("Index ready with %d documents", app.state.container.index.count())

        if settings.prewarm_on_startup:
            app.state.container.prewarm()

        yield

        logger.info("Nightreign search API shutting down...")
        app.state.container.close()

    app = FastAPI(
        title="Nightreign Search API",
        description=(
            "Hybrid keyword and semantic search over Nightreign game content, "
            "re-ranked with a cross-encoder."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Search-Mode", "X-Total-Time", "X-Request-Id"],
    )

    app.include_router(health.router)
    app.include_router(search.router)
    app.include_router(warmup.router)

    # =========================================================================
    # Global Exception Handlers
    # =========================================================================

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Reject malformed request bodies with a 400 and per-field details."""
        logger.warning("Validation failed for %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "type": "ValidationError",
                    "code": "NR_VAL_001",
                    "message": "Validation failed",
                },
                "details": [
                    {
                        "field": ".".join(str(part) for part in err["loc"][1:]),
                        "message": err["msg"],
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(NightreignError)
    async def nightreign_error_handler(request: Request, exc: NightreignError) -> JSONResponse:
        """Handle all NightreignError exceptions with structured JSON response."""
        log_exception(
            exc, extra_context={"path": str(request.url.path), "method": request.method}
        )
        return JSONResponse(
            status_code=get_http_status_code(exc),
            content=exc.to_dict(include_trace=debug_mode),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle all unhandled exceptions with structured JSON response."""
        log_exception(
            exc, extra_context={"path": str(request.url.path), "method": request.method}
        )
        return JSONResponse(
            status_code=get_http_status_code(exc),
            content=format_exception_json(exc, include_trace=debug_mode),
        )

    return app


def app_factory() -> FastAPI:
    """Entry point for ``uvicorn --factory``."""
    return create_app()


__all__ = ["create_app", "app_factory"]

"""FastAPI dependency injection for the search API."""

from fastapi import Request

from ....composition import SearchContainer
from ....config.settings import Settings
from ....core.services import SearchService


def get_container(request: Request) -> SearchContainer:
    """Return the container created during application startup."""
    return request.app.state.container


def get_search_service(request: Request) -> SearchService:
    return get_container(request).search_service


def get_settings(request: Request) -> Settings:
    return get_container(request).settings

"""FastAPI surface for the search service."""

"""Index snapshot storage."""

from .index_file_store import IndexFileStore

__all__ = ["IndexFileStore"]

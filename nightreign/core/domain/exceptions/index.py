"""Document index exceptions."""

from .base import NightreignError


class SearchIndexError(NightreignError):
    """Base error for document index operations."""

    error_code = "NR_IDX_001"


class SnapshotCorruptionError(SearchIndexError):
    """A snapshot could not be decoded or is incompatible with the index.

    Common causes:
    - Truncated or hand-edited snapshot file
    - Snapshot written by an index with a different dimensionality
    - Unsupported snapshot format version
    """

    error_code = "NR_IDX_002"

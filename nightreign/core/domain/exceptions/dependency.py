"""Exceptions for the external model collaborators.

These are recovered locally wherever a degraded path exists: embedding
failures fall back to keyword search, reranker failures fall back to the
retrieval-stage ordering.
"""

from .base import NightreignError


class DependencyUnavailableError(NightreignError):
    """An external model (embedder or relevance scorer) failed."""

    error_code = "NR_DEP_001"


class EmbeddingError(DependencyUnavailableError):
    """Failed to generate embeddings."""

    error_code = "NR_DEP_002"


class RerankerError(DependencyUnavailableError):
    """The relevance scorer failed while reranking.

    Common causes:
    - Cross-encoder model could not be loaded
    - Scorer raised mid-batch
    """

    error_code = "NR_DEP_003"


class DependencyTimeoutError(DependencyUnavailableError):
    """An external model did not answer within its timeout."""

    error_code = "NR_DEP_004"

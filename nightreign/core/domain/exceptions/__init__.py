"""Custom exception hierarchy for the Nightreign search service.

This package provides structured exceptions with automatic context capture.
Each exception includes:
- Error codes for quick identification
- Automatic capture of class, method, file, and line number
- Cause chaining for underlying exceptions
- JSON serialization for structured logging

Import from this package directly:

    from nightreign.core.domain.exceptions import NightreignError, RerankerError
"""

# Base classes
from .base import ExceptionContext, NightreignError

# Configuration exceptions
from .configuration import ConfigurationError, InvalidConfigurationError

# External model exceptions
from .dependency import (
    DependencyTimeoutError,
    DependencyUnavailableError,
    EmbeddingError,
    RerankerError,
)

# Index exceptions
from .index import SearchIndexError, SnapshotCorruptionError

# Validation exceptions
from .validation import (
    DimensionMismatchError,
    InvalidDocumentError,
    QueryTooLongError,
    ValidationError,
)

__all__ = [
    # Base
    "ExceptionContext",
    "NightreignError",
    # Configuration
    "ConfigurationError",
    "InvalidConfigurationError",
    # External models
    "DependencyUnavailableError",
    "EmbeddingError",
    "RerankerError",
    "DependencyTimeoutError",
    # Index
    "SearchIndexError",
    "SnapshotCorruptionError",
    # Validation
    "ValidationError",
    "DimensionMismatchError",
    "InvalidDocumentError",
    "QueryTooLongError",
]

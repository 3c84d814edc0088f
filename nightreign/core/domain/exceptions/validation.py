"""Validation exceptions for the search service."""

from .base import NightreignError


class ValidationError(NightreignError):
    """Input validation failed."""

    error_code = "NR_VAL_001"


class DimensionMismatchError(ValidationError):
    """A vector does not have the index's configured dimensionality.

    Raised at insert time for documents and before retrieval for query
    vectors. Vectors are never truncated or padded.
    """

    error_code = "NR_VAL_002"


class InvalidDocumentError(ValidationError):
    """Document fields are missing or malformed (e.g. unknown content type)."""

    error_code = "NR_VAL_003"


class QueryTooLongError(ValidationError):
    """Query exceeds maximum allowed length."""

    error_code = "NR_VAL_004"

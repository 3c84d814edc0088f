"""Relevance scorer adapters."""

from .cross_encoder_adapter import CrossEncoderScorer

__all__ = ["CrossEncoderScorer"]

"""Relevance Scorer Port Interface."""

from abc import ABC, abstractmethod


class RelevanceScorerPort(ABC):
    """Abstract interface for pairwise (cross-encoder) relevance models."""

    @abstractmethod
    def score(self, query: str, passage: str) -> float:
        """Score a (query, passage) pair.

        Returns:
            Unbounded relevance logit; higher is more relevant.
        """
        ...

    def is_available(self) -> bool:
        """Whether the scorer can be used (model installed and loadable)."""
        return True

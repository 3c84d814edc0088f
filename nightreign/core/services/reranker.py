"""Cross-encoder re-ranking for improved retrieval precision.

This module provides a re-ranking layer that re-scores retrieval candidates
with a pairwise relevance model. Cross-encoders jointly encode each
query-passage pair and produce more accurate relevance scores than vector or
keyword similarity alone, at the cost of one model call per pair.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor

from ..domain import RerankedResult, RerankItem
from ..domain.exceptions import InvalidConfigurationError, RerankerError
from ..ports.relevance_port import RelevanceScorerPort

logger = logging.getLogger(__name__)

# Closest doubles to the open interval bounds
_MIN_SCORE = math.nextafter(0.0, 1.0)
_MAX_SCORE = math.nextafter(1.0, 0.0)


def sigmoid(x: float) -> float:
    """Logistic function mapping an unbounded logit into (0, 1).

    The result is clamped so that extreme logits never round to exactly
    0.0 or 1.0.
    """
    if x >= 0:
        value = 1.0 / (1.0 + math.exp(-x))
    else:
        z = math.exp(x)
        value = z / (1.0 + z)
    return min(max(value, _MIN_SCORE), _MAX_SCORE)


class CrossEncoderReranker:
    """Re-ranks candidates using a relevance scorer.

    Items are scored in sequential batches; the pairs inside one batch are
    scored concurrently, so at most ``batch_size`` model calls are in flight.
    """

    DEFAULT_BATCH_SIZE = 8

    def __init__(self, scorer: RelevanceScorerPort, batch_size: int = DEFAULT_BATCH_SIZE):
        """Initialize the reranker.

        Args:
            scorer: Pairwise relevance model returning raw logits.
            batch_size: Number of pairs scored concurrently.
        """
        if batch_size <= 0:
            raise InvalidConfigurationError(
                "Rerank batch size must be positive", context={"batch_size": batch_size}
            )
        self.scorer = scorer
        self.batch_size = batch_size

    def rerank(
        self,
        query: str,
        items: list[RerankItem],
        top_k: int | None = None,
    ) -> list[RerankedResult]:
        """Re-rank items by cross-encoder relevance.

        Args:
            query: The original search query.
            items: Candidates with their comparison text.
            top_k: Number of results to return. All items when None or
                larger than the number of items.

        Returns:
            Results sorted by descending relevance, scores in (0, 1).

        Raises:
            RerankerError: If the scorer fails or returns a non-finite score.
        """
        if not items:
            return []

        raw_scores = self._score_all(query, items)

        # Sorting by logit is equivalent to sorting by sigmoid(logit)
        order = sorted(range(len(items)), key=lambda i: raw_scores[i], reverse=True)
        if top_k is not None:
            order = order[: max(top_k, 0)]

        results = [
            RerankedResult(
                id=items[i].id,
                score=sigmoid(raw_scores[i]),
                original_score=items[i].original_score,
                raw_score=raw_scores[i],
            )
            for i in order
        ]

        if results:
            logger.debug(
                f"Re-ranked {len(items)} items. "
                f"Top score: {results[0].score:.3f} -> {results[-1].score:.3f}"
            )
        return results

    def _score_all(self, query: str, items: list[RerankItem]) -> list[float]:
        scores: list[float] = []
        workers = min(self.batch_size, len(items))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rerank") as pool:
            for start in range(0, len(items), self.batch_size):
                batch = items[start : start + self.batch_size]
                try:
                    batch_scores = list(
                        pool.map(lambda item: float(self.scorer.score(query, item.text)), batch)
                    )
                except Exception as e:
                    raise RerankerError(
                        "Relevance scorer failed",
                        cause=e,
                        context={"batch_start": start, "batch_size": len(batch)},
                    ) from e

                for item, score in zip(batch, batch_scores):
                    if not math.isfinite(score):
                        raise RerankerError(
                            "Relevance scorer returned a non-finite score",
                            context={"id": item.id, "score": str(score)},
                        )
                    scores.append(score)

        return scores

    def is_available(self) -> bool:
        """Check if the underlying relevance model can be used."""
        try:
            return self.scorer.is_available()
        except Exception as e:
            logger.warning(f"Cross-encoder not available: {e}")
            return False

"""Sentence-transformers cross-encoder relevance scorer."""

import logging
import math
import threading
from typing import TYPE_CHECKING

from ....core.domain.exceptions import RerankerError
from ....core.ports.relevance_port import RelevanceScorerPort

if TYPE_CHECKING:
    from sentence_transformers import CrossEncoder

logger = logging.getLogger(__name__)

# Keeps the inverse logistic finite for saturated probabilities
_EPSILON = 1e-7


def _logit(probability: float) -> float:
    p = min(max(probability, _EPSILON), 1 - _EPSILON)
    return math.log(p / (1 - p))


class CrossEncoderScorer(RelevanceScorerPort):
    """Scores query-passage pairs with a cross-encoder model.

    Single-label rerankers such as bge-reranker-base are served by
    ``CrossEncoder.predict`` through a sigmoid activation. The probability is
    mapped back to its logit so the reranker can apply one normalization
    after sorting.
    """

    MODEL_NAME = "BAAI/bge-reranker-base"

    def __init__(self, model_name: str | None = None):
        """Initialize the scorer.

        Args:
            model_name: Optional custom model name. Defaults to bge-reranker-base.
        """
        self.model_name = model_name or self.MODEL_NAME
        self._model: "CrossEncoder | None" = None  # Lazy load to avoid slow startup
        self._load_lock = threading.Lock()

    def _get_model(self) -> "CrossEncoder":
        """Lazy load the cross-encoder model."""
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    try:
                        from sentence_transformers import CrossEncoder
                    except ImportError as e:
                        raise RerankerError(
                            "Please install sentence-transformers to use cross-encoder "
                            "re-ranking: pip install sentence-transformers",
                            cause=e,
                        ) from e

                    logger.debug(f"Loading cross-encoder model: {self.model_name}")
                    self._model = CrossEncoder(self.model_name)
                    logger.info("Cross-encoder model loaded")
        return self._model

    def score(self, query: str, passage: str) -> float:
        model = self._get_model()
        probabilities = model.predict([(query, passage)], show_progress_bar=False)
        return _logit(float(probabilities[0]))

    def is_available(self) -> bool:
        """Check if the cross-encoder model can be loaded.

        Returns:
            True if sentence-transformers is installed and the model loads.
        """
        try:
            self._get_model()
            return True
        except RerankerError:
            return False
        except Exception as e:
            logger.warning(f"Cross-encoder not available: {e}")
            return False

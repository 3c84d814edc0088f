"""Sentence-transformers embedding provider."""

import logging
import threading
from typing import TYPE_CHECKING

from ....core.domain.exceptions import EmbeddingError
from ....core.ports.embedding_port import EmbeddingPort

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)


class SentenceTransformerEmbeddings(EmbeddingPort):
    """Wrapper for a sentence-transformers bi-encoder.

    Embeddings are L2-normalized so that cosine similarity equals the dot
    product. The model is loaded on first use.
    """

    MODEL_NAME = "BAAI/bge-small-en-v1.5"

    def __init__(self, model_name: str | None = None, batch_size: int = 32) -> None:
        """Initialize the embedding model.

        Args:
            model_name: Name of the sentence-transformers model to use.
                Default is bge-small-en-v1.5 (384 dims).
            batch_size: Batch size for document encoding.
        """
        self.model_name = model_name or self.MODEL_NAME
        self.batch_size = batch_size
        self._model: "SentenceTransformer | None" = None
        self._load_lock = threading.Lock()

    def _get_model(self) -> "SentenceTransformer":
        """Lazy load the model on first use."""
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    try:
                        from sentence_transformers import SentenceTransformer
                    except ImportError as e:
                        raise EmbeddingError(
                            "Please install sentence-transformers to embed queries: "
                            "pip install sentence-transformers",
                            cause=e,
                        ) from e

                    logger.info(f"Loading embedding model: {self.model_name}")
                    self._model = SentenceTransformer(self.model_name)
                    logger.info("Embedding model loaded")
        return self._model

    def embed_query(self, text: str) -> list[float]:
        model = self._get_model()
        embedding = model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        return embedding.tolist()

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        model = self._get_model()
        embeddings = model.encode(
            texts,
            batch_size=self.batch_size,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=len(texts) > 100,
        )
        return embeddings.tolist()

    def get_dimension(self) -> int:
        """Get the embedding dimension of the loaded model."""
        return self._get_model().get_sentence_embedding_dimension()

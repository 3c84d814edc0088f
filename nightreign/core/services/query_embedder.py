"""Query embedding with a small LRU cache.

Popular queries repeat constantly, so embeddings are cached by the trimmed,
lower-cased query text. Entries expire after a TTL to keep the cache fresh if
the underlying model is swapped.
"""

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from ..domain.exceptions import DimensionMismatchError, EmbeddingError
from ..ports.embedding_port import EmbeddingPort

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 100
DEFAULT_CACHE_TTL_SECONDS = 300.0


class EmbeddingCache:
    """Thread-safe LRU cache with per-entry TTL."""

    def __init__(
        self,
        max_size: int = DEFAULT_CACHE_SIZE,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[list[float], float]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> list[float] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            embedding, stored_at = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None

            self._entries.move_to_end(key)
            return embedding

    def set(self, key: str, embedding: list[float]) -> None:
        if self.max_size <= 0:
            return
        with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = (embedding, self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class QueryEmbedder:
    """Embeds search queries through an embedding provider, with caching.

    Example:
        embedder = QueryEmbedder(SentenceTransformerEmbeddings(), dimensions=384)
        vector, cache_hit = embedder.embed("Wylder grapple")
    """

    def __init__(
        self,
        provider: EmbeddingPort,
        dimensions: int,
        cache: EmbeddingCache | None = None,
    ):
        self.provider = provider
        self.dimensions = dimensions
        self.cache = cache or EmbeddingCache()

    @staticmethod
    def cache_key(query: str) -> str:
        return query.strip().lower()

    def embed(self, query: str) -> tuple[list[float], bool]:
        """Embed a query, using the cache when possible.

        Args:
            query: Search query text.

        Returns:
            Tuple of (embedding, cache_hit).

        Raises:
            EmbeddingError: If the provider fails.
            DimensionMismatchError: If the provider returns the wrong length.
        """
        key = self.cache_key(query)
        cached = self.cache.get(key)
        if cached is not None:
            return cached, True

        try:
            vector = [float(v) for v in self.provider.embed_query(query.strip())]
        except Exception as e:
            raise EmbeddingError(
                "Failed to generate query embedding", cause=e, context={"query": query[:50]}
            ) from e

        if len(vector) != self.dimensions:
            raise DimensionMismatchError(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}",
                context={"expected": self.dimensions, "actual": len(vector)},
            )

        self.cache.set(key, vector)
        return vector, False

    def clear_cache(self) -> None:
        self.cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self.cache)

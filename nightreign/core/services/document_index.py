"""In-memory document index with vector, keyword and hybrid search.

Keyword relevance is BM25 computed separately for every text field and
combined with multiplicative field boosts, so a hit in ``name`` counts far
more than a hit in the categorical ``type`` field. Vector similarity is cosine
similarity over a normalized numpy matrix.

Structural state (BM25 models and the vector matrix) lives in an immutable
``_IndexView`` that is rebuilt lazily on the first search after a write. Bulk
loads therefore pay for a single rebuild, and searches score against a view
that no writer can modify underneath them.
"""

import logging
import math
import threading
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import Literal

import numpy as np
from pydantic import BaseModel, Field
from rank_bm25 import BM25Plus

from ..domain import (
    ContentType,
    Document,
    RetrievalScore,
    SearchCandidate,
    SearchMode,
    SearchOptions,
    resolve_search_mode,
)
from ..domain.exceptions import (
    DimensionMismatchError,
    InvalidConfigurationError,
    InvalidDocumentError,
    SnapshotCorruptionError,
    ValidationError,
)
from ..domain.utils import tokenize
from ..ports.document_index_port import DocumentIndexPort

logger = logging.getLogger(__name__)

# Embedding dimensions of bge-small-en-v1.5
EMBEDDING_DIMENSIONS = 384

# Tuned relevance weights. "type" is categorical metadata: a query word that
# happens to equal a type name ("skill") must not outweigh real content hits.
DEFAULT_FIELD_BOOSTS: dict[str, float] = {
    "name": 5.0,
    "content": 2.0,
    "tags": 1.5,
    "section": 1.0,
    "type": 0.3,
}
KEYWORD_FIELDS = tuple(DEFAULT_FIELD_BOOSTS)

DEFAULT_SIMILARITY_THRESHOLD = 0.5
DEFAULT_TEXT_WEIGHT = 0.5
DEFAULT_VECTOR_WEIGHT = 0.5

SNAPSHOT_FORMAT = "nightreign-index"
SNAPSHOT_VERSION = 1


class SnapshotDocument(BaseModel):
    """Serialized form of a Document inside a snapshot."""

    id: str = Field(min_length=1)
    type: ContentType
    name: str
    section: str
    content: str
    tags: list[str] = Field(default_factory=list)
    source_url: str = ""
    embedding: list[float]

    @classmethod
    def from_document(cls, document: Document) -> "SnapshotDocument":
        return cls(
            id=document.id or "",
            type=document.type,
            name=document.name,
            section=document.section,
            content=document.content,
            tags=document.tags,
            source_url=document.source_url,
            embedding=document.embedding,
        )

    def to_document(self) -> Document:
        return Document(
            id=self.id,
            type=self.type,
            name=self.name,
            section=self.section,
            content=self.content,
            tags=list(self.tags),
            source_url=self.source_url,
            embedding=list(self.embedding),
        )


class IndexSnapshot(BaseModel):
    """Versioned, self-describing snapshot of the whole index."""

    format: Literal["nightreign-index"] = SNAPSHOT_FORMAT
    version: int = SNAPSHOT_VERSION
    dimensions: int
    created_at: str
    documents: list[SnapshotDocument]


def _field_text(document: Document, field_name: str) -> str:
    if field_name == "tags":
        return " ".join(document.tags)
    if field_name == "type":
        return document.type.value
    return getattr(document, field_name)


class _IndexView:
    """Immutable, fully built search structures for one set of documents."""

    def __init__(self, documents: tuple[Document, ...], dimensions: int) -> None:
        self.documents = documents
        self.type_values = np.array([doc.type.value for doc in documents], dtype=object)
        self.matrix = self._build_matrix(documents, dimensions)
        self.fields: dict[str, BM25Plus] = {}

        if not documents:
            return

        for field_name in KEYWORD_FIELDS:
            corpus = [tokenize(_field_text(doc, field_name)) for doc in documents]
            # BM25 needs at least one token to compute an average length
            if any(corpus):
                self.fields[field_name] = BM25Plus(corpus)

    @staticmethod
    def _build_matrix(documents: tuple[Document, ...], dimensions: int) -> np.ndarray:
        if not documents:
            return np.zeros((0, dimensions), dtype=np.float32)
        matrix = np.asarray([doc.embedding for doc in documents], dtype=np.float32)
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        return np.divide(matrix, norms, out=np.zeros_like(matrix), where=norms > 0)

    def type_mask(self, types: Sequence[ContentType] | None) -> np.ndarray:
        if not types:
            return np.ones(len(self.documents), dtype=bool)
        allowed = [ContentType(t).value for t in types]
        return np.isin(self.type_values, allowed)

    def keyword_scores(self, tokens: list[str], boosts: Mapping[str, float]) -> np.ndarray:
        """Boost-weighted sum of per-field BM25 match scores.

        BM25Plus adds ``delta * idf`` for every query term even when the term
        is absent from a document. That baseline is identical for all
        documents, so it is subtracted to leave only the contribution of
        actual matches; non-matching documents score exactly zero.
        """
        total = np.zeros(len(self.documents), dtype=np.float64)
        unique_tokens = list(dict.fromkeys(tokens))

        for field_name, boost in boosts.items():
            bm25 = self.fields.get(field_name)
            if bm25 is None or boost <= 0:
                continue
            present = [t for t in unique_tokens if t in bm25.idf]
            if not present:
                continue
            raw = bm25.get_scores(present)
            baseline = bm25.delta * sum(bm25.idf[t] for t in present)
            total += boost * np.clip(raw - baseline, 0.0, None)

        return total

    def similarities(self, vector: Sequence[float]) -> np.ndarray:
        query = np.asarray(vector, dtype=np.float32)
        norm = np.linalg.norm(query)
        if norm == 0 or not len(self.documents):
            return np.zeros(len(self.documents), dtype=np.float32)
        return self.matrix @ (query / norm)


class InMemoryDocumentIndex(DocumentIndexPort):
    """Shared, read-mostly document index held in process memory.

    Writes (insert, insert_batch, restore_snapshot, clear) take an exclusive
    lock. Searches hold the lock only long enough to obtain the current
    ``_IndexView`` and score outside it, so concurrent searches do not block
    each other and a restore is observed either fully or not at all.
    """

    def __init__(
        self,
        dimensions: int = EMBEDDING_DIMENSIONS,
        field_boosts: Mapping[str, float] | None = None,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        text_weight: float = DEFAULT_TEXT_WEIGHT,
        vector_weight: float = DEFAULT_VECTOR_WEIGHT,
    ) -> None:
        """Initialize an empty index.

        Args:
            dimensions: Exact length required for every vector.
            field_boosts: Per-field keyword weights. Missing fields keep
                their default weight.
            similarity_threshold: Minimum cosine similarity for a document to
                count as a vector match.
            text_weight: Weight of normalized keyword relevance in hybrid mode.
            vector_weight: Weight of cosine similarity in hybrid mode.
        """
        if dimensions <= 0:
            raise InvalidConfigurationError(
                "Index dimensions must be positive", context={"dimensions": dimensions}
            )
        if text_weight < 0 or vector_weight < 0 or text_weight + vector_weight == 0:
            raise InvalidConfigurationError(
                "Hybrid weights must be non-negative and not both zero",
                context={"text_weight": text_weight, "vector_weight": vector_weight},
            )

        boosts = dict(DEFAULT_FIELD_BOOSTS)
        for field_name, boost in (field_boosts or {}).items():
            if field_name not in DEFAULT_FIELD_BOOSTS:
                raise InvalidConfigurationError(
                    f"Unknown boost field: {field_name}",
                    context={"allowed": list(KEYWORD_FIELDS)},
                )
            if boost < 0:
                raise InvalidConfigurationError(
                    f"Boost for {field_name} must be non-negative", context={"boost": boost}
                )
            boosts[field_name] = float(boost)

        self._dimensions = dimensions
        self.field_boosts = boosts
        self.similarity_threshold = similarity_threshold
        self.text_weight = text_weight
        self.vector_weight = vector_weight

        self._lock = threading.Lock()
        self._documents: dict[str, Document] = {}
        self._view = _IndexView((), dimensions)
        self._dirty = False
        self.last_restore_error: SnapshotCorruptionError | None = None

    @property
    def dimensions(self) -> int:
        return self._dimensions

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def check_vector(self, vector: Sequence[float] | None, label: str = "vector") -> list[float]:
        """Validate a vector's length and values.

        Args:
            vector: The vector to check.
            label: Name used in error messages.

        Returns:
            The vector as a list of floats.

        Raises:
            DimensionMismatchError: If the length differs from ``dimensions``.
            ValidationError: If the vector contains NaN or infinite values.
        """
        if vector is None:
            raise DimensionMismatchError(
                f"{label} is missing", context={"expected": self._dimensions}
            )
        if len(vector) != self._dimensions:
            raise DimensionMismatchError(
                f"{label} has {len(vector)} dimensions, expected {self._dimensions}",
                context={"expected": self._dimensions, "actual": len(vector)},
            )
        values = [float(v) for v in vector]
        if not all(math.isfinite(v) for v in values):
            raise ValidationError(f"{label} contains non-finite values")
        return values

    def _validate_document(self, document: Document) -> Document:
        try:
            content_type = ContentType(document.type)
        except ValueError as e:
            raise InvalidDocumentError(
                f"Unknown content type: {document.type!r}",
                cause=e,
                context={"id": document.id},
            ) from e

        for field_name in ("name", "section", "content", "source_url"):
            if not isinstance(getattr(document, field_name), str):
                raise InvalidDocumentError(
                    f"Document field '{field_name}' must be a string",
                    context={"id": document.id},
                )
        if isinstance(document.tags, str) or not all(isinstance(t, str) for t in document.tags):
            raise InvalidDocumentError(
                "Document tags must be a sequence of strings", context={"id": document.id}
            )

        label = f"Embedding of document {document.id or document.name!r}"
        embedding = self.check_vector(document.embedding, label)

        return replace(
            document,
            id=document.id or str(uuid.uuid4()),
            type=content_type,
            tags=list(document.tags),
            embedding=embedding,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, document: Document) -> str:
        """Add a single document to the index.

        Re-inserting an existing id replaces the stored document.

        Returns:
            The document id (generated when the document had none).

        Raises:
            DimensionMismatchError: If the embedding has the wrong length.
            InvalidDocumentError: If the document fields are malformed.
        """
        validated = self._validate_document(document)
        with self._lock:
            self._documents[validated.id] = validated
            self._dirty = True
        return validated.id

    def insert_batch(self, documents: list[Document]) -> list[str]:
        """Add multiple documents with a single deferred rebuild.

        Every document is validated before any is stored, so a single bad
        document leaves the index unchanged.
        """
        validated = [self._validate_document(doc) for doc in documents]
        with self._lock:
            for doc in validated:
                self._documents[doc.id] = doc
            self._dirty = True
        logger.debug("Inserted batch of %d documents", len(validated))
        return [doc.id for doc in validated]

    def clear(self) -> None:
        """Reset the index to empty."""
        with self._lock:
            self._documents = {}
            self._view = _IndexView((), self._dimensions)
            self._dirty = False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def get(self, document_id: str) -> Document | None:
        with self._lock:
            return self._documents.get(document_id)

    def _current_view(self) -> _IndexView:
        with self._lock:
            if self._dirty:
                self._view = _IndexView(tuple(self._documents.values()), self._dimensions)
                self._dirty = False
                logger.debug("Rebuilt index view with %d documents", len(self._view.documents))
            return self._view

    def search(self, options: SearchOptions) -> list[SearchCandidate]:
        """Search the index.

        The mode is taken from ``options.mode`` when its input is present,
        otherwise inferred (hybrid > vector > keyword). A query with neither
        text nor vector returns an empty list.

        Returns:
            Candidates ordered by descending score, at most ``options.limit``.

        Raises:
            DimensionMismatchError: If the query vector has the wrong length.
        """
        mode = resolve_search_mode(options.query, options.vector, options.mode)
        if mode is None or options.limit <= 0:
            return []

        vector: list[float] | None = None
        if mode is not SearchMode.KEYWORD:
            vector = self.check_vector(options.vector, "Query vector")

        view = self._current_view()
        if not view.documents:
            return []

        eligible = view.type_mask(options.types)

        if mode is SearchMode.KEYWORD:
            scores = view.keyword_scores(tokenize(options.query or ""), self.field_boosts)
            matched = scores > 0
        elif mode is SearchMode.VECTOR:
            scores = view.similarities(vector).astype(np.float64)
            matched = scores >= self.similarity_threshold
        else:
            scores = self._hybrid_scores(view, options.query or "", vector, eligible)
            matched = scores > 0

        selected = np.flatnonzero(eligible & matched)
        ranked = selected[np.argsort(-scores[selected], kind="stable")][: options.limit]

        return [
            SearchCandidate(
                document=view.documents[i],
                score=RetrievalScore(value=float(scores[i]), mode=mode),
            )
            for i in ranked
        ]

    def _hybrid_scores(
        self,
        view: _IndexView,
        query: str,
        vector: list[float],
        eligible: np.ndarray,
    ) -> np.ndarray:
        """Weighted sum of max-normalized keyword relevance and cosine similarity.

        Both components lie in [0, 1], so a document that is strong on both
        signals outranks one that is strong on only one, and the fused score
        is never negative.
        """
        keyword = view.keyword_scores(tokenize(query), self.field_boosts)
        keyword_max = float(keyword[eligible].max()) if eligible.any() else 0.0
        if keyword_max > 0:
            keyword = keyword / keyword_max
        else:
            keyword = np.zeros_like(keyword)

        similarity = view.similarities(vector).astype(np.float64)
        similarity = np.where(
            similarity >= self.similarity_threshold, np.clip(similarity, 0.0, 1.0), 0.0
        )

        return self.text_weight * keyword + self.vector_weight * similarity

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def save_snapshot(self) -> bytes:
        """Serialize every document, including vectors, as versioned JSON."""
        with self._lock:
            documents = list(self._documents.values())

        snapshot = IndexSnapshot(
            dimensions=self._dimensions,
            created_at=datetime.now(UTC).isoformat(),
            documents=[SnapshotDocument.from_document(doc) for doc in documents],
        )
        return snapshot.model_dump_json().encode("utf-8")

    def _decode_snapshot(self, data: bytes) -> dict[str, Document]:
        try:
            snapshot = IndexSnapshot.model_validate_json(data)
        except ValueError as e:
            raise SnapshotCorruptionError(
                "Snapshot could not be decoded", cause=e, context={"bytes": len(data)}
            ) from e

        if snapshot.version != SNAPSHOT_VERSION:
            raise SnapshotCorruptionError(
                f"Unsupported snapshot version {snapshot.version}",
                context={"supported": SNAPSHOT_VERSION},
            )
        if snapshot.dimensions != self._dimensions:
            raise SnapshotCorruptionError(
                f"Snapshot has {snapshot.dimensions} dimensions, index expects {self._dimensions}",
                context={"snapshot": snapshot.dimensions, "index": self._dimensions},
            )

        documents: dict[str, Document] = {}
        for item in snapshot.documents:
            try:
                doc = self._validate_document(item.to_document())
            except ValidationError as e:
                raise SnapshotCorruptionError(
                    f"Snapshot document {item.id!r} is invalid", cause=e
                ) from e
            documents[doc.id] = doc
        return documents

    def restore_snapshot(self, data: bytes) -> bool:
        """Replace the whole index with the contents of a snapshot.

        The new view is fully built before it is swapped in. A corrupt or
        incompatible snapshot never raises: the index is left empty, the
        error is kept in ``last_restore_error`` and False is returned.

        Returns:
            True if the snapshot was restored.
        """
        try:
            documents = self._decode_snapshot(data)
        except SnapshotCorruptionError as exc:
            logger.warning("Failed to restore index snapshot, starting empty: %s", exc.message)
            self.last_restore_error = exc
            self.clear()
            return False

        view = _IndexView(tuple(documents.values()), self._dimensions)
        with self._lock:
            self._documents = documents
            self._view = view
            self._dirty = False
        self.last_restore_error = None

        logger.info("Restored index snapshot with %d documents", len(documents))
        return True

"""
Pytest configuration and shared fixtures.
"""

import re
import threading

import pytest

from nightreign.adapters.outbound.diagnostics import RecordingDiagnosticsSink
from nightreign.config.settings import Settings
from nightreign.core.domain import ContentType, Document
from nightreign.core.ports import EmbeddingPort, RelevanceScorerPort
from nightreign.core.services import (
    CrossEncoderReranker,
    InMemoryDocumentIndex,
    QueryEmbedder,
    SearchDiagnostics,
    SearchService,
)

# Small vectors keep the fixtures readable
DIM = 4


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (HTTP surface, file system)")
    config.addinivalue_line("markers", "slow: Slow tests (real models)")


def make_document(
    name: str,
    content: str = "",
    type: ContentType | str = ContentType.GUIDE,
    section: str = "overview",
    tags: list[str] | None = None,
    embedding: list[float] | None = None,
    id: str | None = None,
    source_url: str = "",
) -> Document:
    return Document(
        id=id,
        type=type,
        name=name,
        section=section,
        content=content,
        tags=tags or [],
        source_url=source_url,
        embedding=embedding if embedding is not None else [1.0, 0.0, 0.0, 0.0],
    )


class KeywordOverlapScorer(RelevanceScorerPort):
    """Scores a pair by how many query words appear in the passage.

    Returns ``2 * overlap - 1`` so non-matching passages get a negative logit.
    """

    def __init__(self):
        self.calls = 0
        self._lock = threading.Lock()

    def score(self, query: str, passage: str) -> float:
        with self._lock:
            self.calls += 1
        words = set(re.findall(r"\w+", passage.lower()))
        overlap = sum(1 for word in re.findall(r"\w+", query.lower()) if word in words)
        return 2.0 * overlap - 1.0


class FailingScorer(RelevanceScorerPort):
    def __init__(self):
        self.calls = 0

    def score(self, query: str, passage: str) -> float:
        self.calls += 1
        raise RuntimeError("cross-encoder exploded")


class HashEmbeddings(EmbeddingPort):
    """Deterministic embeddings derived from the text's characters."""

    def __init__(self, dimensions: int = DIM, fail: bool = False):
        self.dimensions = dimensions
        self.fail = fail
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def embed_query(self, text: str) -> list[float]:
        with self._lock:
            self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding model unavailable")
        values = [0.0] * self.dimensions
        for i, char in enumerate(text.lower()):
            values[i % self.dimensions] += (ord(char) % 17) + 1
        return values

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(text) for text in texts]


@pytest.fixture
def index():
    """Empty index with 4-dimensional vectors."""
    return InMemoryDocumentIndex(dimensions=DIM)


@pytest.fixture
def wylder_index(index):
    """Index holding the three-document Wylder corpus."""
    index.insert_batch(
        [
            make_document(
                "Wylder",
                "a grappling, melee-focused class",
                type=ContentType.NIGHTFARER,
                id="wylder",
                embedding=[1.0, 0.0, 0.0, 0.0],
            ),
            make_document(
                "Best Build Guide",
                "skill rotations",
                type=ContentType.GUIDE,
                id="build-guide",
                embedding=[0.0, 1.0, 0.0, 0.0],
            ),
            make_document(
                "Frost Relic",
                "adds frostbite buildup",
                type=ContentType.RELIC,
                id="frost-relic",
                embedding=[0.0, 0.0, 1.0, 0.0],
            ),
        ]
    )
    return index


@pytest.fixture
def recording_sink():
    return RecordingDiagnosticsSink()


@pytest.fixture
def diagnostics(recording_sink):
    """Diagnostics facade with debugging enabled, recording to memory."""
    return SearchDiagnostics(recording_sink, enabled=True)


@pytest.fixture
def scorer():
    return KeywordOverlapScorer()


@pytest.fixture
def reranker(scorer):
    return CrossEncoderReranker(scorer)


@pytest.fixture
def embeddings():
    return HashEmbeddings()


@pytest.fixture
def search_service(index, reranker, diagnostics):
    """Search service without a query embedder (text-only queries stay keyword)."""
    service = SearchService(index, reranker=reranker, diagnostics=diagnostics)
    yield service
    service.close()


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing at a temporary data directory with small vectors."""
    return Settings(
        data_dir=tmp_path,
        embedding_dimensions=DIM,
        search_debug=True,
        _env_file=None,
    )


@pytest.fixture
def query_embedder(embeddings):
    return QueryEmbedder(embeddings, dimensions=DIM)

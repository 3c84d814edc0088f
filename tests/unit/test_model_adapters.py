"""Unit tests for the sentence-transformers adapters, with the library mocked."""

import math
import sys
import types
from unittest.mock import patch

import numpy as np
import pytest

from nightreign.adapters.outbound.embeddings import SentenceTransformerEmbeddings
from nightreign.adapters.outbound.relevance import CrossEncoderScorer
from nightreign.core.domain.exceptions import EmbeddingError, RerankerError

pytestmark = pytest.mark.unit


class FakeSentenceTransformer:
    loads = 0

    def __init__(self, model_name):
        type(self).loads += 1
        self.model_name = model_name
        self.encode_kwargs = None

    def encode(self, texts, **kwargs):
        self.encode_kwargs = kwargs
        if isinstance(texts, str):
            return np.array([0.6, 0.8, 0.0], dtype=np.float32)
        return np.array([[0.6, 0.8, 0.0] for _ in texts], dtype=np.float32)

    def get_sentence_embedding_dimension(self):
        return 3


class FakeCrossEncoder:
    def __init__(self, model_name):
        self.model_name = model_name

    def predict(self, pairs, show_progress_bar=False):
        query, passage = pairs[0]
        return np.array([0.9 if query in passage else 0.1])


@pytest.fixture
def fake_sentence_transformers():
    module = types.ModuleType("sentence_transformers")
    module.SentenceTransformer = FakeSentenceTransformer
    module.CrossEncoder = FakeCrossEncoder
    FakeSentenceTransformer.loads = 0
    with patch.dict(sys.modules, {"sentence_transformers": module}):
        yield module


class TestSentenceTransformerEmbeddings:
    def test_embed_query_returns_normalized_list(self, fake_sentence_transformers):
        provider = SentenceTransformerEmbeddings("test-model")

        vector = provider.embed_query("Wylder")

        assert vector == pytest.approx([0.6, 0.8, 0.0])
        assert provider._model.encode_kwargs["normalize_embeddings"] is True

    def test_model_loaded_once(self, fake_sentence_transformers):
        provider = SentenceTransformerEmbeddings("test-model")

        provider.embed_query("a")
        provider.embed_documents(["b", "c"])

        assert FakeSentenceTransformer.loads == 1

    def test_embed_documents(self, fake_sentence_transformers):
        provider = SentenceTransformerEmbeddings(batch_size=2)

        assert len(provider.embed_documents(["a", "b", "c"])) == 3
        assert provider._model.encode_kwargs["batch_size"] == 2
        assert provider.embed_documents([]) == []

    def test_default_model_and_dimension(self, fake_sentence_transformers):
        provider = SentenceTransformerEmbeddings()

        assert provider.get_dimension() == 3
        assert provider._model.model_name == "BAAI/bge-small-en-v1.5"

    def test_missing_library_raises_embedding_error(self):
        with patch.dict(sys.modules, {"sentence_transformers": None}):
            with pytest.raises(EmbeddingError):
                SentenceTransformerEmbeddings().embed_query("Wylder")


class TestCrossEncoderScorer:
    def test_score_returns_logit(self, fake_sentence_transformers):
        scorer = CrossEncoderScorer("test-reranker")

        relevant = scorer.score("fire", "deals fire damage")
        irrelevant = scorer.score("fire", "casts healing spells")

        assert relevant == pytest.approx(math.log(0.9 / 0.1))
        assert irrelevant == pytest.approx(-relevant)

    def test_saturated_probability_stays_finite(self, fake_sentence_transformers, monkeypatch):
        monkeypatch.setattr(
            FakeCrossEncoder, "predict", lambda self, pairs, show_progress_bar=False: np.array([1.0])
        )
        scorer = CrossEncoderScorer()

        assert math.isfinite(scorer.score("q", "p"))

    def test_is_available(self, fake_sentence_transformers):
        assert CrossEncoderScorer().is_available() is True

    def test_unavailable_without_library(self):
        with patch.dict(sys.modules, {"sentence_transformers": None}):
            scorer = CrossEncoderScorer()

            assert scorer.is_available() is False
            with pytest.raises(RerankerError):
                scorer.score("q", "p")

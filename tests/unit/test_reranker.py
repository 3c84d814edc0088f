"""Unit tests for CrossEncoderReranker."""

import math
import threading

import pytest

from nightreign.core.domain import RerankItem
from nightreign.core.domain.exceptions import InvalidConfigurationError, RerankerError
from nightreign.core.ports import RelevanceScorerPort
from nightreign.core.services import CrossEncoderReranker, sigmoid
from tests.conftest import FailingScorer

pytestmark = pytest.mark.unit


class FixedScorer(RelevanceScorerPort):
    """Returns a preset logit per passage."""

    def __init__(self, logits: dict[str, float]):
        self.logits = logits

    def score(self, query: str, passage: str) -> float:
        return self.logits[passage]


class BarrierScorer(RelevanceScorerPort):
    """Blocks until ``parties`` calls are in flight at once."""

    def __init__(self, parties: int):
        self.barrier = threading.Barrier(parties, timeout=5)
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def score(self, query: str, passage: str) -> float:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.barrier.wait()
        finally:
            with self._lock:
                self.in_flight -= 1
        return float(len(passage))


@pytest.fixture
def items():
    return [
        RerankItem(id=f"doc-{i}", text=f"passage {i}", original_score=1.0 / (i + 1))
        for i in range(5)
    ]


@pytest.fixture
def fixed_reranker():
    logits = {f"passage {i}": value for i, value in enumerate([-2.0, 3.5, 0.0, 8.0, -0.5])}
    return CrossEncoderReranker(FixedScorer(logits))


class TestRerank:
    """Tests for ordering, normalization and truncation."""

    def test_output_sorted_descending_in_open_unit_interval(self, fixed_reranker, items):
        results = fixed_reranker.rerank("query", items)

        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 < s < 1.0 for s in scores)
        assert {r.id for r in results} <= {item.id for item in items}

    def test_order_follows_raw_logits(self, fixed_reranker, items):
        results = fixed_reranker.rerank("query", items)

        assert [r.id for r in results] == ["doc-3", "doc-1", "doc-2", "doc-4", "doc-0"]
        assert results[0].raw_score == 8.0

    def test_scores_are_sigmoid_of_logits(self, fixed_reranker, items):
        results = fixed_reranker.rerank("query", items)

        for result in results:
            assert result.score == pytest.approx(1 / (1 + math.exp(-result.raw_score)))

    def test_original_scores_preserved(self, fixed_reranker, items):
        results = fixed_reranker.rerank("query", items)

        by_id = {item.id: item.original_score for item in items}
        assert all(r.original_score == by_id[r.id] for r in results)

    @pytest.mark.parametrize("top_k", [0, 1, 3, 5])
    def test_top_k_within_input_size_returns_exactly_top_k(self, fixed_reranker, items, top_k):
        assert len(fixed_reranker.rerank("query", items, top_k=top_k)) == top_k

    @pytest.mark.parametrize("top_k", [6, 100, None])
    def test_top_k_beyond_input_size_returns_all(self, fixed_reranker, items, top_k):
        assert len(fixed_reranker.rerank("query", items, top_k=top_k)) == len(items)

    def test_extreme_logits_never_reach_zero_or_one(self):
        items = [RerankItem(id="a", text="loud"), RerankItem(id="b", text="quiet")]
        reranker = CrossEncoderReranker(FixedScorer({"loud": 40.0, "quiet": -800.0}))

        results = reranker.rerank("query", items)

        assert [r.id for r in results] == ["a", "b"]
        assert all(0.0 < r.score < 1.0 for r in results)
        assert results[0].raw_score == 40.0

    def test_empty_items_skips_model(self):
        scorer = FailingScorer()
        reranker = CrossEncoderReranker(scorer)

        assert reranker.rerank("query", []) == []
        assert scorer.calls == 0

    def test_fire_damage_item_ranked_first(self, reranker, scorer):
        items = [
            RerankItem(id="healing", text="Staff (overview): casts healing spells"),
            RerankItem(id="fire", text="Greatsword (overview): deals heavy fire damage"),
        ]

        results = reranker.rerank("fire damage weapon", items)

        assert [r.id for r in results] == ["fire", "healing"]
        assert results[0].score > results[1].score


class TestBatching:
    """Tests for batched, concurrent scoring."""

    def test_pairs_in_a_batch_are_scored_concurrently(self):
        scorer = BarrierScorer(parties=8)
        reranker = CrossEncoderReranker(scorer, batch_size=8)
        items = [RerankItem(id=str(i), text="x" * i) for i in range(16)]

        results = reranker.rerank("query", items)

        assert len(results) == 16
        assert scorer.max_in_flight == 8

    def test_concurrency_bounded_by_batch_size(self, scorer):
        reranker = CrossEncoderReranker(scorer, batch_size=3)
        items = [RerankItem(id=str(i), text=f"text {i}") for i in range(10)]

        reranker.rerank("text", items)

        assert scorer.calls == 10

    def test_invalid_batch_size_rejected(self, scorer):
        with pytest.raises(InvalidConfigurationError):
            CrossEncoderReranker(scorer, batch_size=0)


class TestFailures:
    """Scorer failures surface as RerankerError, never as partial scores."""

    def test_scorer_exception_raises_reranker_error(self, items):
        reranker = CrossEncoderReranker(FailingScorer())

        with pytest.raises(RerankerError) as exc_info:
            reranker.rerank("query", items)

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.error_code == "NR_DEP_003"

    def test_non_finite_score_raises_reranker_error(self, items):
        logits = {item.text: 1.0 for item in items}
        logits["passage 2"] = float("nan")
        reranker = CrossEncoderReranker(FixedScorer(logits))

        with pytest.raises(RerankerError):
            reranker.rerank("query", items)

    def test_is_available_false_when_scorer_raises(self):
        class BrokenScorer(FailingScorer):
            def is_available(self) -> bool:
                raise OSError("model files missing")

        assert CrossEncoderReranker(BrokenScorer()).is_available() is False


class TestSigmoid:
    def test_midpoint(self):
        assert sigmoid(0.0) == 0.5

    def test_symmetric(self):
        assert sigmoid(2.0) == pytest.approx(1 - sigmoid(-2.0))

    @pytest.mark.parametrize("logit", [40.0, -40.0, 800.0, -800.0, 1000.0, -1000.0])
    def test_extreme_logits_stay_in_open_unit_interval(self, logit):
        assert 0.0 < sigmoid(logit) < 1.0

    def test_monotonic_at_the_extremes(self):
        assert sigmoid(-1000.0) < sigmoid(-40.0) < sigmoid(40.0) <= sigmoid(1000.0)

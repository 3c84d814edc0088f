"""Integration tests for FastAPI endpoints."""

import pytest
from fastapi.testclient import TestClient

from nightreign import __version__
from nightreign.adapters.inbound.api.main import create_app
from nightreign.adapters.outbound.diagnostics import RecordingDiagnosticsSink
from nightreign.composition import build_container
from nightreign.core.domain import ContentType
from nightreign.core.services import ZeroResultsDetected
from tests.conftest import HashEmbeddings, KeywordOverlapScorer, make_document

pytestmark = pytest.mark.integration


@pytest.fixture
def sink():
    return RecordingDiagnosticsSink()


def build_test_container(settings, sink):
    """Container with fake models and a small persisted index."""
    container = build_container(
        settings,
        embedding_provider=HashEmbeddings(),
        relevance_scorer=KeywordOverlapScorer(),
        diagnostics_sink=sink,
    )
    container.index.insert_batch(
        [
            make_document(
                "Gladius, Beast of Night",
                "weak to holy damage; dodge the triple-head charge",
                type=ContentType.BOSS,
                section="strategy",
                id="gladius-strategy",
                source_url="https://example.com/gladius",
            ),
            make_document(
                "Wylder",
                "a grappling, melee-focused class",
                type=ContentType.NIGHTFARER,
                id="wylder",
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
    container.store.save()
    container.index.clear()
    return container


@pytest.fixture
def container(test_settings, sink):
    return build_test_container(test_settings, sink)


@pytest.fixture
def client(container):
    """Test client whose startup restores the saved snapshot."""
    with TestClient(create_app(container=container)) as test_client:
        yield test_client


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client):
        """Test basic health check returns 200."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__

    def test_ready_reports_loaded_index(self, client):
        """Startup should restore the snapshot written before the app started."""
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json()["index"] == "loaded"
        assert response.json()["documentCount"] == 3


class TestSearchEndpoint:
    """Tests for the search endpoint."""

    def test_keyword_search_is_reranked(self, client):
        response = client.post(
            "/api/v1/search", json={"query": "gladius weakness holy", "limit": 5}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["count"] >= 1
        top = data["results"][0]
        assert top["id"] == "gladius-strategy"
        assert top["sourceUrl"] == "https://example.com/gladius"
        assert top["reranked"] is True
        assert 0 < top["score"] < 1
        assert data["requestId"]

    def test_response_headers(self, client):
        response = client.post("/api/v1/search", json={"query": "Wylder"})

        assert response.headers["X-Search-Mode"] == response.json()["mode"]
        assert float(response.headers["X-Total-Time"]) >= 0
        assert response.headers["X-Request-Id"] == response.json()["requestId"]

    def test_query_embedded_for_hybrid_search(self, client):
        response = client.post("/api/v1/search", json={"query": "Wylder", "rerank": False})

        data = response.json()
        assert data["mode"] == "hybrid"
        assert data["timing"]["embedding"] is not None
        assert data["timing"]["rerank"] is None

    def test_vector_search(self, client):
        response = client.post(
            "/api/v1/search", json={"vector": [0.0, 0.0, 1.0, 0.0], "limit": 1}
        )

        data = response.json()
        assert data["mode"] == "vector"
        assert [r["id"] for r in data["results"]] == ["frost-relic"]

    def test_type_filter(self, client):
        response = client.post(
            "/api/v1/search", json={"query": "Wylder", "types": ["relic"], "rerank": False}
        )

        assert all(r["type"] == "relic" for r in response.json()["results"])

    def test_empty_query_returns_empty_results(self, client):
        response = client.post("/api/v1/search", json={"query": "   "})

        assert response.status_code == 200
        assert response.json()["results"] == []
        assert response.headers["X-Search-Mode"] == "none"

    def test_zero_results_recorded(self, client, sink):
        client.post("/api/v1/search", json={"vector": [0.0, 0.0, 0.0, 1.0]})

        assert len(sink.of_type(ZeroResultsDetected)) == 1


class TestErrorResponses:
    """Tests for validation and structured error bodies."""

    def test_query_too_long_returns_400(self, client):
        response = client.post("/api/v1/search", json={"query": "a" * 501})

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "NR_VAL_004"
        assert data["context"] == {"length": 501, "max_length": 500}

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_out_of_range_returns_400(self, client, limit):
        response = client.post("/api/v1/search", json={"query": "Wylder", "limit": limit})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NR_VAL_001"

    def test_unknown_type_returns_400(self, client):
        response = client.post("/api/v1/search", json={"query": "Wylder", "types": ["dragon"]})

        assert response.status_code == 400

    def test_wrong_vector_dimension_returns_structured_error(self, client):
        response = client.post("/api/v1/search", json={"vector": [1.0, 0.0]})

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["type"] == "DimensionMismatchError"
        assert data["error"]["code"] == "NR_VAL_002"
        assert data["context"] == {"expected": 4, "actual": 2}


class TestConfiguredLimits:
    """Search limits come from settings, not from the request schema."""

    @pytest.fixture
    def limited_client(self, test_settings, sink):
        settings = test_settings.model_copy(
            update={"default_limit": 1, "max_limit": 2, "max_query_length": 20}
        )
        with TestClient(create_app(container=build_test_container(settings, sink))) as client:
            yield client

    def test_omitted_limit_uses_configured_default(self, limited_client):
        response = limited_client.post("/api/v1/search", json={"query": "gladius wylder frost"})

        assert response.status_code == 200
        assert len(response.json()["results"]) == 1

    def test_limit_up_to_configured_max_accepted(self, limited_client):
        response = limited_client.post(
            "/api/v1/search", json={"query": "gladius wylder frost", "limit": 2}
        )

        assert response.status_code == 200
        assert len(response.json()["results"]) == 2

    def test_limit_above_configured_max_rejected(self, limited_client):
        response = limited_client.post(
            "/api/v1/search", json={"query": "gladius wylder frost", "limit": 3}
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "NR_VAL_001"
        assert data["context"] == {"limit": 3, "max_limit": 2}

    def test_query_above_configured_length_rejected(self, limited_client):
        response = limited_client.post("/api/v1/search", json={"query": "gladius wylder frosts"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NR_VAL_004"


class TestWarmupEndpoints:
    """Tests for embedding cache warmup."""

    def test_cache_stats_before_warmup(self, client):
        response = client.get("/api/v1/warmup")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["cache"] == {"size": 0, "maxSize": 100, "utilization": "0%"}

    def test_warmup_fills_cache(self, client):
        response = client.post("/api/v1/warmup")

        assert response.status_code == 200
        assert response.headers["Cache-Control"] == "no-store"
        data = response.json()
        assert data["status"] == "success"
        assert data["details"]["queriesWarmed"] > 0
        assert data["details"]["queriesFailed"] == 0
        assert data["details"]["cacheSize"] == data["details"]["queriesWarmed"]
        assert data["details"]["cacheMaxSize"] == 100
        assert data["message"].startswith("Pre-warmed")

        stats = client.get("/api/v1/warmup").json()
        assert stats["cache"]["size"] == data["details"]["cacheSize"]
        assert stats["cache"]["utilization"] == f"{stats['cache']['size']}%"

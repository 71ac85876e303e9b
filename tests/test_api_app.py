"""Tests for the FastAPI application."""

from __future__ import annotations

from fastapi.testclient import TestClient

from admissions_rag.api.app import create_app
from admissions_rag.config import Settings
from admissions_rag.embeddings import HashEmbeddingProvider
from admissions_rag.services.query import QueryOrchestrator
from admissions_rag.services.responder import ResponseGenerator
from conftest import DEPARTMENTS, run


def _orchestrator(settings: Settings) -> QueryOrchestrator:
    return QueryOrchestrator(
        settings,
        embedding_loader=HashEmbeddingProvider,
        generator=ResponseGenerator(enable_llm=False),
    )


def create_test_client(*, preload: bool = True, load_knowledge_base: bool = False) -> TestClient:
    settings = Settings(environment="test")
    orchestrator = _orchestrator(settings)
    if preload:
        run(orchestrator.initialize())
        run(orchestrator.load_knowledge_base(DEPARTMENTS))
    app = create_app(settings=settings, orchestrator=orchestrator, load_knowledge_base=load_knowledge_base)
    return TestClient(app)


def test_chat_returns_answer_with_results() -> None:
    with create_test_client() as client:
        response = client.post(
            "/chat",
            json={"message": "What are the tuition fees for Pharmacy?", "session_id": "s1"},
            headers={"X-Request-ID": "req-123"},
        )
    assert response.status_code == 200, response.text
    assert response.headers["X-Correlation-ID"] == "req-123"
    payload = response.json()
    assert payload["session_id"] == "s1"
    assert payload["performance"]["generation_method"] == "template"
    assert payload["results"]
    assert payload["results"][0]["type"] in {"department", "admission", "fee"}
    assert payload["error"] is None


def test_chat_rejects_empty_and_unknown_search_type() -> None:
    with create_test_client() as client:
        assert client.post("/chat", json={"message": ""}).status_code == 422
        response = client.post("/chat", json={"message": "fees", "search_type": "fuzzy"})
        assert response.status_code == 422


def test_chat_keyword_search_in_arabic() -> None:
    with create_test_client() as client:
        response = client.post(
            "/chat",
            json={"message": "Nursing fees", "search_type": "keyword", "language": "ar"},
        )
    payload = response.json()
    assert payload["performance"]["search_type"] == "keyword"
    assert payload["response"].startswith("إليك الرسوم الدراسية:")


def test_clear_memory_and_stats() -> None:
    with create_test_client() as client:
        client.post("/chat", json={"message": "Law admission", "session_id": "abc"})
        cleared = client.delete("/sessions/abc/memory")
        assert cleared.json() == {"session_id": "abc", "cleared": True}
        again = client.delete("/sessions/abc/memory")
        assert again.json()["cleared"] is False

        stats = client.get("/stats").json()
    assert stats["total_queries"] == 1
    assert stats["documents_count"] == 11
    assert stats["session_count"] == 0
    assert stats["features"]["enable_llm"] is False


def test_health_and_metrics_endpoints() -> None:
    with create_test_client() as client:
        health = client.get("/healthz")
        assert health.status_code == 200
        assert health.json()["status"] == "ok"
        assert client.get("/livez").json() == {"status": "alive"}
        client.post("/chat", json={"message": "Dentistry fees"})
        metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "admissions_rag_query_duration_seconds_count" in metrics.text


def test_startup_loads_knowledge_base_file() -> None:
    with create_test_client(preload=False, load_knowledge_base=True) as client:
        assert client.get("/healthz").status_code == 200
        assert client.get("/stats").json()["documents_count"] > 11


def test_not_ready_service_reports_503_and_apologizes() -> None:
    with create_test_client(preload=False) as client:
        health = client.get("/healthz")
        assert health.status_code == 503
        assert health.json()["status"] == "not_ready"
        chat = client.post("/chat", json={"message": "Dentistry fees"})
    assert chat.status_code == 200
    assert chat.json()["performance"]["error"] is True
    assert chat.json()["error"] == "Knowledge base not loaded."

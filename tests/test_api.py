"""Tests for the HTTP API and tool endpoints."""

import time
import uuid

import pytest
from fastapi.testclient import TestClient
from libs.common.config import ConfigurationError, EmbeddingConfig
from embedding_service.exceptions import TransientProviderError
from embedding_service.main import create_app
from embedding_service.runtime.metrics import MetricsCollector

from tests.fakes import build_manager, fake_clients, make_chunks, make_provider, make_registry


def _chunk_payload(chunks):
    return [chunk.model_dump(mode="json") for chunk in chunks]


@pytest.fixture
def registry():
    return make_registry(
        [make_provider("primary", priority=1), make_provider("backup", priority=2)],
        retry_attempts=1
    )


@pytest.fixture
def clients(registry):
    return fake_clients(registry, backup={"vector": [0.4, 0.5, 0.6]})


@pytest.fixture
def client(registry, clients):
    metrics = MetricsCollector("test-api")
    manager = build_manager(registry, clients, metrics=metrics)
    app = create_app(
        config=EmbeddingConfig(ml_log_format="console"),
        embedding_manager=manager,
        metrics_collector=metrics
    )
    with TestClient(app) as test_client:
        yield test_client


def _wait_for_stage(client, document_id, stage, timeout=3.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        body = client.get(f"/api/embeddings/status/{document_id}").json()
        if body["stage"] == stage:
            return body
        time.sleep(0.02)
    pytest.fail(f"status never reached {stage!r}")


def test_generate_embeddings(client):
    """Test chunks are embedded in order."""
    chunks = make_chunks(3)
    response = client.post("/api/embeddings/generate", json=_chunk_payload(chunks))

    assert response.status_code == 200
    body = response.json()
    assert [item["chunk_id"] for item in body] == [str(c.id) for c in chunks]
    assert body[0]["vector"] == [0.1, 0.2, 0.3]
    assert body[0]["model"] == "text-embedding-3-small"


def test_generate_embeddings_rejects_empty_list(client):
    """Test an empty chunk list is a bad request."""
    response = client.post("/api/embeddings/generate", json=[])
    assert response.status_code == 400


def test_generate_embeddings_validates_chunks(client):
    """Test malformed chunks are rejected by validation."""
    response = client.post("/api/embeddings/generate", json=[{"content": "no ids"}])
    assert response.status_code == 422


def test_generate_single(client):
    """Test a single text embedding has no owning chunk."""
    response = client.post("/api/embeddings/generate-single", json="limitation of liability")

    assert response.status_code == 200
    body = response.json()
    assert body["chunk_id"] is None
    assert body["vector"] == [0.1, 0.2, 0.3]


def test_generate_single_rejects_blank_text(client):
    """Test blank text is a bad request."""
    response = client.post("/api/embeddings/generate-single", json="   ")
    assert response.status_code == 400


def test_generate_single_fails_over(client, clients):
    """Test the backup provider answers when the primary rejects the request."""
    clients["primary"].fail_with = TransientProviderError("primary", "down")

    response = client.post("/api/embeddings/generate-single", json="assignment")
    assert response.status_code == 200
    assert response.json()["vector"] == [0.4, 0.5, 0.6]


def test_generate_single_reports_exhaustion(client, clients):
    """Test every provider failing maps to service unavailable."""
    for fake in clients.values():
        fake.fail_with = TransientProviderError(fake.name, "down")

    response = client.post("/api/embeddings/generate-single", json="warranty")
    assert response.status_code == 503
    assert "All providers failed" in response.json()["detail"]


def test_batch_process_runs_in_background(client):
    """Test the batch endpoint acknowledges with 202 and the job completes."""
    document_id = uuid.uuid4()
    chunks = make_chunks(5, document_id)

    response = client.post(f"/api/embeddings/batch-process/{document_id}", json=_chunk_payload(chunks))

    assert response.status_code == 202
    assert response.json() == {"message": "Batch processing started", "document_id": str(document_id)}

    status = _wait_for_stage(client, document_id, "Embedding generation complete")
    assert status["progress"] == 1.0


def test_batch_process_rejects_empty_list(client):
    """Test an empty batch is a bad request."""
    response = client.post(f"/api/embeddings/batch-process/{uuid.uuid4()}", json=[])
    assert response.status_code == 400


def test_batch_process_reports_enqueue_failure(registry, clients):
    """Test a stopped job pool answers 500."""
    manager = build_manager(registry, clients)
    app = create_app(config=EmbeddingConfig(), embedding_manager=manager, metrics_collector=MetricsCollector("t"))

    with TestClient(app) as test_client:
        test_client.portal.call(manager.job_queue.stop)
        response = test_client.post(
            f"/api/embeddings/batch-process/{uuid.uuid4()}",
            json=_chunk_payload(make_chunks(1))
        )
    assert response.status_code == 500


def test_cancel_unknown_batch(client):
    """Test cancelling with no active job is not found."""
    response = client.post(f"/api/embeddings/batch-process/{uuid.uuid4()}/cancel")
    assert response.status_code == 404


def test_malformed_document_id(client):
    """Test non-UUID ids fail validation."""
    assert client.get("/api/embeddings/status/not-a-uuid").status_code == 422
    assert client.post("/api/embeddings/batch-process/not-a-uuid", json=[]).status_code == 422


def test_status_for_unknown_document(client):
    """Test the default status for an unseen document."""
    document_id = uuid.uuid4()
    body = client.get(f"/api/embeddings/status/{document_id}").json()

    assert body["document_id"] == str(document_id)
    assert body["stage"] == "Not started"
    assert body["progress"] == 0.0


def test_embeddings_health(client):
    """Test the embeddings health endpoint."""
    body = client.get("/api/embeddings/health").json()
    assert body["service"] == "EmbeddingService"
    assert body["status"] == "Healthy"
    assert "timestamp" in body


def test_liveness_readiness_and_metrics(client):
    """Test liveness, readiness, metrics and root endpoints."""
    assert client.get("/live").json()["status"] == "alive"

    ready = client.get("/ready")
    assert ready.status_code == 200
    assert [p["name"] for p in ready.json()["providers"]] == ["primary", "backup"]

    client.get("/api/embeddings/health")
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "http_requests_total" in metrics.text

    assert client.get("/").json()["service"] == "embedding-service"
    assert "X-Process-Time" in client.get("/").headers


def test_startup_fails_without_providers(monkeypatch):
    """Test a missing provider configuration aborts startup."""
    monkeypatch.delenv("ML_LLM_PROVIDERS", raising=False)
    monkeypatch.delenv("ML_LLM_PROVIDERS_FILE", raising=False)
    app = create_app(
        config=EmbeddingConfig(ml_llm_providers=None, ml_llm_providers_file=None),
        metrics_collector=MetricsCollector("t")
    )

    with pytest.raises(ConfigurationError):
        with TestClient(app):
            pass


def test_tool_generate_embeddings(client):
    """Test the chunk tool returns embeddings in a success envelope."""
    chunks = make_chunks(2)
    response = client.post("/api/tools/generate_embeddings", json={"chunks": _chunk_payload(chunks)})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["count"] == 2
    assert "error" not in body


def test_tool_generate_embedding(client):
    """Test the single text tool."""
    body = client.post("/api/tools/generate_embedding", json={"text": "severability"}).json()
    assert body["success"] is True
    assert body["data"]["embedding"]["vector"] == [0.1, 0.2, 0.3]


def test_tool_errors_use_envelopes(client, clients):
    """Test tool failures answer 200 with an error envelope."""
    missing = client.post("/api/tools/generate_embedding", json={"text": ""})
    assert missing.status_code == 200
    assert missing.json() == {"success": False, "error": "Text content is required"}

    bad_id = client.post("/api/tools/get_embedding_status", json={"document_id": "nope"}).json()
    assert bad_id == {"success": False, "error": "Invalid document ID format"}

    no_chunks = client.post("/api/tools/generate_embeddings", json={"chunks": []}).json()
    assert no_chunks == {"success": False, "error": "No chunks provided"}

    unknown = client.post("/api/tools/summarize", json={}).json()
    assert unknown["success"] is False

    for fake in clients.values():
        fake.fail_with = TransientProviderError(fake.name, "down")
    exhausted = client.post("/api/tools/generate_embedding", json={"text": "waiver"}).json()
    assert exhausted["success"] is False
    assert "All providers failed" in exhausted["error"]


def test_tool_status(client):
    """Test the status tool wraps the processing status."""
    document_id = uuid.uuid4()
    body = client.post("/api/tools/get_embedding_status", json={"document_id": str(document_id)}).json()
    assert body["success"] is True
    assert body["data"]["status"]["stage"] == "Not started"


def test_list_tools(client):
    """Test the tool catalogue."""
    names = [tool["name"] for tool in client.get("/api/tools").json()]
    assert names == ["generate_embeddings", "generate_embedding", "get_embedding_status"]


def test_http_metrics_use_route_templates(registry, clients):
    """Test requests for different documents share one labelled series."""
    metrics = MetricsCollector("test-api-routes")
    manager = build_manager(registry, clients, metrics=metrics)
    app = create_app(config=EmbeddingConfig(), embedding_manager=manager, metrics_collector=metrics)

    with TestClient(app) as test_client:
        for _ in range(20):
            assert test_client.get(f"/api/embeddings/status/{uuid.uuid4()}").status_code == 200
        test_client.get("/no/such/path")
        exposition = test_client.get("/metrics").text

    template = "/api/embeddings/status/{document_id}"
    assert metrics.registry.get_sample_value(
        "http_requests_total", {"method": "GET", "endpoint": template, "status": "200"}
    ) == 20
    status_series = [
        line for line in exposition.splitlines()
        if line.startswith("http_requests_total{") and "/api/embeddings/status" in line
    ]
    assert len(status_series) == 1
    assert metrics.registry.get_sample_value(
        "http_requests_total", {"method": "GET", "endpoint": "unmatched", "status": "404"}
    ) == 1

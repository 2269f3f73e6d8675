import importlib

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from api.upstream_health import UpstreamStatus


def _import_app():
    # Import lazily so environment variables (if any) can be set before import.
    mod = importlib.import_module("api.main")
    return mod


def test_metrics_endpoint_exposes_prometheus_text() -> None:
    mod = _import_app()
    client = TestClient(mod.app)

    r = client.get("/metrics")
    assert r.status_code == 200
    # Prometheus text exposition format content-type
    assert "text/plain" in r.headers.get("content-type", "")
    body = r.text
    assert "todo_requests_total" in body
    assert "todo_request_latency_seconds" in body
    assert "todo_active_sessions" in body


def test_enhance_increments_request_counter() -> None:
    mod = _import_app()
    from api import dependencies
    from llm.llm_client import LLMClient
    from llm.providers.mock_provider import MockProvider

    mod.app.dependency_overrides[dependencies.get_llm_client] = lambda: LLMClient(provider=MockProvider())
    client = TestClient(mod.app)
    labels = {"relay": "enhance", "outcome": "ok"}
    before = REGISTRY.get_sample_value("todo_llm_requests_total", labels) or 0.0

    try:
        r = client.post("/enhance", json={"title": "Buy milk"})
        assert r.status_code == 200
        assert "enhanced_description" in r.json()

        m = client.get("/metrics")
    finally:
        mod.app.dependency_overrides.clear()

    lines = m.text.splitlines()
    found = any(
        line.startswith('todo_requests_total{endpoint="/enhance",status="200"}')
        for line in lines
    )
    assert found, "Expected todo_requests_total sample line for /enhance"
    assert REGISTRY.get_sample_value("todo_llm_requests_total", labels) == before + 1


def test_health_degrades_when_backend_unreachable(monkeypatch) -> None:
    mod = _import_app()
    from api.routers import ops

    def fake_probe(name, url, timeout_s=1.0):
        return UpstreamStatus(name=name, reachable=name != "backend", status_code=None, checked_at_unix_s=0.0)

    monkeypatch.setattr(ops, "HEALTH_CHECK_UPSTREAMS", True)
    monkeypatch.setattr(ops, "probe_upstream", fake_probe)
    client = TestClient(mod.app)

    body = client.get("/health").json()
    assert body["status"] == "degraded"
    assert body["upstreams"]["backend"]["reachable"] is False
    assert body["upstreams"]["llm"]["reachable"] is True


def test_health_ignores_unreachable_model(monkeypatch) -> None:
    mod = _import_app()
    from api.routers import ops

    def fake_probe(name, url, timeout_s=1.0):
        return UpstreamStatus(name=name, reachable=name != "llm", status_code=200, checked_at_unix_s=0.0)

    monkeypatch.setattr(ops, "probe_upstream", fake_probe)
    monkeypatch.setattr(ops, "HEALTH_CHECK_UPSTREAMS", True)

    body = TestClient(mod.app).get("/health").json()
    assert body["status"] == "healthy"

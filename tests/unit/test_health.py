"""
Tests for health check endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from rescue_timeline.dependencies import ServiceContainer, get_services
from rescue_timeline.main import app


class FakeSupabase:
    def __init__(self, result):
        self.result = result

    async def health_check(self):
        return self.result

    async def close(self):
        return None


@pytest.fixture
def client_for():
    def _client(services: ServiceContainer) -> TestClient:
        app.dependency_overrides[get_services] = lambda: services
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = TestClient(app).get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "rescue-timeline"}


def test_readyz_in_mock_mode(client_for):
    """Unconfigured backends are reported as mock / in-memory, not as failures."""
    response = client_for(ServiceContainer(None)).get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    assert data["checks"]["supabase"] == {"ok": True, "mode": "mock"}
    assert data["checks"]["redis"] == {"ok": True, "mode": "in_memory"}


def test_readyz_all_services_healthy(client_for, fake_redis):
    services = ServiceContainer(FakeSupabase({"healthy": True, "status_code": 200}), fake_redis)

    data = client_for(services).get("/readyz").json()

    assert data["overall_ok"] is True
    assert data["checks"]["supabase"]["mode"] == "live"
    assert isinstance(data["checks"]["supabase"]["latency_ms"], (int, float))
    assert data["checks"]["redis"]["ok"] is True
    assert isinstance(data["checks"]["redis"]["latency_ms"], (int, float))


def test_readyz_supabase_unhealthy(client_for):
    services = ServiceContainer(FakeSupabase({"healthy": False, "status_code": 503}))

    response = client_for(services).get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["supabase"]["error"] == "HTTP 503"


def test_readyz_redis_unhealthy(client_for, fake_redis, monkeypatch):
    async def ping():
        return False

    monkeypatch.setattr(fake_redis, "ping", ping)

    data = client_for(ServiceContainer(None, fake_redis)).get("/readyz").json()

    assert data["overall_ok"] is False
    assert data["checks"]["redis"]["ok"] is False


def test_readyz_without_services():
    response = TestClient(app).get("/readyz")

    assert response.status_code == 503

"""Tests for health check endpoints."""

from fastapi.testclient import TestClient

from tests.factories import FakeLLM


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_liveness_probe(self, client: TestClient):
        """Test liveness probe returns alive status."""
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_readiness_probe(self, client: TestClient):
        """Test readiness probe with database connection."""
        response = client.get("/health/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"

    def test_full_health_check(self, client: TestClient):
        """Test comprehensive health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()

        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"

        dependencies = data["dependencies"]
        assert set(dependencies) == {"database", "openai"}
        for dep_info in dependencies.values():
            assert dep_info["status"] == "healthy"

    def test_unreachable_openai_is_degraded(self, client: TestClient, fake_llm: FakeLLM):
        """Narratives fall back to a template, so a missing LLM only degrades."""
        fake_llm.error = RuntimeError("connection refused")

        data = client.get("/health").json()
        assert data["status"] == "degraded"
        assert data["dependencies"]["openai"]["status"] == "degraded"
        assert data["dependencies"]["database"]["status"] == "healthy"


class TestRootEndpoint:
    """Test root API endpoint."""

    def test_root_returns_api_info(self, client: TestClient):
        """Test root endpoint returns API information."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Day Summary API"
        assert data["version"] == "0.1.0"

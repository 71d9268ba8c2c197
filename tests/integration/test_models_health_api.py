"""Tests for the model catalog and health endpoints."""

import pytest
from fastapi.testclient import TestClient

from falproxy import __version__


@pytest.mark.integration
class TestModelsEndpoint:
    def test_catalog_format(self, client: TestClient):
        response = client.get("/v1/models")

        assert response.status_code == 200
        body = response.json()
        assert body["has_more"] is False
        assert len(body["data"]) == 25
        assert body["first_id"] == body["data"][0]["id"] == "anthropic/claude-3.7-sonnet"
        assert body["last_id"] == body["data"][-1]["id"] == "openai/gpt-oss-120b"
        assert body["data"][0] == {
            "id": "anthropic/claude-3.7-sonnet",
            "type": "model",
            "display_name": "Claude 3.7 Sonnet",
            "created_at": "2024-01-01T00:00:00Z",
        }

    def test_models_do_not_require_api_key(self, client: TestClient):
        assert client.get("/v1/models").status_code == 200


@pytest.mark.integration
class TestHealthEndpoints:
    def test_healthz(self, client: TestClient):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_detailed_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["version"] == __version__
        assert body["backend"]["base_url"] == "https://fal.test"
        assert body["backend"]["enterprise_threshold"] == 5000
        assert body["backend"]["model_mappings"] == 1

    def test_generated_request_id(self, client: TestClient):
        response = client.get("/healthz")
        assert response.headers["x-request-id"].startswith("req-")

    def test_unknown_route_uses_error_format(self, client: TestClient):
        response = client.get("/v1/unknown")
        assert response.status_code == 404
        assert response.json() == {
            "type": "error",
            "error": {"type": "not_found_error", "message": "Not Found"},
        }

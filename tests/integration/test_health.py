"""Integration tests for health check endpoints."""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from src.core.exceptions import StorageError
from src.services.checkout_store import InMemoryCheckoutStore


class TestHealthEndpoint:
    """Tests for GET /health endpoint."""

    def test_health_returns_200(self, client: TestClient) -> None:
        """Test that the health endpoint returns 200 OK."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert data["version"] == "0.1.0"

    def test_health_reports_store_stats(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        """Test that store counters are included."""
        client.post(
            "/api/v1/acp/checkout",
            json={"checkout_reference_id": "ref_001", "line_items": [{"product_id": "prod_laptop_stand", "quantity": 1}]},
            headers=auth_headers,
        )

        stats = client.get("/health").json()["store_stats"]

        assert stats["active_checkouts"] == 1
        assert stats["total_created"] == 1
        assert stats["total_completed"] == 0
        assert stats["total_failed"] == 0
        assert stats["backend"] == "memory"
        assert stats["durability"] == "volatile"

    def test_health_survives_store_failure(
        self, client: TestClient, checkout_store: InMemoryCheckoutStore
    ) -> None:
        """Test that liveness does not depend on the store."""
        with patch.object(checkout_store, "count", AsyncMock(side_effect=StorageError("down"))):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["store_stats"] is None


class TestReadinessEndpoint:
    """Tests for GET /health/ready endpoint."""

    def test_ready_when_store_reachable(self, client: TestClient) -> None:
        """Test that readiness passes for the in-memory store."""
        response = client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert [c["name"] for c in data["checks"]] == ["checkout_store:memory"]
        assert data["checks"][0]["healthy"] is True

    def test_unready_when_store_fails(self, client: TestClient, checkout_store: InMemoryCheckoutStore) -> None:
        """Test that a failing store returns 503."""
        with patch.object(checkout_store, "count", AsyncMock(side_effect=StorageError("connection refused"))):
            response = client.get("/health/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["checks"][0]["error"] == "connection refused"

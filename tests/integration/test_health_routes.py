"""Integration tests for health check endpoints."""

from dataclasses import replace

from fastapi.testclient import TestClient

from src.core.clients import Clients
from tests.fakes import FakeSupabase


class TestServiceStatus:
    """Tests for GET / endpoint."""

    def test_reports_configuration_without_secrets(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["environment"] == "test"
        assert data["stripe_mode"] == "test"
        assert data["token_verification"] == "local"
        assert "timestamp" in data
        assert "total_requests" in data["requests"]
        assert "sk_test" not in response.text
        assert "whsec" not in response.text

    def test_reports_live_mode_and_provider_verification(self, clients: Clients) -> None:
        from src.main import create_app

        settings = clients.settings.model_copy(
            update={"stripe_secret_key": "sk_live_stripe_secret_key", "supabase_jwt_secret": "", "supabase_signing_key_jwk": ""}
        )
        live_clients = replace(clients, settings=settings)

        with TestClient(create_app(clients=live_clients)) as live_client:
            data = live_client.get("/").json()

        assert data["stripe_mode"] == "live"
        assert data["token_verification"] == "supabase_auth"
        assert "sk_live" not in str(data)


class TestHealthCheck:
    """Tests for GET /health endpoint."""

    def test_health_check_returns_200(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["version"] == "0.1.0"


class TestReadinessCheck:
    """Tests for GET /health/ready endpoint."""

    def test_ready_when_datastore_answers(self, client: TestClient) -> None:
        response = client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"][0]["name"] == "database"
        assert data["checks"][0]["healthy"] is True

    def test_unhealthy_datastore_returns_503(self, client: TestClient, fake_db: FakeSupabase) -> None:
        fake_db.fail_on("profiles", "select")

        response = client.get("/health/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["checks"][0]["healthy"] is False
        assert data["checks"][0]["error"] == "APIError"


class TestCors:
    """Tests for CORS handling."""

    def test_preflight_from_storefront_origin(self, client: TestClient) -> None:
        response = client.options(
            "/api/create-checkout-session",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization, Content-Type",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
        assert response.headers["access-control-allow-credentials"] == "true"

    def test_unknown_origin_gets_no_cors_headers(self, client: TestClient) -> None:
        response = client.get("/health", headers={"Origin": "https://evil.example.com"})

        assert response.status_code == 200
        assert "access-control-allow-origin" not in response.headers


class TestRequestSizeLimit:
    """Tests for the request body size limit."""

    def test_oversized_body_is_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/api/webhook",
            content=b"x" * (1024 * 1024 + 1),
            headers={"stripe-signature": "t=1,v1=abc"},
        )

        assert response.status_code == 413
        assert response.json()["error"] == "request_too_large"

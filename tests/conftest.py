"""Pytest configuration and fixtures."""

import os
from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock

import pytest
import stripe
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-for-unit-tests-0123456789")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe_secret_key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_webhook_secret")

from src.core.clients import Clients  # noqa: E402
from src.core.config import Settings  # noqa: E402
from tests.fakes import TEST_EMAIL, TEST_USER_ID, FakeSupabase, create_test_token  # noqa: E402


@pytest.fixture
def test_settings() -> Settings:
    """Provide settings built from the test environment."""
    return Settings()


@pytest.fixture
def fake_db() -> FakeSupabase:
    """Provide an empty in-memory datastore."""
    return FakeSupabase()


@pytest.fixture
def mock_auth_client() -> MagicMock:
    """Provide a mocked Supabase Auth client."""
    return MagicMock()


@pytest.fixture
def mock_stripe() -> MagicMock:
    """Provide a mocked Stripe module whose webhook signing is real."""
    mock = MagicMock()
    mock.WebhookSignature = stripe.WebhookSignature
    return mock


@pytest.fixture
def clients(
    test_settings: Settings,
    fake_db: FakeSupabase,
    mock_auth_client: MagicMock,
    mock_stripe: MagicMock,
) -> Clients:
    """Provide the client container wired to fakes."""
    return Clients(
        settings=test_settings,
        supabase=fake_db,
        supabase_auth=mock_auth_client,
        stripe=mock_stripe,
    )


@pytest.fixture
def client(clients: Clients) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        clients: Fake client container.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import create_app

    with TestClient(create_app(clients=clients)) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization header for the default test user."""
    return {"Authorization": f"Bearer {create_test_token()}"}


@pytest.fixture
def seeded_cart(fake_db: FakeSupabase) -> dict[str, Any]:
    """Seed a profile, two products, and a cart holding P1 x2 and P2 x1."""
    fake_db.seed("profiles", {"id": TEST_USER_ID, "email": TEST_EMAIL})
    p1, p2 = fake_db.seed(
        "products",
        {"id": "prod-p1", "name": "Habanero Sauce", "price": "10.00"},
        {"id": "prod-p2", "name": "Ghost Pepper Sauce", "price": "5.00"},
    )
    (cart,) = fake_db.seed("carts", {"id": "cart-1", "user_id": TEST_USER_ID})
    fake_db.seed(
        "cart_items",
        {"id": "ci-1", "cart_id": cart["id"], "product_id": p1["id"], "quantity": 2},
        {"id": "ci-2", "cart_id": cart["id"], "product_id": p2["id"], "quantity": 1},
    )
    return {"cart": cart, "products": [p1, p2]}

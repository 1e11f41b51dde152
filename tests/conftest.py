"""Pytest configuration and fixtures."""

import os
from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ACP_AUTH_TOKEN", "test-acp-token")
os.environ.setdefault("CHECKOUT_STORE_BACKEND", "memory")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe_secret_key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_webhook_secret")

from src.core.checkout_stats import CheckoutStats  # noqa: E402
from src.services.catalog_service import CatalogService  # noqa: E402
from src.services.checkout_service import CheckoutService  # noqa: E402
from src.services.checkout_store import InMemoryCheckoutStore  # noqa: E402

TEST_ACP_TOKEN = os.environ["ACP_AUTH_TOKEN"]


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    # Clear the cache to ensure fresh settings
    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    # Clean up cache after tests
    get_settings.cache_clear()


@pytest.fixture
def checkout_stats() -> CheckoutStats:
    """Provide counters isolated from the process-wide instance."""
    return CheckoutStats()


@pytest.fixture
def checkout_store(checkout_stats: CheckoutStats) -> InMemoryCheckoutStore:
    """Provide an empty in-memory checkout store."""
    return InMemoryCheckoutStore(stats=checkout_stats)


@pytest.fixture
def catalog() -> CatalogService:
    """Provide the demo catalog."""
    return CatalogService()


@pytest.fixture
def checkout_service(checkout_store: InMemoryCheckoutStore, catalog: CatalogService) -> CheckoutService:
    """Provide a checkout service over the isolated store."""
    return CheckoutService(store=checkout_store, catalog=catalog)


@pytest.fixture
def mock_stripe() -> Generator[MagicMock, None, None]:
    """Provide a mocked Stripe module for the payment gateway.

    Yields:
        MagicMock: Stand-in for the stripe module.
    """
    mock = MagicMock()
    mock.PaymentIntent.create.return_value = MagicMock(id="pi_test_123", status="succeeded")

    with patch("src.services.payment_service.get_stripe", return_value=mock):
        yield mock


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization header accepted by the ACP routes."""
    return {"Authorization": f"Bearer {TEST_ACP_TOKEN}"}


@pytest.fixture
def client(
    checkout_store: InMemoryCheckoutStore,
    mock_stripe: MagicMock,
) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    The process-wide checkout store is swapped for the isolated fixture store.

    Args:
        checkout_store: Isolated in-memory store fixture.
        mock_stripe: Mocked Stripe module fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with patch("src.services.checkout_store._checkout_store", checkout_store):
        with TestClient(app) as test_client:
            yield test_client

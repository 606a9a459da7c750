from decimal import Decimal

import pytest

from django.contrib.auth import get_user_model
from django.core.cache import cache

from rest_framework.test import APIClient

from modules.products.models import Product


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Memoized order margins must not leak between tests."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def auth_client():
    """APIClient with a force-authenticated Django user."""
    client = APIClient()
    user = get_user_model().objects.create_user(username="staff", password="testpass123")
    client.force_authenticate(user=user)
    return client


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def make_product():
    """Factory persisting a Product with sensible restaurant defaults."""

    def _make(**overrides) -> Product:
        defaults = {
            "name": "Pain",
            "stock_quantity": 10,
            "cost_price": Decimal("1.00"),
            "selling_price": Decimal("3.00"),
        }
        defaults.update(overrides)
        return Product.objects.create(**defaults)

    return _make


@pytest.fixture()
def bread(make_product):
    return make_product(
        name="Pain", stock_quantity=10, cost_price=Decimal("1.00"), selling_price=Decimal("3.00")
    )


@pytest.fixture()
def butter(make_product):
    return make_product(
        name="Beurre", stock_quantity=5, cost_price=Decimal("2.00"), selling_price=Decimal("5.00")
    )

from decimal import Decimal

import pytest

from django.contrib.auth import get_user_model
from django.core.cache import caches
from rest_framework.test import APIClient

from modules.providers.models import Address, Menu, MenuItem, Provider, ProviderLocation
from modules.users.models import ActivationCode


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_lock_cache():
    """Order locks live in the cache; start every test with none held."""
    caches["default"].clear()
    yield
    caches["default"].clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def station_client(api_client):
    """APIClient authenticated as a fulfillment station."""
    station = get_user_model().objects.create_user(
        username="station", password="testpass123", is_staff=True
    )
    api_client.force_authenticate(user=station)
    return api_client


@pytest.fixture()
def program_user():
    return get_user_model().objects.create_user(username="client", password="testpass123")


@pytest.fixture()
def active_code(program_user):
    return ActivationCode.objects.create(
        activation_code="CODE-0001",
        user=program_user,
        meals_authorized=30,
        meals_remaining=30,
        activated=True,
    )


@pytest.fixture()
def provider_catalog():
    """Two providers with three locations; returns the locations in id order."""
    deli = Provider.objects.create(name="Corner Deli")
    bowl = Provider.objects.create(name="Green Bowl")
    deli_menu = Menu.objects.create(provider=deli, name="Lunch")
    bowl_menu = Menu.objects.create(provider=bowl, name="Lunch")
    MenuItem.objects.create(menu=deli_menu, name="Turkey Sandwich", price=Decimal("6.50"))
    MenuItem.objects.create(menu=bowl_menu, name="Veggie Bowl", price=Decimal("8.25"))
    MenuItem.objects.create(menu=bowl_menu, name="Soup", price=Decimal("4.00"))

    locations = []
    for provider, street in ((deli, "Main St"), (deli, "Oak Ave"), (bowl, "Market Sq")):
        address = Address.objects.create(name=street, address_line1=f"100 {street}")
        locations.append(
            ProviderLocation.objects.create(
                provider=provider, name=f"{provider.name} - {street}", address=address
            )
        )
    return locations

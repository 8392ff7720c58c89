"""Integration tests for the messaging endpoints.

Covers:
- POST /api/v1/messages/: the full dialog from first text to a placed order.
- Refusal replies for users without active codes or over today's quota.
- A dialog in progress is not interrupted by the quota check.
- GET /api/v1/users/{id}/order-eligibility/.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone

from modules.orders.constants import OrderStatus, TransactionPhase
from modules.orders.models import Order, PartialOrder
from modules.orders.processor import ADDRESS_PROMPT, INVALID_ADDRESS, OrderProcessor
from modules.orders.views import MAX_DAILY_ORDERS_REPLY, NO_ACTIVE_CODES_REPLY
from modules.providers.geocoding import NominatimGeoCodingService
from modules.providers.models import Address

pytestmark = pytest.mark.integration

MESSAGES_URL = "/api/v1/messages/"


def _eligibility_url(pk):
    return f"/api/v1/users/{pk}/order-eligibility/"


@pytest.fixture()
def resolvable_addresses(provider_catalog):
    address = Address(name="1 Main St", latitude=Decimal("40.7"), longitude=Decimal("-74.0"))
    with patch.object(
        NominatimGeoCodingService, "resolve_address", return_value=address
    ), patch.object(
        OrderProcessor, "_find_nearby_locations", return_value=provider_catalog
    ):
        yield provider_catalog


def _send(client, user, text):
    return client.post(
        MESSAGES_URL, {"user_id": user.pk, "message": text}, format="json"
    )


class TestDialog:
    def test_full_dialog_places_an_order(
        self, station_client, program_user, active_code, resolvable_addresses
    ):
        assert _send(station_client, program_user, "meal").data == {"reply": ADDRESS_PROMPT}

        listing = _send(station_client, program_user, "1 Main St").data["reply"]
        assert listing.splitlines()[0] == "1) Corner Deli - Main St(Turkey Sandwich)"

        assert _send(station_client, program_user, "2").data == {"reply": ""}
        assert _send(station_client, program_user, "CONFIRM").data == {"reply": ""}

        order = Order.objects.get(user=program_user)
        assert order.status == OrderStatus.OPEN
        assert order.provider_location == resolvable_addresses[1]
        assert order.subtotal == Decimal("6.50")
        assert not PartialOrder.objects.filter(user=program_user).exists()

    def test_invalid_address_reply(self, station_client, program_user, active_code):
        _send(station_client, program_user, "meal")
        with patch.object(NominatimGeoCodingService, "resolve_address", return_value=None):
            response = _send(station_client, program_user, "???")
        assert response.data == {"reply": INVALID_ADDRESS}

    def test_garbled_geocoder_answer_is_an_invalid_address(
        self, station_client, program_user, active_code
    ):
        _send(station_client, program_user, "meal")
        garbled = MagicMock(status_code=200)
        garbled.json.side_effect = ValueError("Expecting value")
        with patch("modules.providers.geocoding.requests.get", return_value=garbled):
            response = _send(station_client, program_user, "1 Main St")
        assert response.status_code == 200
        assert response.data == {"reply": INVALID_ADDRESS}

    def test_unknown_user_returns_404(self, station_client):
        response = station_client.post(
            MESSAGES_URL, {"user_id": 99999, "message": "meal"}, format="json"
        )
        assert response.status_code == 404

    @pytest.mark.parametrize(
        "payload",
        [{"message": "meal"}, {"user_id": 1}, {"user_id": 1, "message": "   "}],
    )
    def test_invalid_payload_returns_400(self, station_client, payload):
        response = station_client.post(MESSAGES_URL, payload, format="json")
        assert response.status_code == 400

    def test_requires_authentication(self, api_client, program_user):
        response = _send(api_client, program_user, "meal")
        assert response.status_code == 401


class TestRefusals:
    def test_user_without_active_code_is_refused(self, station_client, program_user):
        response = _send(station_client, program_user, "meal")
        assert response.data == {"reply": NO_ACTIVE_CODES_REPLY}
        assert not PartialOrder.objects.filter(user=program_user).exists()

    def test_exhausted_code_is_not_active(self, station_client, program_user, active_code):
        active_code.meals_remaining = 0
        active_code.save()
        response = _send(station_client, program_user, "meal")
        assert response.data == {"reply": NO_ACTIVE_CODES_REPLY}

    def test_user_over_daily_quota_is_refused(
        self, station_client, program_user, active_code
    ):
        Order.objects.create(user=program_user)
        response = _send(station_client, program_user, "meal")
        assert response.data == {"reply": MAX_DAILY_ORDERS_REPLY}

    def test_dialog_in_progress_is_not_interrupted(
        self, station_client, program_user, active_code
    ):
        _send(station_client, program_user, "meal")
        Order.objects.create(user=program_user)

        with patch.object(NominatimGeoCodingService, "resolve_address", return_value=None):
            response = _send(station_client, program_user, "???")

        assert response.data == {"reply": INVALID_ADDRESS}

    def _stale_draft(self, user):
        draft = PartialOrder.objects.create(
            user=user, transaction_phase=TransactionPhase.CONFIRM_OR_CONTINUE
        )
        PartialOrder.objects.filter(pk=draft.pk).update(
            updated_at=timezone.now() - timedelta(hours=48)
        )

    def test_stale_draft_does_not_bypass_missing_codes(self, station_client, program_user):
        self._stale_draft(program_user)

        response = _send(station_client, program_user, "meal")

        assert response.data == {"reply": NO_ACTIVE_CODES_REPLY}
        assert not Order.objects.filter(user=program_user).exists()

    def test_stale_draft_does_not_bypass_daily_quota(
        self, station_client, program_user, active_code
    ):
        Order.objects.create(user=program_user)
        self._stale_draft(program_user)

        response = _send(station_client, program_user, "confirm")

        assert response.data == {"reply": MAX_DAILY_ORDERS_REPLY}
        assert Order.objects.filter(user=program_user).count() == 1


class TestEligibility:
    def test_eligible_user(self, station_client, program_user, active_code):
        response = station_client.get(_eligibility_url(program_user.pk))
        assert response.status_code == 200
        assert response.data == {
            "max_daily_orders_reached": False,
            "has_active_activation_codes": True,
            "current_pending_order": False,
        }

    def test_after_ordering_today(self, station_client, program_user, active_code):
        Order.objects.create(user=program_user)
        response = station_client.get(_eligibility_url(program_user.pk))
        assert response.data == {
            "max_daily_orders_reached": True,
            "has_active_activation_codes": True,
            "current_pending_order": True,
        }

    def test_user_without_codes(self, station_client, program_user):
        response = station_client.get(_eligibility_url(program_user.pk))
        assert response.data["has_active_activation_codes"] is False
        assert response.data["max_daily_orders_reached"] is True

    def test_unknown_user_returns_404(self, station_client):
        assert station_client.get(_eligibility_url(99999)).status_code == 404

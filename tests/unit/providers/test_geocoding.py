"""Unit tests for the Nominatim geocoding client (HTTP mocked)."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests

from modules.providers.geocoding import NominatimGeoCodingService

pytestmark = pytest.mark.unit

NOMINATIM_RESULT = {
    "display_name": "350, 5th Avenue, Manhattan, New York, 10118, United States",
    "lat": "40.7484284",
    "lon": "-73.98565890",
    "address": {
        "house_number": "350",
        "road": "5th Avenue",
        "city": "New York",
        "state": "New York",
        "postcode": "10118",
    },
}


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else []
    return response


@pytest.fixture()
def service():
    return NominatimGeoCodingService(
        url="https://geo.example.test/search", user_agent="meal-tests", timeout=3
    )


class TestResolveAddress:
    def test_resolves_first_result(self, service):
        with patch(
            "modules.providers.geocoding.requests.get",
            return_value=_response(payload=[NOMINATIM_RESULT]),
        ) as get:
            address = service.resolve_address("  350 5th Ave, New York ")

        get.assert_called_once_with(
            "https://geo.example.test/search",
            params={
                "q": "350 5th Ave, New York",
                "format": "json",
                "addressdetails": 1,
                "limit": 1,
            },
            headers={"User-Agent": "meal-tests"},
            timeout=3,
        )
        assert address.address_line1 == "350 5th Avenue"
        assert address.city == "New York"
        assert address.zip_code == "10118"
        assert address.latitude == Decimal("40.748428")
        assert address.longitude == Decimal("-73.985659")
        assert address.is_geocoded is True
        assert address.pk is None

    def test_town_used_when_city_missing(self, service):
        result = dict(NOMINATIM_RESULT, address={"town": "Hoboken"})
        with patch(
            "modules.providers.geocoding.requests.get",
            return_value=_response(payload=[result]),
        ):
            address = service.resolve_address("Hoboken")
        assert address.city == "Hoboken"
        assert address.address_line1 == ""

    def test_no_match_returns_none(self, service):
        with patch(
            "modules.providers.geocoding.requests.get", return_value=_response(payload=[])
        ):
            assert service.resolve_address("zzzz") is None

    def test_bad_status_returns_none(self, service):
        with patch(
            "modules.providers.geocoding.requests.get",
            return_value=_response(status_code=503),
        ):
            assert service.resolve_address("350 5th Ave") is None

    def test_transport_error_returns_none(self, service):
        with patch(
            "modules.providers.geocoding.requests.get",
            side_effect=requests.ConnectionError("down"),
        ):
            assert service.resolve_address("350 5th Ave") is None

    def test_non_json_body_returns_none(self, service):
        response = _response()
        response.json.side_effect = ValueError("Expecting value")
        with patch("modules.providers.geocoding.requests.get", return_value=response):
            assert service.resolve_address("350 5th Ave") is None

    def test_error_object_instead_of_list_returns_none(self, service):
        with patch(
            "modules.providers.geocoding.requests.get",
            return_value=_response(payload={"error": "rate limited"}),
        ):
            assert service.resolve_address("350 5th Ave") is None

    @pytest.mark.parametrize(
        "result",
        [
            {"display_name": "x", "address": {}},
            {"display_name": "x", "lat": "40.7", "address": {}},
            {"display_name": "x", "lat": "north", "lon": "west", "address": {}},
        ],
    )
    def test_result_without_usable_coordinates_returns_none(self, service, result):
        with patch(
            "modules.providers.geocoding.requests.get",
            return_value=_response(payload=[result]),
        ):
            assert service.resolve_address("350 5th Ave") is None

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_blank_text_skips_request(self, service, text):
        with patch("modules.providers.geocoding.requests.get") as get:
            assert service.resolve_address(text) is None
        get.assert_not_called()

    def test_defaults_from_settings(self, settings):
        settings.GEOCODING_URL = "https://configured.example.test/search"
        settings.GEOCODING_USER_AGENT = "configured-agent"
        settings.GEOCODING_TIMEOUT_SECONDS = 7

        service = NominatimGeoCodingService()

        assert service.url == "https://configured.example.test/search"
        assert service.user_agent == "configured-agent"
        assert service.timeout == 7

"""Address geocoding collaborator.

``IGeoCodingService.resolve_address`` turns the free text a user typed
into a structured (unsaved) ``Address``, or ``None`` when the text cannot
be resolved.  ``NominatimGeoCodingService`` queries a Nominatim-compatible
search endpoint over HTTP.  Transport failures and unusable answers are
reported as "no address": the conversation then asks the user to try
again.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional

import requests
import structlog
from django.conf import settings

from modules.providers.models import Address

logger = structlog.get_logger(__name__)

DEFAULT_GEOCODING_URL = "https://nominatim.openstreetmap.org/search"


class IGeoCodingService(ABC):
    @abstractmethod
    def resolve_address(self, text: str) -> Optional[Address]:
        """Resolve free text into an ``Address``; ``None`` if unresolvable."""


class NominatimGeoCodingService(IGeoCodingService):
    def __init__(
        self,
        url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.url = url or getattr(settings, "GEOCODING_URL", DEFAULT_GEOCODING_URL)
        self.user_agent = user_agent or getattr(
            settings, "GEOCODING_USER_AGENT", "meal-orders"
        )
        self.timeout = timeout or getattr(settings, "GEOCODING_TIMEOUT_SECONDS", 10)

    def resolve_address(self, text: str) -> Optional[Address]:
        query = (text or "").strip()
        if not query:
            return None

        try:
            response = requests.get(
                self.url,
                params={"q": query, "format": "json", "addressdetails": 1, "limit": 1},
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("geocoding.request_failed", error=str(exc))
            return None

        if response.status_code != 200:
            logger.warning("geocoding.bad_status", status_code=response.status_code)
            return None

        try:
            results = response.json()
        except ValueError:
            logger.warning("geocoding.invalid_body")
            return None

        if not isinstance(results, list) or not results:
            logger.info("geocoding.no_match")
            return None

        try:
            return _address_from_result(results[0])
        except (AttributeError, KeyError, TypeError, ArithmeticError):
            # Missing or malformed lat/lon
            logger.warning("geocoding.unusable_result")
            return None


def _address_from_result(result: Dict[str, Any]) -> Address:
    details = result.get("address", {})
    street = " ".join(
        part for part in (details.get("house_number"), details.get("road")) if part
    )
    return Address(
        name=result.get("display_name", "")[:255],
        address_line1=street,
        city=details.get("city") or details.get("town") or details.get("village", ""),
        state=details.get("state", ""),
        zip_code=details.get("postcode", ""),
        latitude=Decimal(str(result["lat"])).quantize(Decimal("0.000001")),
        longitude=Decimal(str(result["lon"])).quantize(Decimal("0.000001")),
    )

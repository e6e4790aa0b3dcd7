from abc import ABC, abstractmethod
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


class GeocodingProvider(ABC):
    """
    Abstract reverse-geocoding provider.

    Contract:
    - Input: latitude, longitude (floats)
    - Output: dict with well-known keys:
      {
        "formatted_address": str | None,
        "locality": str | None,
        "city": str | None,
        "state": str | None,
        "country": str | None,
        "provider": str
      }
    - MUST NEVER raise upstream exceptions.
    - MUST return empty fields on failure.
    - Implementations enforce the configured network timeout.
    """

    name = "base"

    @abstractmethod
    def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        raise NotImplementedError


class NoOpProvider(GeocodingProvider):
    """Used when geocoding is disabled or its credential is missing."""

    name = "noop"

    def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        return empty_result(self.name)


def empty_result(provider: str) -> Dict[str, Optional[str]]:
    return {
        "formatted_address": None,
        "locality": None,
        "city": None,
        "state": None,
        "country": None,
        "provider": provider,
    }


def osm_result(data: Dict, provider: str) -> Dict[str, Optional[str]]:
    """Map an OpenStreetMap-style reverse response (LocationIQ serves OSM data)."""
    address = data.get("address") or {}
    return {
        "formatted_address": data.get("display_name"),
        "locality": address.get("suburb") or address.get("neighbourhood") or address.get("quarter"),
        "city": address.get("city") or address.get("town") or address.get("village"),
        "state": address.get("state"),
        "country": address.get("country"),
        "provider": provider,
    }

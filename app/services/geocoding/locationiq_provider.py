import logging
from typing import Dict, Optional

import requests

from .base import GeocodingProvider, empty_result, osm_result

logger = logging.getLogger(__name__)


class LocationIQProvider(GeocodingProvider):
    """
    LocationIQ reverse-geocoding provider (default for device alerts).

    - Requires LOCATIONIQ_KEY; without it the resolver never builds this class.
    - Never raises upstream exceptions; returns empty fields on failure.
    - The key is never logged.
    """

    name = "locationiq"
    BASE_URL = "https://us1.locationiq.com/v1/reverse"

    def __init__(self, api_key: str, timeout: float = 3.0):
        self.api_key = api_key
        self.timeout = timeout

    def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Optional[str]]:
        try:
            params = {
                "key": self.api_key,
                "lat": latitude,
                "lon": longitude,
                "format": "json",
            }
            resp = requests.get(self.BASE_URL, params=params, timeout=self.timeout)
            if resp.status_code != 200:
                logger.warning(f"LocationIQ reverse-geocode failed with status {resp.status_code}")
                return empty_result(self.name)

            return osm_result(resp.json(), self.name)
        except Exception as e:
            logger.warning(f"LocationIQ reverse-geocode error: {e}")
            return empty_result(self.name)

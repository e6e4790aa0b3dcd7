from .base import GeocodingProvider, NoOpProvider, empty_result
from .resolver import get_geocoding_provider, reset_geocoding_provider

__all__ = [
    "GeocodingProvider",
    "NoOpProvider",
    "empty_result",
    "get_geocoding_provider",
    "reset_geocoding_provider",
]

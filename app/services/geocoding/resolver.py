import logging
from typing import Optional

from app.core.settings import settings
from .base import GeocodingProvider, NoOpProvider
from .locationiq_provider import LocationIQProvider

logger = logging.getLogger(__name__)

_provider_instance: Optional[GeocodingProvider] = None


def get_geocoding_provider() -> GeocodingProvider:
    """
    Resolve the active geocoding provider based on settings.

    Rules:
    - "locationiq" (default) needs LOCATIONIQ_KEY.
    - A missing key or "none" yields the no-op provider, so device alerts
      fall back to coordinate addresses instead of failing.
    """
    global _provider_instance
    if _provider_instance is not None:
        return _provider_instance

    provider_name = (settings.GEOCODING_PROVIDER or "none").lower()

    if provider_name == "locationiq" and settings.LOCATIONIQ_KEY:
        _provider_instance = LocationIQProvider(
            api_key=settings.LOCATIONIQ_KEY,
            timeout=settings.GEOCODING_TIMEOUT_SECONDS,
        )
    else:
        if provider_name not in ("none", "noop"):
            logger.warning(f"Geocoding provider '{provider_name}' has no credential configured; using coordinates only")
        _provider_instance = NoOpProvider()

    logger.info(f"Geocoding provider initialized: {_provider_instance.name}")
    return _provider_instance


def reset_geocoding_provider() -> None:
    global _provider_instance
    _provider_instance = None

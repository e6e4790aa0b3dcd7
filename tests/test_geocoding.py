import pytest
import requests

from app.core.settings import settings
from app.services.geocoding import NoOpProvider, get_geocoding_provider, reset_geocoding_provider
from app.services.geocoding.locationiq_provider import LocationIQProvider
from app.utils.geocoding import coordinate_address, haversine_meters


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def json(self):
        return self._payload


@pytest.fixture
def fresh_resolver():
    reset_geocoding_provider()
    yield
    reset_geocoding_provider()


def test_coordinate_address_format():
    assert coordinate_address(13.6218, 123.1816) == "Lat: 13.62180, Lon: 123.18160 (IoT device)"
    assert coordinate_address(-1.5, 2.25, source=None) == "Lat: -1.50000, Lon: 2.25000"


def test_haversine_known_distance():
    # One degree of latitude is about 111 km
    assert haversine_meters(0, 0, 1, 0) == pytest.approx(111195, rel=1e-3)
    assert haversine_meters(13.6, 123.1, 13.6, 123.1) == 0


def test_locationiq_without_key_falls_back_to_noop(fresh_resolver, monkeypatch):
    monkeypatch.setattr(settings, "GEOCODING_PROVIDER", "locationiq")
    monkeypatch.setattr(settings, "LOCATIONIQ_KEY", None)

    assert isinstance(get_geocoding_provider(), NoOpProvider)


def test_locationiq_with_key_is_selected(fresh_resolver, monkeypatch):
    monkeypatch.setattr(settings, "GEOCODING_PROVIDER", "locationiq")
    monkeypatch.setattr(settings, "LOCATIONIQ_KEY", "pk.test")

    provider = get_geocoding_provider()

    assert isinstance(provider, LocationIQProvider)
    assert provider.timeout == settings.GEOCODING_TIMEOUT_SECONDS


def test_locationiq_reads_display_name(monkeypatch):
    payload = {"display_name": "Panganiban Drive, Naga City", "address": {"city": "Naga", "country": "Philippines"}}
    monkeypatch.setattr(requests, "get", lambda *args, **kwargs: FakeResponse(200, payload))

    result = LocationIQProvider(api_key="pk.test").reverse_geocode(13.62, 123.18)

    assert result["formatted_address"] == "Panganiban Drive, Naga City"
    assert result["city"] == "Naga"
    assert result["provider"] == "locationiq"


def test_locationiq_errors_become_empty_results(monkeypatch):
    def timeout(*args, **kwargs):
        raise requests.Timeout("too slow")

    monkeypatch.setattr(requests, "get", timeout)
    assert LocationIQProvider(api_key="pk.test").reverse_geocode(13.62, 123.18)["formatted_address"] is None

    monkeypatch.setattr(requests, "get", lambda *args, **kwargs: FakeResponse(429))
    assert LocationIQProvider(api_key="pk.test").reverse_geocode(13.62, 123.18)["formatted_address"] is None


@pytest.mark.parametrize("name", ["google", "nominatim", "none"])
def test_unsupported_or_disabled_provider_uses_coordinates(fresh_resolver, monkeypatch, name):
    monkeypatch.setattr(settings, "GEOCODING_PROVIDER", name)
    monkeypatch.setattr(settings, "LOCATIONIQ_KEY", "pk.test")

    assert isinstance(get_geocoding_provider(), NoOpProvider)

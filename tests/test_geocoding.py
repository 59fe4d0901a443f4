"""
tests/test_geocoding.py

LocationIQ client and the missing-coordinates sweep.
"""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest import mock

import pytest
import requests

from app.config import GeocodingSettings
from app.connectors.locationiq import GeocodingError, GeoPoint, LocationIQClient
from app.services.geocoding_service import GeocodingService

SETTINGS = GeocodingSettings(api_key="pk.test", base_url="https://eu1.locationiq.com", timeout_seconds=5.0)


def _client(response=None, error: Exception | None = None) -> tuple[LocationIQClient, mock.Mock]:
    session = mock.Mock(spec=requests.Session)
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return LocationIQClient(SETTINGS, session=session), session


def _response(status_code: int, payload=None) -> mock.Mock:
    response = mock.Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.json.return_value = payload
    return response


class TestLocationIQClient:
    def test_first_result_is_returned(self) -> None:
        client, session = _client(_response(200, [{"lat": "48.8566", "lon": "2.3522"}, {"lat": "0", "lon": "0"}]))

        assert client.geocode("Paris, France") == GeoPoint(lat=48.8566, lon=2.3522)
        session.get.assert_called_once_with(
            "https://eu1.locationiq.com/v1/search",
            params={"key": "pk.test", "q": "Paris, France", "format": "json", "limit": 1},
            timeout=5.0,
        )

    def test_not_found_is_none(self) -> None:
        client, _ = _client(_response(404, {"error": "Unable to geocode"}))
        assert client.geocode("Nowhere") is None

    def test_empty_result_is_none(self) -> None:
        client, _ = _client(_response(200, []))
        assert client.geocode("Nowhere") is None

    def test_blank_address_skips_request(self) -> None:
        client, session = _client(_response(200, []))
        assert client.geocode("  ") is None
        session.get.assert_not_called()

    def test_server_error_raises(self) -> None:
        client, _ = _client(_response(500))
        with pytest.raises(GeocodingError):
            client.geocode("Paris")

    def test_network_error_raises(self) -> None:
        client, _ = _client(error=requests.ConnectionError("down"))
        with pytest.raises(GeocodingError):
            client.geocode("Paris")

    def test_requires_api_key(self) -> None:
        with pytest.raises(ValueError):
            LocationIQClient(GeocodingSettings())


class FakeGeocoder:
    def __init__(self, answers: dict[str, GeoPoint | None | Exception]) -> None:
        self.answers = answers
        self.queries: list[str] = []

    def geocode(self, address: str) -> GeoPoint | None:
        self.queries.append(address)
        answer = self.answers.get(address)
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeCoordinateStore:
    def __init__(self, records: list[SimpleNamespace]) -> None:
        self.records = records
        self.limits: list[int] = []
        self.updates: list[tuple[uuid.UUID, float, float]] = []
        self.failed: list[uuid.UUID] = []

    def list_missing_coordinates(self, limit: int) -> list[SimpleNamespace]:
        self.limits.append(limit)
        return self.records[:limit]

    def update_coordinates(self, report_id: uuid.UUID, latitude: float, longitude: float) -> None:
        self.updates.append((report_id, latitude, longitude))

    def mark_geocode_failed(self, report_id: uuid.UUID) -> None:
        self.failed.append(report_id)


def _record(address: str | None) -> SimpleNamespace:
    return SimpleNamespace(id=uuid.uuid4(), address=address)


def test_sweep_updates_resolvable_addresses_and_skips_failures() -> None:
    paris, lost, broken, bogus, blank = (
        _record("Paris, France"),
        _record("Atlantis"),
        _record("Reno, NV"),
        _record("Bogus"),
        _record(None),
    )
    store = FakeCoordinateStore([paris, lost, broken, bogus, blank])
    geocoder = FakeGeocoder(
        {
            "Paris, France": GeoPoint(48.85, 2.35),
            "Atlantis": None,
            "Reno, NV": GeocodingError("HTTP 429"),
            "Bogus": GeoPoint(123.0, 2.0),
        }
    )

    result = GeocodingService(geocoder, batch_limit=50).geocode_missing(store)

    assert store.updates == [(paris.id, 48.85, 2.35)]
    assert result.updated_count == 1
    assert result.updated[0].id == paris.id
    assert result.candidates == 5
    assert store.failed == [lost.id, bogus.id]
    assert result.unresolved == 2
    assert geocoder.queries == ["Paris, France", "Atlantis", "Reno, NV", "Bogus"]


def test_sweep_respects_batch_limit() -> None:
    store = FakeCoordinateStore([_record(f"Town {i}") for i in range(10)])
    service = GeocodingService(FakeGeocoder({}), batch_limit=50)

    service.geocode_missing(store, limit=3)
    service.geocode_missing(store, limit=500)
    service.geocode_missing(store)

    assert store.limits == [3, 50, 50]


def test_sweep_with_nothing_to_do() -> None:
    result = GeocodingService(FakeGeocoder({})).geocode_missing(FakeCoordinateStore([]))
    assert result.updated_count == 0
    assert result.updated == []

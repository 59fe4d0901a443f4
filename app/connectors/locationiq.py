"""
app/connectors/locationiq.py

LocationIQ forward-geocoding client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from app.config import GeocodingSettings

logger = logging.getLogger(__name__)


class GeocodingError(RuntimeError):
    """
    Raised when the geocoding service cannot be reached or answers garbage.
    """


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float


class LocationIQClient:
    """
    ``geocode(address) -> GeoPoint | None``; None means "no match".
    """

    def __init__(
        self,
        settings: GeocodingSettings,
        *,
        session: requests.Session | None = None,
    ) -> None:
        if not settings.api_key:
            raise ValueError("LOCATIONIQ_API_KEY is not configured.")
        self._api_key = settings.api_key
        self._search_url = f"{settings.base_url}/v1/search"
        self._timeout_seconds = settings.timeout_seconds
        self._session = session or requests.Session()

    def geocode(self, address: str) -> GeoPoint | None:
        if not address or not address.strip():
            return None

        try:
            response = self._session.get(
                self._search_url,
                params={"key": self._api_key, "q": address, "format": "json", "limit": 1},
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise GeocodingError(f"LocationIQ request failed: {exc}") from exc

        # LocationIQ answers 404 "Unable to geocode" for unknown addresses.
        if response.status_code == 404:
            return None
        if not response.ok:
            raise GeocodingError(f"LocationIQ returned HTTP {response.status_code}.")

        try:
            payload = response.json()
        except ValueError as exc:
            raise GeocodingError("LocationIQ response was not valid JSON.") from exc

        if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
            return None
        try:
            return GeoPoint(lat=float(payload[0]["lat"]), lon=float(payload[0]["lon"]))
        except (KeyError, TypeError, ValueError):
            logger.warning("LocationIQ result without usable coordinates address=%s", address)
            return None

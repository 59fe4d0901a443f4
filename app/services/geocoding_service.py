"""
app/services/geocoding_service.py

Enrichment sweep that fills coordinates for stored reports that have an
address but no latitude yet.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Protocol

from app.config import get_geocoding_settings
from app.connectors.locationiq import GeocodingError, GeoPoint, LocationIQClient

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    def geocode(self, address: str) -> GeoPoint | None: ...


class MissingCoordinateRecord(Protocol):
    id: uuid.UUID
    address: str | None


class CoordinateStore(Protocol):
    def list_missing_coordinates(self, limit: int) -> Sequence[MissingCoordinateRecord]: ...

    def update_coordinates(self, report_id: uuid.UUID, latitude: float, longitude: float) -> None: ...

    def mark_geocode_failed(self, report_id: uuid.UUID) -> None: ...


@dataclass(frozen=True)
class GeocodedReport:
    id: uuid.UUID
    lat: float
    lon: float


@dataclass(frozen=True)
class GeocodeSweepResult:
    candidates: int = 0
    updated: list[GeocodedReport] = field(default_factory=list)
    unresolved: int = 0

    @property
    def updated_count(self) -> int:
        return len(self.updated)


def _in_range(point: GeoPoint) -> bool:
    return -90.0 <= point.lat <= 90.0 and -180.0 <= point.lon <= 180.0


class GeocodingService:
    """
    Geocodes at most ``batch_limit`` reports per sweep.
    """

    def __init__(self, geocoder: Geocoder, *, batch_limit: int = 50) -> None:
        self._geocoder = geocoder
        self._batch_limit = max(1, batch_limit)

    def geocode_missing(self, store: CoordinateStore, limit: int | None = None) -> GeocodeSweepResult:
        """
        Look up and store coordinates for reports missing them.

        A lookup without a usable match is marked on the report so later
        sweeps reach other reports first. Geocoder errors are logged and the
        report is left for the next sweep. StorageUnavailable propagates.
        """

        batch_limit = min(self._batch_limit, limit) if limit else self._batch_limit
        records = store.list_missing_coordinates(batch_limit)
        if not records:
            logger.info("Geocoding sweep found no reports missing coordinates")
            return GeocodeSweepResult()

        updated: list[GeocodedReport] = []
        unresolved = 0
        for record in records:
            if not record.address:
                continue
            try:
                point = self._geocoder.geocode(record.address)
            except GeocodingError as exc:
                logger.warning("Geocoding failed report_id=%s address=%r: %s", record.id, record.address, exc)
                continue
            if point is None or not _in_range(point):
                logger.info("No usable coordinates report_id=%s address=%r", record.id, record.address)
                store.mark_geocode_failed(record.id)
                unresolved += 1
                continue

            store.update_coordinates(record.id, point.lat, point.lon)
            updated.append(GeocodedReport(id=record.id, lat=point.lat, lon=point.lon))

        logger.info(
            "Geocoding sweep finished candidates=%s updated=%s unresolved=%s",
            len(records),
            len(updated),
            unresolved,
        )
        return GeocodeSweepResult(candidates=len(records), updated=updated, unresolved=unresolved)


@lru_cache(maxsize=1)
def get_geocoding_service() -> GeocodingService:
    """
    Build and cache the geocoding service; requires LOCATIONIQ_API_KEY.
    """

    settings = get_geocoding_settings()
    return GeocodingService(LocationIQClient(settings), batch_limit=settings.batch_limit)

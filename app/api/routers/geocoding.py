"""
app/api/routers/geocoding.py

Geocoding sweep trigger endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_report_store, require_cron_token
from app.config import get_geocoding_settings
from app.domain.errors import StorageUnavailable
from app.repositories.report_repository import ReportRepository
from app.schemas.imports import GeocodeSweepResponse
from app.services.geocoding_service import GeocodingService, get_geocoding_service

router = APIRouter(prefix="/api", tags=["geocoding"])


def get_enabled_geocoding_service() -> GeocodingService:
    if not get_geocoding_settings().enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Geocoding is not configured.",
        )
    return get_geocoding_service()


@router.post(
    "/geocode",
    response_model=GeocodeSweepResponse,
    dependencies=[Depends(require_cron_token)],
)
def geocode_missing(
    limit: int | None = Query(default=None, ge=1, le=500),
    store: ReportRepository = Depends(get_report_store),
    service: GeocodingService = Depends(get_enabled_geocoding_service),
) -> GeocodeSweepResponse:
    """
    Fill coordinates for reports that have an address but no latitude.
    """

    try:
        result = service.geocode_missing(store, limit=limit)
    except StorageUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.to_dict()) from exc

    return GeocodeSweepResponse.from_result(result)

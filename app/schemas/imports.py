"""
app/schemas/imports.py

Response schemas for import and geocoding endpoints.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from app.domain.sighting import ImportResult
from app.services.geocoding_service import GeocodeSweepResult


class RowErrorResponse(BaseModel):
    """
    API response model for one recorded row or chunk error.
    """

    row_index: int = Field(..., ge=0)
    reason: str
    kind: str


class ImportResultResponse(BaseModel):
    """
    API response model for an import run summary.
    """

    source_name: str
    state: str
    parsed_count: int = Field(..., ge=0)
    normalized_count: int = Field(..., ge=0)
    inserted_or_updated_count: int = Field(..., ge=0)
    skipped_count: int = Field(..., ge=0)
    cancelled: bool = False
    errors: list[RowErrorResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ImportResult) -> ImportResultResponse:
        return cls(
            source_name=result.source_name,
            state=result.state,
            parsed_count=result.parsed_count,
            normalized_count=result.normalized_count,
            inserted_or_updated_count=result.inserted_or_updated_count,
            skipped_count=result.skipped_count,
            cancelled=result.cancelled,
            errors=[
                RowErrorResponse(row_index=error.row_index, reason=error.reason, kind=error.kind)
                for error in result.errors
            ],
        )


class GeocodedReportResponse(BaseModel):
    id: uuid.UUID
    lat: float
    lon: float


class GeocodeSweepResponse(BaseModel):
    """
    API response model for one geocoding sweep.
    """

    updated_count: int = Field(..., ge=0)
    unresolved_count: int = Field(default=0, ge=0)
    updated: list[GeocodedReportResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: GeocodeSweepResult) -> GeocodeSweepResponse:
        return cls(
            updated_count=result.updated_count,
            unresolved_count=result.unresolved,
            updated=[
                GeocodedReportResponse(id=item.id, lat=item.lat, lon=item.lon)
                for item in result.updated
            ],
        )


class ErrorResponse(BaseModel):
    kind: str
    message: str
    source_name: str | None = None

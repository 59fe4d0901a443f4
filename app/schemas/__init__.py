"""
app/schemas package marker.
"""

from app.schemas.imports import (
    ErrorResponse,
    GeocodeSweepResponse,
    ImportResultResponse,
    RowErrorResponse,
)

__all__ = [
    "ErrorResponse",
    "GeocodeSweepResponse",
    "ImportResultResponse",
    "RowErrorResponse",
]

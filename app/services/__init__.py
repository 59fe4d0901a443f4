"""
app/services package marker.
"""

from app.services.batch_upsert import BatchUpsertOrchestrator, CancelToken, SightingStore
from app.services.geocoding_service import GeocodingService, get_geocoding_service
from app.services.import_session import (
    ImportSession,
    ImportSessionRunner,
    get_import_session_runner,
)

__all__ = [
    "BatchUpsertOrchestrator",
    "CancelToken",
    "SightingStore",
    "GeocodingService",
    "get_geocoding_service",
    "ImportSession",
    "ImportSessionRunner",
    "get_import_session_runner",
]

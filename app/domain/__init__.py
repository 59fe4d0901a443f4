"""
app/domain package marker.
"""

from app.domain.errors import (
    ChunkUpsertFailed,
    EmptyInputError,
    FetchFailed,
    FetchTimeout,
    ImportRunError,
    StorageUnavailable,
    UnknownSourceError,
)
from app.domain.sighting import ImportResult, NormalizedSighting, RawRow, RawSource, RowError

__all__ = [
    "ChunkUpsertFailed",
    "EmptyInputError",
    "FetchFailed",
    "FetchTimeout",
    "ImportResult",
    "ImportRunError",
    "NormalizedSighting",
    "RawRow",
    "RawSource",
    "RowError",
    "StorageUnavailable",
    "UnknownSourceError",
]

"""
app/domain/sighting.py

Domain models used by the sighting ingestion pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

# One parsed input record: column name (or positional ``col_N``) -> raw value.
RawRow = dict[str, str | None]


class SourceKind:
    CSV = "csv"
    JSON_ARRAY = "json_array"
    HAND_SUBMITTED = "hand_submitted"


class ImportState:
    IDLE = "idle"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    DETECTING = "detecting"
    PARSING = "parsing"
    MAPPING = "mapping"
    UPSERTING = "upserting"
    DONE = "done"
    FAILED = "failed"


IMPORT_STATE_ORDER: tuple[str, ...] = (
    ImportState.IDLE,
    ImportState.FETCHING,
    ImportState.NORMALIZING,
    ImportState.DETECTING,
    ImportState.PARSING,
    ImportState.MAPPING,
    ImportState.UPSERTING,
    ImportState.DONE,
)


class ErrorKind:
    FETCH_TIMEOUT = "FetchTimeout"
    FETCH_FAILED = "FetchFailed"
    EMPTY_INPUT = "EmptyInputError"
    ROW_PARSE_SKIPPED = "RowParseSkipped"
    ROW_MAPPING_SKIPPED = "RowMappingSkipped"
    CHUNK_UPSERT_FAILED = "ChunkUpsertFailed"
    STORAGE_UNAVAILABLE = "StorageUnavailable"


@dataclass(frozen=True)
class RawSource:
    """
    Raw payload of one import invocation. Never persisted.
    """

    source_name: str
    kind: str
    payload: Any
    locator: str | None = None


@dataclass(frozen=True)
class Dialect:
    """
    Field delimiter and quoting rules for delimiter-separated text.
    """

    delimiter: str
    quote_char: str = '"'
    lax_quoting: bool = True


@dataclass(frozen=True)
class NormalizedSighting:
    """
    Canonical sighting record prepared for persistence.
    """

    description: str
    source_name: str
    date_event: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    shape: str | None = None
    duration: str | None = None
    dedupe_key: str = ""

    def with_dedupe_key(self, dedupe_key: str) -> NormalizedSighting:
        return replace(self, dedupe_key=dedupe_key)

    def to_payload(self) -> dict[str, Any]:
        return {
            "dedupe_key": self.dedupe_key,
            "description": self.description,
            "date_event": self.date_event,
            "city": self.city,
            "state": self.state,
            "country": self.country,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "shape": self.shape,
            "duration": self.duration,
            "source_name": self.source_name,
        }


@dataclass(frozen=True)
class RowError:
    """
    One recoverable problem recorded during an import run.
    """

    row_index: int
    reason: str
    kind: str = ErrorKind.ROW_MAPPING_SKIPPED


@dataclass(frozen=True)
class ImportResult:
    """
    End-of-run import summary.
    """

    source_name: str = ""
    parsed_count: int = 0
    normalized_count: int = 0
    inserted_or_updated_count: int = 0
    skipped_count: int = 0
    errors: list[RowError] = field(default_factory=list)
    state: str = ImportState.DONE
    cancelled: bool = False

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_name": self.source_name,
            "parsed_count": self.parsed_count,
            "normalized_count": self.normalized_count,
            "inserted_or_updated_count": self.inserted_or_updated_count,
            "skipped_count": self.skipped_count,
            "state": self.state,
            "cancelled": self.cancelled,
            "errors": [
                {"row_index": error.row_index, "reason": error.reason, "kind": error.kind}
                for error in self.errors
            ],
        }

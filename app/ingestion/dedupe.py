"""
app/ingestion/dedupe.py

Content-derived identity for normalized sightings.
"""

from __future__ import annotations

import hashlib

from app.domain.sighting import NormalizedSighting

# ASCII unit separator; cannot appear in normalized text (control characters
# are replaced during encoding normalization).
DEDUPE_SEPARATOR = "\x1f"


def _format_coordinate(value: float | None) -> str:
    if value is None:
        return ""
    return repr(float(value))


def derive_dedupe_key(sighting: NormalizedSighting) -> str:
    """
    Return the SHA-256 hex digest of source, date, coordinates, and description.

    Identical inputs always yield the same key, so re-importing a feed
    collapses onto the rows it already stored.
    """

    parts = (
        sighting.source_name,
        sighting.date_event or "",
        _format_coordinate(sighting.latitude),
        _format_coordinate(sighting.longitude),
        sighting.description,
    )
    return hashlib.sha256(DEDUPE_SEPARATOR.join(parts).encode("utf-8")).hexdigest()

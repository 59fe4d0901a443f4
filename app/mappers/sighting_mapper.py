"""
app/mappers/sighting_mapper.py

Maps raw parsed rows onto the canonical sighting schema using a source profile.
"""

from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime
from typing import Mapping

from app.domain.sighting import NormalizedSighting, RawRow
from app.ingestion.dedupe import derive_dedupe_key
from app.ingestion.profiles import SourceProfile

_LOOKUP_CACHE_SIZE = 256
_POSITIONAL_RE = re.compile(r"^col_(\d+)$")
_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIMEZONE_WORDS_RE = re.compile(
    r"\s*\b(Local|Pacific|Eastern|Central|Mountain|UTC|GMT)\b\s*$",
    flags=re.IGNORECASE,
)

MONTH_FIRST_FORMATS: tuple[str, ...] = (
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y",
    "%m/%d/%y %H:%M",
    "%m/%d/%y",
)

DAY_FIRST_FORMATS: tuple[str, ...] = (
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d/%m/%y",
)

COMMON_FORMATS: tuple[str, ...] = (
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%Y%m%d",
)


def normalize_header(header: str) -> str:
    """
    Normalize a column name for case- and accent-insensitive matching.
    """

    decomposed = unicodedata.normalize("NFKD", header.strip().lower())
    return "".join(
        ch for ch in decomposed if ch.isalnum() and not unicodedata.combining(ch)
    )


def is_blank(value: object) -> bool:
    return value is None or str(value).strip() == ""


def parse_coordinate(value: str | None, *, limit: float) -> float | None:
    """
    Parse a coordinate and return it only when finite and within +/- ``limit``.
    """

    if is_blank(value):
        return None
    raw = str(value).strip()
    if "," in raw and "." not in raw:
        raw = raw.replace(",", ".")
    try:
        parsed = float(raw)
    except ValueError:
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    if not -limit <= parsed <= limit:
        return None
    return parsed


def parse_date(value: str | None, *, day_first: bool = False) -> str | None:
    """
    Parse a date-ish value into an ISO-8601 string; None when unparseable.
    """

    if is_blank(value):
        return None
    raw = _TIMEZONE_WORDS_RE.sub("", str(value).strip())
    if not raw:
        return None

    if _DATE_ONLY_RE.match(raw):
        try:
            return date.fromisoformat(raw).isoformat()
        except ValueError:
            return None

    normalized = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        return datetime.fromisoformat(normalized).isoformat(timespec="seconds")
    except ValueError:
        pass

    formats = DAY_FIRST_FORMATS if day_first else MONTH_FIRST_FORMATS
    for fmt in (*formats, *COMMON_FORMATS):
        try:
            parsed = datetime.strptime(raw, fmt)
        except ValueError:
            continue
        if "%H" in fmt:
            return parsed.isoformat(timespec="seconds")
        return parsed.date().isoformat()
    return None


def build_date_from_components(
    year: str | None,
    month: str | None,
    day: str | None,
    hour: str | None = None,
    minute: str | None = None,
) -> str | None:
    """
    Rebuild an ISO timestamp from separate columns; year, month and day are required.
    """

    year_value, month_value, day_value = (_parse_int(item) for item in (year, month, day))
    if year_value is None or month_value is None or day_value is None:
        return None
    try:
        built = datetime(
            year_value,
            month_value,
            day_value,
            _parse_int(hour) or 0,
            _parse_int(minute) or 0,
        )
    except ValueError:
        return None
    return built.isoformat(timespec="seconds")


def build_address(city: str | None, state: str | None, country: str | None) -> str | None:
    parts = [part for part in (city, state, country) if part]
    return ", ".join(parts) if parts else None


def split_location(location: str | None) -> tuple[str | None, str | None, str | None]:
    """
    Split a combined ``"City, ST, Country"`` value.
    """

    if is_blank(location):
        return None, None, None
    parts = [part.strip() or None for part in str(location).split(",")]
    padded = [*parts, None, None, None]
    return padded[0], padded[1], ", ".join(p for p in parts[2:] if p) or None


def _parse_int(value: str | None) -> int | None:
    if is_blank(value):
        return None
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return None


class SightingMapper:
    """
    Resolves profile candidates against a row and builds a keyed sighting.
    """

    def __init__(self) -> None:
        self._lookup_cache: dict[tuple[str, ...], dict[str, str]] = {}

    def map_row(self, row: RawRow, profile: SourceProfile) -> NormalizedSighting | None:
        """
        Map one raw row; returns None when the required description is blank.
        """

        lookup = self._header_lookup(row)
        values = list(row.values())

        def pick(logical_field: str) -> str | None:
            for candidate in profile.candidates(logical_field):
                value = self._resolve_candidate(candidate, row, lookup, values)
                if not is_blank(value):
                    return str(value).strip()
            return None

        description = pick("description")
        if description is None:
            return None

        date_event = parse_date(pick("date_event"), day_first=profile.day_first)
        if date_event is None:
            date_event = build_date_from_components(
                pick("date_year"),
                pick("date_month"),
                pick("date_day"),
                pick("date_hour"),
                pick("date_minute"),
            )

        city = pick("city")
        state = pick("state")
        country = pick("country")
        if city is None and state is None and country is None:
            city, state, country = split_location(pick("location"))
        if country is None:
            country = profile.default_country

        shape = pick("shape")
        sighting = NormalizedSighting(
            description=description,
            source_name=profile.name,
            date_event=date_event,
            city=city,
            state=state,
            country=country,
            address=pick("address") or build_address(city, state, country),
            latitude=parse_coordinate(pick("latitude"), limit=90.0),
            longitude=parse_coordinate(pick("longitude"), limit=180.0),
            shape=shape.lower() if shape else None,
            duration=pick("duration"),
        )
        return sighting.with_dedupe_key(derive_dedupe_key(sighting))

    def _header_lookup(self, row: Mapping[str, str | None]) -> dict[str, str]:
        headers = tuple(row.keys())
        cached = self._lookup_cache.get(headers)
        if cached is not None:
            return cached

        lookup: dict[str, str] = {}
        for header in headers:
            normalized = normalize_header(header)
            if normalized and normalized not in lookup:
                lookup[normalized] = header
        if len(self._lookup_cache) >= _LOOKUP_CACHE_SIZE:
            self._lookup_cache.clear()
        self._lookup_cache[headers] = lookup
        return lookup

    @staticmethod
    def _resolve_candidate(
        candidate: str,
        row: Mapping[str, str | None],
        lookup: Mapping[str, str],
        values: list[str | None],
    ) -> str | None:
        if candidate in row:
            return row[candidate]

        positional = _POSITIONAL_RE.match(candidate)
        if positional is not None:
            index = int(positional.group(1))
            return values[index] if index < len(values) else None

        header = lookup.get(normalize_header(candidate))
        return row.get(header) if header is not None else None

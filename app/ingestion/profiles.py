"""
app/ingestion/profiles.py

Declarative per-feed source profiles.

A profile maps each logical sighting field to an ordered tuple of candidate
source column names. Candidates are matched case- and accent-insensitively,
and ``col_N`` names the N-th column positionally. Adding a feed means adding
a profile here, not a new pipeline.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from app.domain.errors import UnknownSourceError
from app.domain.sighting import SourceKind
from app.ingestion.dialect import DELIMITER_PRIORITY

LOGICAL_FIELDS: tuple[str, ...] = (
    "description",
    "date_event",
    "date_year",
    "date_month",
    "date_day",
    "date_hour",
    "date_minute",
    "city",
    "state",
    "country",
    "address",
    "location",
    "latitude",
    "longitude",
    "shape",
    "duration",
)

REQUIRED_FIELDS: tuple[str, ...] = ("description",)


@dataclass(frozen=True)
class SourceProfile:
    """
    Static, read-only configuration for one upstream feed.
    """

    name: str
    field_mapping: Mapping[str, tuple[str, ...]]
    kind: str = SourceKind.CSV
    delimiter: str | None = None
    delimiter_candidates: tuple[str, ...] = DELIMITER_PRIORITY
    has_header: bool = True
    lax_quoting: bool = True
    day_first: bool = False
    # None defers to ImportSettings.encoding.
    encoding: str | None = None
    default_country: str | None = None
    feed_url: str | None = None

    def __post_init__(self) -> None:
        unknown = sorted(set(self.field_mapping) - set(LOGICAL_FIELDS))
        if unknown:
            raise ValueError(f"Profile '{self.name}' maps unknown fields: {', '.join(unknown)}.")
        for required in REQUIRED_FIELDS:
            if not self.field_mapping.get(required):
                raise ValueError(f"Profile '{self.name}' must map the '{required}' field.")

    def candidates(self, logical_field: str) -> tuple[str, ...]:
        return tuple(self.field_mapping.get(logical_field, ()))


class ProfileRegistry:
    """
    Name-keyed lookup of source profiles.
    """

    def __init__(self, profiles: Iterable[SourceProfile] = ()) -> None:
        self._profiles: dict[str, SourceProfile] = {
            profile.name.upper(): profile for profile in profiles
        }

    def get(self, name: str) -> SourceProfile:
        profile = self._profiles.get(name.strip().upper())
        if profile is None:
            raise UnknownSourceError(name, list(self._profiles))
        return profile

    def names(self) -> list[str]:
        return sorted(self._profiles)


NUFORC_PROFILE = SourceProfile(
    name="NUFORC",
    feed_url="https://raw.githubusercontent.com/timothyrenner/nuforc_sightings_data/master/data/processed/nuforc_reports.csv",
    field_mapping={
        "description": ("text", "summary", "description", "comments", "Data.Description excerpt"),
        "date_event": ("date_time", "occurred", "datetime", "date"),
        "date_year": ("Dates.Sighted.Year",),
        "date_month": ("Dates.Sighted.Month",),
        "date_day": ("Dates.Sighted.Day", "Date.Sighted.Day"),
        "date_hour": ("Dates.Sighted.Hour",),
        "date_minute": ("Dates.Sighted.Minute",),
        "city": ("city", "Location.City"),
        "state": ("state", "Location.State"),
        "country": ("country", "Location.Country"),
        "location": ("location",),
        "latitude": ("city_latitude", "latitude", "lat", "Location.Coordinates.Latitude"),
        "longitude": ("city_longitude", "longitude", "lon", "lng", "Location.Coordinates.Longitude"),
        "shape": ("shape", "Data.Shape"),
        "duration": ("duration", "duration (hours/min)", "Data.Encounter duration"),
    },
)

GEIPAN_PROFILE = SourceProfile(
    name="GEIPAN",
    day_first=True,
    default_country="France",
    feed_url="https://www.cnes-geipan.fr/sites/default/files/save_json_import_files/export_cas_pub_20250821093454.csv",
    field_mapping={
        "description": ("resume", "cas_resume", "summary", "description"),
        "date_event": ("date_observation", "date d'observation", "cas_date", "date"),
        "date_year": ("cas_AAAA",),
        "date_month": ("cas_MM",),
        "date_day": ("cas_JJ",),
        "city": ("lieu", "cas_nom", "commune"),
        "state": ("departement", "cas_dpt", "region"),
        "country": ("pays", "country"),
        "latitude": ("latitude", "lat"),
        "longitude": ("longitude", "lon"),
        "shape": ("forme", "shape"),
        "duration": ("duree", "duration"),
    },
)

MUFON_PROFILE = SourceProfile(
    name="MUFON",
    feed_url="https://query.data.world/s/2h22e4xv6np3uh5igvtnlhp7kpajvm",
    field_mapping={
        "description": ("description", "summary", "col_6"),
        "date_event": ("event_date", "date", "col_0"),
        "city": ("city", "col_1"),
        "country": ("country", "col_2"),
        "shape": ("shape", "col_4"),
        "duration": ("duration", "col_5"),
        "latitude": ("latitude", "lat", "col_7"),
        "longitude": ("longitude", "lon", "col_8"),
    },
)

USER_PROFILE = SourceProfile(
    name="USER",
    kind=SourceKind.HAND_SUBMITTED,
    field_mapping={
        "description": ("description", "summary", "text"),
        "date_event": ("date_event", "event_date", "date"),
        "city": ("city",),
        "state": ("state",),
        "country": ("country",),
        "address": ("address",),
        "latitude": ("latitude", "lat"),
        "longitude": ("longitude", "lon", "lng"),
        "shape": ("shape",),
        "duration": ("duration",),
    },
)


DEFAULT_REGISTRY = ProfileRegistry((NUFORC_PROFILE, GEIPAN_PROFILE, MUFON_PROFILE, USER_PROFILE))


def get_profile(name: str) -> SourceProfile:
    """
    Return the built-in profile registered under ``name`` (case-insensitive).
    """

    return DEFAULT_REGISTRY.get(name)

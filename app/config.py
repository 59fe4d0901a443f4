"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class ImportSettings:
    """
    Runtime settings for sighting feed imports.
    """

    chunk_size: int = 500
    fetch_timeout_seconds: float = 30.0
    max_recorded_errors: int = 1000
    log_row_errors: bool = True
    encoding: str = "utf-8"
    user_agent: str = "ufo-report-ingest/1.0"


@dataclass(frozen=True)
class SourceFeedSettings:
    """
    Per-source feed locator overrides; None falls back to the profile default.
    """

    nuforc_url: str | None = None
    geipan_url: str | None = None
    mufon_url: str | None = None

    def override_for(self, source_name: str) -> str | None:
        return {
            "NUFORC": self.nuforc_url,
            "GEIPAN": self.geipan_url,
            "MUFON": self.mufon_url,
        }.get(source_name.strip().upper())


@dataclass(frozen=True)
class GeocodingSettings:
    """
    LocationIQ geocoding collaborator settings.
    """

    api_key: str | None = None
    base_url: str = "https://us1.locationiq.com"
    timeout_seconds: float = 10.0
    batch_limit: int = 50

    @property
    def enabled(self) -> bool:
        return self.api_key is not None


@dataclass(frozen=True)
class CronSettings:
    """
    Trigger protection and in-process scheduling settings.
    """

    cron_token: str | None = None
    enable_in_app_cron: bool = False
    import_hour_utc: int = 4
    geocode_minute_interval: int = 30


@lru_cache(maxsize=1)
def get_import_settings() -> ImportSettings:
    """
    Return cached import settings from environment variables.
    """

    return ImportSettings(
        chunk_size=max(1, _get_int_env("IMPORT_CHUNK_SIZE", 500)),
        fetch_timeout_seconds=max(1.0, _get_float_env("IMPORT_FETCH_TIMEOUT_SECONDS", 30.0)),
        max_recorded_errors=max(1, _get_int_env("IMPORT_MAX_RECORDED_ERRORS", 1000)),
        log_row_errors=_get_bool_env("IMPORT_LOG_ROW_ERRORS", True),
        encoding=_get_str_env("IMPORT_SOURCE_ENCODING", "utf-8"),
        user_agent=_get_str_env("IMPORT_USER_AGENT", "ufo-report-ingest/1.0"),
    )


@lru_cache(maxsize=1)
def get_source_feed_settings() -> SourceFeedSettings:
    """
    Return cached feed locator overrides from environment variables.
    """

    return SourceFeedSettings(
        nuforc_url=_get_optional_str_env("NUFORC_FEED_URL"),
        geipan_url=_get_optional_str_env("GEIPAN_FEED_URL"),
        mufon_url=_get_optional_str_env("MUFON_FEED_URL"),
    )


@lru_cache(maxsize=1)
def get_geocoding_settings() -> GeocodingSettings:
    """
    Return cached geocoding settings from environment variables.
    """

    return GeocodingSettings(
        api_key=_get_optional_str_env("LOCATIONIQ_API_KEY"),
        base_url=_get_str_env("LOCATIONIQ_BASE_URL", "https://us1.locationiq.com").rstrip("/"),
        timeout_seconds=max(1.0, _get_float_env("GEOCODE_TIMEOUT_SECONDS", 10.0)),
        batch_limit=max(1, _get_int_env("GEOCODE_BATCH_LIMIT", 50)),
    )


@lru_cache(maxsize=1)
def get_cron_settings() -> CronSettings:
    """
    Return cached trigger/scheduler settings from environment variables.
    """

    return CronSettings(
        cron_token=_get_optional_str_env("CRON_TOKEN"),
        enable_in_app_cron=_get_bool_env("ENABLE_IN_APP_CRON", False),
        import_hour_utc=min(23, max(0, _get_int_env("IMPORT_CRON_HOUR_UTC", 4))),
        geocode_minute_interval=max(1, _get_int_env("GEOCODE_CRON_INTERVAL_MINUTES", 30)),
    )

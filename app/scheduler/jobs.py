"""
app/scheduler/jobs.py

APScheduler-based scheduler for periodic feed imports and geocoding sweeps.

Schedule (all times UTC)
--------------------------
  import_nuforc   : IMPORT_CRON_HOUR_UTC:00 every day
  import_geipan   : IMPORT_CRON_HOUR_UTC:15 every day
  import_mufon    : IMPORT_CRON_HOUR_UTC:30 every day
  geocode_missing : every GEOCODE_CRON_INTERVAL_MINUTES (only with LOCATIONIQ_API_KEY)

Lifecycle
----------
Only built when ENABLE_IN_APP_CRON is true. The FastAPI ``lifespan`` in
main.py starts it on boot and shuts it down on exit. External cron callers
use the token-guarded HTTP endpoints instead.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from app.config import CronSettings, get_cron_settings, get_geocoding_settings
from app.domain.errors import ImportRunError
from app.ingestion.profiles import get_profile
from app.repositories.import_log_repository import ImportLogRepository
from app.repositories.report_repository import ReportRepository
from app.services.geocoding_service import get_geocoding_service
from app.services.import_session import get_import_session_runner
from db.session import SessionLocal

logger = logging.getLogger(__name__)

SCHEDULED_FEEDS: tuple[tuple[str, int], ...] = (
    ("NUFORC", 0),
    ("GEIPAN", 15),
    ("MUFON", 30),
)


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Yield a fresh session and ensure it is closed on exit."""
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def run_feed_import(source_name: str) -> None:
    """
    Import one feed from its configured locator.

    Fatal run errors are logged; the next scheduled run retries the whole
    source, which is safe because upserts are idempotent.
    """
    logger.info("Scheduler: import starting source=%s", source_name)
    with _session_scope() as db:
        try:
            result = get_import_session_runner().run_import(
                profile=get_profile(source_name),
                store=ReportRepository(db),
                run_log=ImportLogRepository(db),
            )
        except ImportRunError as exc:
            logger.warning(
                "Scheduler: import failed source=%s kind=%s: %s",
                source_name,
                exc.kind,
                exc.message,
            )
            return

    logger.info(
        "Scheduler: import complete source=%s upserted=%s skipped=%s errors=%s",
        source_name,
        result.inserted_or_updated_count,
        result.skipped_count,
        len(result.errors),
    )


def run_geocode_missing() -> None:
    """
    Fill coordinates for one batch of reports missing them.
    """
    with _session_scope() as db:
        try:
            result = get_geocoding_service().geocode_missing(ReportRepository(db))
        except ImportRunError as exc:
            logger.warning("Scheduler: geocode sweep failed kind=%s: %s", exc.kind, exc.message)
            return
    logger.info("Scheduler: geocode sweep updated=%s", result.updated_count)


def build_scheduler(settings: CronSettings | None = None) -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    """
    settings = settings or get_cron_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    for source_name, minute in SCHEDULED_FEEDS:
        scheduler.add_job(
            run_feed_import,
            trigger="cron",
            hour=settings.import_hour_utc,
            minute=minute,
            args=[source_name],
            id=f"import_{source_name.lower()}",
            name=f"Daily {source_name} import",
            replace_existing=True,
            misfire_grace_time=3600,
            max_instances=1,
        )

    if get_geocoding_settings().enabled:
        scheduler.add_job(
            run_geocode_missing,
            trigger="interval",
            minutes=settings.geocode_minute_interval,
            id="geocode_missing",
            name="Geocode reports missing coordinates",
            replace_existing=True,
            max_instances=1,
        )
    else:
        logger.info("Scheduler: geocoding job disabled, LOCATIONIQ_API_KEY not set")

    return scheduler

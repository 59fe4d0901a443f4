from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from app.logging_utils import configure_logging

logger = logging.getLogger(__name__)


def _validate_env() -> None:
    """
    Validate required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.
    """

    from app.config import get_cron_settings
    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    if not any(
        os.getenv(name, "").strip()
        for name in ("DATABASE_URL", "SUPABASE_DB_URL", "LOCAL_DATABASE_URL")
    ):
        errors.append(
            "No database URL configured. Set DATABASE_URL, SUPABASE_DB_URL or LOCAL_DATABASE_URL."
        )

    if not get_cron_settings().cron_token:
        logger.warning("CRON_TOKEN is not set; import and geocode triggers will reject every request.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and start the optional in-process scheduler."""
    _check_db()
    logger.info("Database connectivity confirmed")

    from app.config import get_cron_settings

    scheduler = None
    if get_cron_settings().enable_in_app_cron:
        from app.scheduler.jobs import build_scheduler

        scheduler = build_scheduler()
        scheduler.start()
        logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=True)
            logger.info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    application = FastAPI(
        title="UFO Report Ingest API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import geocoding_router, imports_router

    application.include_router(imports_router)
    application.include_router(geocoding_router)

    @application.get("/health")
    def healthcheck() -> dict[str, bool]:
        return {"ok": True}

    return application


app = create_app()

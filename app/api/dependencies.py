"""
app/api/dependencies.py

Shared FastAPI dependencies: cron-token guard and per-request collaborators.
"""

from __future__ import annotations

import hmac

from fastapi import Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.config import get_cron_settings
from app.repositories.import_log_repository import ImportLogRepository
from app.repositories.report_repository import ReportRepository
from db.session import get_db


def require_cron_token(
    cron_token: str | None = Query(default=None, description="Shared secret for trigger endpoints"),
) -> None:
    """
    Reject the request unless ``cron_token`` matches CRON_TOKEN.

    With no CRON_TOKEN configured every trigger request is rejected.
    """

    expected = get_cron_settings().cron_token
    if not expected or not cron_token or not hmac.compare_digest(cron_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )


def get_report_store(db: Session = Depends(get_db)) -> ReportRepository:
    return ReportRepository(db)


def get_import_log(db: Session = Depends(get_db)) -> ImportLogRepository:
    return ImportLogRepository(db)

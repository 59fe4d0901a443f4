"""
app/repositories/import_log_repository.py

Persistence of one summary row per import run.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app.domain.errors import ImportRunError
from app.domain.sighting import ImportResult
from db.models.import_log import ImportLog, ImportRunStatus

_MAX_LOGGED_ERRORS = 50


def resolve_run_status(result: ImportResult | None, error: ImportRunError | None) -> str:
    if error is not None or result is None:
        return ImportRunStatus.FAILED
    if result.cancelled:
        return ImportRunStatus.CANCELLED
    if result.has_errors:
        return ImportRunStatus.PARTIAL
    return ImportRunStatus.COMPLETED


class ImportLogRepository:
    """
    Writes ``imports_log`` rows.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def record_run(
        self,
        *,
        source_name: str,
        locator: str | None,
        started_at: datetime,
        finished_at: datetime,
        result: ImportResult | None = None,
        error: ImportRunError | None = None,
    ) -> ImportLog:
        errors_json: list[dict[str, Any]] | None = None
        if result is not None and result.errors:
            errors_json = result.to_dict()["errors"][:_MAX_LOGGED_ERRORS]

        entry = ImportLog(
            source_name=source_name,
            locator=locator,
            status=resolve_run_status(result, error),
            parsed_count=result.parsed_count if result else 0,
            normalized_count=result.normalized_count if result else 0,
            inserted_or_updated_count=result.inserted_or_updated_count if result else 0,
            skipped_count=result.skipped_count if result else 0,
            error_count=len(result.errors) if result else 1,
            error_kind=error.kind if error is not None else None,
            error_message=error.message if error is not None else None,
            errors_json=errors_json,
            started_at=started_at,
            finished_at=finished_at,
        )
        try:
            self._session.add(entry)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return entry

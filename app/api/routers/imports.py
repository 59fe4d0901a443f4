"""
app/api/routers/imports.py

Import trigger and hand-submitted report endpoints.

Handlers only translate requests into runner calls and results into responses.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from app.api.dependencies import get_import_log, get_report_store, require_cron_token
from app.domain.errors import (
    EmptyInputError,
    FetchFailed,
    FetchTimeout,
    ImportRunError,
    StorageUnavailable,
    UnknownSourceError,
)
from app.ingestion.profiles import USER_PROFILE, get_profile
from app.repositories.import_log_repository import ImportLogRepository
from app.repositories.report_repository import ReportRepository
from app.schemas.imports import ImportResultResponse
from app.services.import_session import ImportSessionRunner, get_import_session_runner

router = APIRouter(prefix="/api", tags=["imports"])

_STATUS_BY_ERROR: tuple[tuple[type[ImportRunError], int], ...] = (
    (FetchTimeout, status.HTTP_504_GATEWAY_TIMEOUT),
    (FetchFailed, status.HTTP_502_BAD_GATEWAY),
    (EmptyInputError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StorageUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def import_error_to_http(exc: ImportRunError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.to_dict())
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.to_dict())


@router.post(
    "/import/{source}",
    response_model=ImportResultResponse,
    dependencies=[Depends(require_cron_token)],
)
def trigger_import(
    source: str = Path(..., description="Source profile name, e.g. NUFORC, GEIPAN, MUFON"),
    locator: str | None = Query(default=None, description="Override the configured feed URL or path"),
    chunk_size: int | None = Query(default=None, ge=1, le=5000),
    store: ReportRepository = Depends(get_report_store),
    run_log: ImportLogRepository = Depends(get_import_log),
    runner: ImportSessionRunner = Depends(get_import_session_runner),
) -> ImportResultResponse:
    """
    Run one import for ``source`` and return its summary.
    """

    try:
        profile = get_profile(source)
    except UnknownSourceError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    try:
        result = runner.run_import(
            profile=profile,
            store=store,
            locator=locator,
            chunk_size=chunk_size,
            run_log=run_log,
        )
    except ImportRunError as exc:
        raise import_error_to_http(exc) from exc

    return ImportResultResponse.from_result(result)


@router.post("/reports", response_model=ImportResultResponse)
def submit_reports(
    payload: dict[str, Any] | list[Any] = Body(..., description="One report object or a list of them"),
    store: ReportRepository = Depends(get_report_store),
    run_log: ImportLogRepository = Depends(get_import_log),
    runner: ImportSessionRunner = Depends(get_import_session_runner),
) -> ImportResultResponse:
    """
    Store hand-submitted reports through the shared map and upsert path.
    """

    items = payload if isinstance(payload, list) else [payload]
    try:
        result = runner.run_payload(
            profile=USER_PROFILE,
            items=items,
            store=store,
            run_log=run_log,
        )
    except ImportRunError as exc:
        raise import_error_to_http(exc) from exc

    return ImportResultResponse.from_result(result)

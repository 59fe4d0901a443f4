"""
app/repositories/report_repository.py

Persistence layer for sighting reports: conflict-aware upserts keyed by the
dedupe key, plus the queries used by the geocoding sweep.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.errors import ChunkUpsertFailed, StorageUnavailable
from app.domain.sighting import NormalizedSighting
from db.models.report import REPORTS_TABLE, Report

logger = logging.getLogger(__name__)

DEFAULT_CONFLICT_KEY = "dedupe_key"

_MUTABLE_COLUMNS: tuple[str, ...] = (
    "description",
    "date_event",
    "city",
    "state",
    "country",
    "address",
    "shape",
    "duration",
    "source_name",
)
# Coordinates filled in by the geocoding sweep survive a re-import without them.
_COALESCED_COLUMNS: tuple[str, ...] = ("latitude", "longitude")


def build_upsert_statement(
    payloads: Sequence[dict[str, Any]],
    *,
    conflict_key: str = DEFAULT_CONFLICT_KEY,
) -> Insert:
    """
    Build ``INSERT .. ON CONFLICT (conflict_key) DO UPDATE .. RETURNING id``.
    """

    stmt = insert(Report).values(list(payloads))
    excluded = stmt.excluded
    set_: dict[str, Any] = {name: excluded[name] for name in _MUTABLE_COLUMNS}
    for name in _COALESCED_COLUMNS:
        set_[name] = func.coalesce(excluded[name], getattr(Report, name))
    set_["updated_at"] = func.now()
    return stmt.on_conflict_do_update(index_elements=[conflict_key], set_=set_).returning(Report.id)


def collapse_duplicate_keys(
    payloads: Sequence[dict[str, Any]],
    *,
    conflict_key: str = DEFAULT_CONFLICT_KEY,
) -> list[dict[str, Any]]:
    """
    Keep the last payload per conflict key, in first-seen order.

    PostgreSQL rejects one ON CONFLICT DO UPDATE statement that touches the
    same row twice.
    """

    by_key: dict[Any, dict[str, Any]] = {}
    for payload in payloads:
        by_key[payload[conflict_key]] = payload
    return list(by_key.values())


def _is_connection_error(exc: SQLAlchemyError) -> bool:
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


class ReportRepository:
    """
    Storage collaborator for the batch upsert orchestrator.

    Each ``upsert`` call is its own transaction: committed on success, rolled
    back on failure, so a failed chunk never leaves half-written rows behind.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert(
        self,
        table: str,
        rows: Sequence[NormalizedSighting],
        conflict_key: str = DEFAULT_CONFLICT_KEY,
    ) -> int:
        if table != REPORTS_TABLE:
            raise ValueError(f"Unsupported upsert table '{table}'.")
        if not rows:
            return 0

        payloads = collapse_duplicate_keys(
            [{"id": uuid.uuid4(), **row.to_payload()} for row in rows],
            conflict_key=conflict_key,
        )
        stmt = build_upsert_statement(payloads, conflict_key=conflict_key)
        try:
            affected = len(self._session.scalars(stmt).all())
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            if _is_connection_error(exc):
                raise StorageUnavailable(f"Report store unreachable: {exc}") from exc
            raise ChunkUpsertFailed(f"Upsert of {len(payloads)} rows failed: {exc}") from exc

        logger.debug("Upserted report chunk rows=%s affected=%s", len(payloads), affected)
        return affected

    def list_missing_coordinates(self, limit: int) -> list[Report]:
        """
        Return stored reports that have an address but no latitude yet.

        Never-tried reports come first; reports whose lookup failed rotate to
        the back, oldest failure first.
        """

        stmt = (
            select(Report)
            .where(Report.address.is_not(None), Report.latitude.is_(None))
            .order_by(Report.geocode_failed_at.asc().nulls_first(), Report.created_at)
            .limit(max(1, limit))
        )
        try:
            return list(self._session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise StorageUnavailable(f"Report store unreachable: {exc}") from exc

    def update_coordinates(self, report_id: uuid.UUID, latitude: float, longitude: float) -> None:
        stmt = (
            update(Report)
            .where(Report.id == report_id)
            .values(latitude=latitude, longitude=longitude, geocode_failed_at=None, updated_at=func.now())
        )
        try:
            self._session.execute(stmt)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageUnavailable(f"Coordinate update failed: {exc}") from exc

    def mark_geocode_failed(self, report_id: uuid.UUID) -> None:
        stmt = update(Report).where(Report.id == report_id).values(geocode_failed_at=func.now())
        try:
            self._session.execute(stmt)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageUnavailable(f"Geocode failure update failed: {exc}") from exc

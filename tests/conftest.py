"""
tests/conftest.py

In-memory collaborators shared by the pipeline, runner and API tests.
No database, no network.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest

from app.config import ImportSettings
from app.domain.errors import ChunkUpsertFailed, FetchFailed, StorageUnavailable
from app.domain.sighting import NormalizedSighting
from app.ingestion.profiles import SourceProfile


class FakeStore:
    """
    Dict-backed store keyed by the conflict key.

    ``fail_calls`` are call numbers (0-based) that raise ChunkUpsertFailed;
    ``unavailable_call`` raises StorageUnavailable.
    """

    def __init__(
        self,
        *,
        fail_calls: Sequence[int] = (),
        unavailable_call: int | None = None,
        report_counts: bool = True,
    ) -> None:
        self.rows: dict[str, NormalizedSighting] = {}
        self.calls: list[int] = []
        self.new_rows = 0
        self._fail_calls = set(fail_calls)
        self._unavailable_call = unavailable_call
        self._report_counts = report_counts

    def upsert(self, table: str, rows: Sequence[NormalizedSighting], conflict_key: str) -> int | None:
        assert table == "reports"
        call_number = len(self.calls)
        self.calls.append(len(rows))
        if call_number in self._fail_calls:
            raise ChunkUpsertFailed("duplicate key value violates constraint")
        if call_number == self._unavailable_call:
            raise StorageUnavailable("connection refused")

        for row in rows:
            key = getattr(row, conflict_key)
            if key not in self.rows:
                self.new_rows += 1
            self.rows[key] = row
        return len(rows) if self._report_counts else None


class FakeFetcher:
    def __init__(self, payload: bytes | None = None, *, error: FetchFailed | None = None) -> None:
        self.payload = payload
        self.error = error
        self.locators: list[str] = []

    def fetch(self, locator: str) -> bytes:
        self.locators.append(locator)
        if self.error is not None:
            raise self.error
        assert self.payload is not None
        return self.payload


class FakeRunLog:
    def __init__(self, *, fail: bool = False) -> None:
        self.runs: list[dict[str, Any]] = []
        self._fail = fail

    def record_run(self, **fields: Any) -> None:
        if self._fail:
            raise RuntimeError("imports_log unavailable")
        self.runs.append(fields)


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def fake_run_log() -> FakeRunLog:
    return FakeRunLog()


@pytest.fixture()
def import_settings() -> ImportSettings:
    return ImportSettings(chunk_size=500, max_recorded_errors=1000, log_row_errors=True)


@pytest.fixture()
def summary_profile() -> SourceProfile:
    """Profile with the date/city/summary layout used across runner tests."""
    return SourceProfile(
        name="TEST",
        delimiter=";",
        feed_url="file:///dev/null",
        field_mapping={
            "date_event": ("date",),
            "city": ("city",),
            "description": ("summary",),
        },
    )


@pytest.fixture()
def store_factory() -> type[FakeStore]:
    return FakeStore


@pytest.fixture()
def fetcher_factory() -> type[FakeFetcher]:
    return FakeFetcher


@pytest.fixture()
def run_log_factory() -> type[FakeRunLog]:
    return FakeRunLog

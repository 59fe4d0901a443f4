"""
app/services/import_session.py

Import Session Runner: one callable operation per source that takes a raw
source locator through fetch, text normalization, dialect detection, parsing,
field mapping and batch upsert, and returns an ImportResult.

Only fetch failures move a run to the ``failed`` state. An empty source and an
unreachable store are raised to the caller as well, but every row- or
chunk-level problem is recorded in the result and the run still finishes.

Storage and run-log collaborators are passed per call; the runner itself holds
only read-only configuration and can be shared across threads.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import replace
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Protocol

from app.config import (
    ImportSettings,
    SourceFeedSettings,
    get_import_settings,
    get_source_feed_settings,
)
from app.connectors.source_fetcher import SourceFetcher
from app.domain.errors import EmptyInputError, FetchFailed, ImportRunError, StorageUnavailable
from app.domain.sighting import (
    IMPORT_STATE_ORDER,
    ErrorKind,
    ImportResult,
    ImportState,
    NormalizedSighting,
    RawRow,
    RawSource,
    RowError,
    SourceKind,
)
from app.ingestion.dialect import detect_dialect
from app.ingestion.encoding import normalize_text
from app.ingestion.parser import TabularParser, coerce_row, parse_json_rows
from app.ingestion.profiles import SourceProfile
from app.logging_utils import log_event
from app.mappers.sighting_mapper import SightingMapper, is_blank
from app.services.batch_upsert import BatchUpsertOrchestrator, CancelToken, SightingStore

logger = logging.getLogger(__name__)


class RawSourceFetcher(Protocol):
    def fetch(self, locator: str) -> bytes: ...


class ImportRunLog(Protocol):
    def record_run(
        self,
        *,
        source_name: str,
        locator: str | None,
        started_at: datetime,
        finished_at: datetime,
        result: ImportResult | None = None,
        error: ImportRunError | None = None,
    ) -> Any: ...


class InvalidStateTransition(RuntimeError):
    """
    Raised when a run is moved backwards or into ``failed`` outside fetching.
    """


class ImportSession:
    """
    Mutable state of a single import invocation.

    Holds the state machine position and the running counters; never shared
    between invocations.
    """

    def __init__(self, *, source_name: str, max_recorded_errors: int, log_row_errors: bool) -> None:
        self.source_name = source_name
        self.run_id = uuid.uuid4().hex[:12]
        self.state = ImportState.IDLE
        self.history: list[str] = [ImportState.IDLE]
        self.started_at = datetime.now(timezone.utc)

        self.parsed_count = 0
        self.skipped_count = 0
        self.row_errors: list[RowError] = []
        self._max_recorded_errors = max(1, max_recorded_errors)
        self._log_row_errors = log_row_errors

    def advance(self, state: str) -> None:
        """
        Move forward to ``state``; intermediate stages may be skipped.
        """

        if self.state == ImportState.FAILED:
            raise InvalidStateTransition(f"Run {self.run_id} already failed.")
        if IMPORT_STATE_ORDER.index(state) <= IMPORT_STATE_ORDER.index(self.state):
            raise InvalidStateTransition(f"Cannot move from {self.state} to {state}.")
        self._enter(state)

    def fail(self) -> None:
        if self.state != ImportState.FETCHING:
            raise InvalidStateTransition(f"Cannot fail from {self.state}; only fetching is fatal.")
        self._enter(ImportState.FAILED)

    def _enter(self, state: str) -> None:
        self.state = state
        self.history.append(state)
        log_event(
            logger,
            logging.INFO,
            "import.stage",
            run_id=self.run_id,
            source=self.source_name,
            stage=state,
        )

    def next_row_index(self) -> int:
        index = self.parsed_count
        self.parsed_count += 1
        return index

    def record_parse_skip(self, line_number: int, reason: str) -> None:
        # The parser already logged this line.
        index = self.next_row_index()
        self._record_skip(
            RowError(
                row_index=index,
                reason=f"line {line_number}: {reason}",
                kind=ErrorKind.ROW_PARSE_SKIPPED,
            )
        )

    def record_mapping_skip(self, row_index: int, reason: str) -> None:
        if self._log_row_errors:
            logger.warning(
                "Skipping row source=%s row=%s reason=%s",
                self.source_name,
                row_index,
                reason,
            )
        self._record_skip(RowError(row_index=row_index, reason=reason, kind=ErrorKind.ROW_MAPPING_SKIPPED))

    def _record_skip(self, error: RowError) -> None:
        self.skipped_count += 1
        if len(self.row_errors) < self._max_recorded_errors:
            self.row_errors.append(error)


def resolve_locator(
    profile: SourceProfile,
    override: str | None,
    feed_settings: SourceFeedSettings | None = None,
) -> str:
    """
    Pick the locator for a run: explicit override, then configured feed URL,
    then the profile default.
    """

    if override and override.strip():
        return override.strip()
    if feed_settings is not None:
        configured = feed_settings.override_for(profile.name)
        if configured:
            return configured
    if profile.feed_url:
        return profile.feed_url
    raise FetchFailed(f"No locator configured for source '{profile.name}'.", source_name=profile.name)


def _looks_like_json_array(text: str) -> bool:
    return text.lstrip().startswith("[")


class ImportSessionRunner:
    """
    Runs imports for any source profile through one shared pipeline.
    """

    def __init__(
        self,
        *,
        settings: ImportSettings,
        fetcher: RawSourceFetcher,
        feed_settings: SourceFeedSettings | None = None,
        parser: TabularParser | None = None,
    ) -> None:
        self._settings = settings
        self._fetcher = fetcher
        self._feed_settings = feed_settings
        self._parser = parser or TabularParser()

    def run_import(
        self,
        *,
        profile: SourceProfile,
        store: SightingStore,
        locator: str | None = None,
        chunk_size: int | None = None,
        cancel_token: CancelToken | None = None,
        run_log: ImportRunLog | None = None,
    ) -> ImportResult:
        """
        Fetch, parse, map and upsert one source.

        Raises:
            FetchFailed / FetchTimeout: the source could not be retrieved.
            EmptyInputError: the source held no parseable lines.
            StorageUnavailable: the store could not be reached.
        """

        session = self._new_session(profile)
        resolved_locator: str | None = locator

        session.advance(ImportState.FETCHING)
        try:
            resolved_locator = resolve_locator(profile, locator, self._feed_settings)
            raw = RawSource(
                source_name=profile.name,
                kind=profile.kind,
                payload=self._fetcher.fetch(resolved_locator),
                locator=resolved_locator,
            )
        except FetchFailed as exc:
            exc.source_name = exc.source_name or profile.name
            session.fail()
            self._log_fatal(session, exc)
            self._record_run(run_log, session, resolved_locator, error=exc)
            raise

        try:
            session.advance(ImportState.NORMALIZING)
            text = normalize_text(raw.payload, encoding=profile.encoding or self._settings.encoding)

            session.advance(ImportState.DETECTING)
            rows = self._parse(session, profile, text, hint=profile.delimiter or resolved_locator)

            return self._map_and_upsert(
                session,
                profile,
                rows,
                store=store,
                chunk_size=chunk_size,
                cancel_token=cancel_token,
                run_log=run_log,
                locator=resolved_locator,
            )
        except (EmptyInputError, StorageUnavailable) as exc:
            exc.source_name = exc.source_name or profile.name
            self._log_fatal(session, exc)
            self._record_run(run_log, session, resolved_locator, error=exc)
            raise

    def run_payload(
        self,
        *,
        profile: SourceProfile,
        items: Sequence[Any],
        store: SightingStore,
        chunk_size: int | None = None,
        run_log: ImportRunLog | None = None,
    ) -> ImportResult:
        """
        Import already-structured records (hand-submitted reports).

        No fetch or text stage runs; non-object items are skipped as
        unparseable rows.
        """

        session = self._new_session(profile)
        try:
            if not items:
                raise EmptyInputError("No reports submitted.", source_name=profile.name)
            session.advance(ImportState.PARSING)
            rows = self._iter_payload_rows(session, items)
            return self._map_and_upsert(
                session,
                profile,
                rows,
                store=store,
                chunk_size=chunk_size,
                cancel_token=None,
                run_log=run_log,
                locator=None,
            )
        except (EmptyInputError, StorageUnavailable) as exc:
            self._log_fatal(session, exc)
            self._record_run(run_log, session, None, error=exc)
            raise

    def _new_session(self, profile: SourceProfile) -> ImportSession:
        return ImportSession(
            source_name=profile.name,
            max_recorded_errors=self._settings.max_recorded_errors,
            log_row_errors=self._settings.log_row_errors,
        )

    def _parse(
        self,
        session: ImportSession,
        profile: SourceProfile,
        text: str,
        *,
        hint: str | None,
    ) -> Iterator[RawRow]:
        if profile.kind == SourceKind.JSON_ARRAY:
            session.advance(ImportState.PARSING)
            return parse_json_rows(text, on_skip=session.record_parse_skip)

        if _looks_like_json_array(text):
            # Mirrors of a CSV feed sometimes serve JSON; a "[" header is still CSV.
            try:
                json_rows = parse_json_rows(text, on_skip=session.record_parse_skip)
            except EmptyInputError:
                logger.info("Source is not a JSON array, parsing as delimited text source=%s", session.source_name)
            else:
                session.advance(ImportState.PARSING)
                return json_rows

        dialect = detect_dialect(text, hint, candidates=profile.delimiter_candidates)
        dialect = replace(dialect, lax_quoting=profile.lax_quoting)
        log_event(
            logger,
            logging.INFO,
            "import.dialect",
            run_id=session.run_id,
            source=session.source_name,
            delimiter=dialect.delimiter,
        )

        session.advance(ImportState.PARSING)
        return self._parser.parse(
            text,
            dialect,
            has_header=profile.has_header,
            on_skip=session.record_parse_skip,
        )

    @staticmethod
    def _iter_payload_rows(session: ImportSession, items: Iterable[Any]) -> Iterator[RawRow]:
        for position, item in enumerate(items):
            if not isinstance(item, Mapping):
                session.record_parse_skip(position + 1, f"expected object, got {type(item).__name__}")
                continue
            yield coerce_row(item)

    def _map_and_upsert(
        self,
        session: ImportSession,
        profile: SourceProfile,
        rows: Iterator[RawRow],
        *,
        store: SightingStore,
        chunk_size: int | None,
        cancel_token: CancelToken | None,
        run_log: ImportRunLog | None,
        locator: str | None,
    ) -> ImportResult:
        session.advance(ImportState.MAPPING)
        sightings = self._map_rows(session, profile, rows)

        session.advance(ImportState.UPSERTING)
        orchestrator = BatchUpsertOrchestrator(
            store,
            chunk_size=chunk_size or self._settings.chunk_size,
        )
        upserted = orchestrator.upsert_all(sightings, cancel_token=cancel_token)

        session.advance(ImportState.DONE)
        result = ImportResult(
            source_name=profile.name,
            parsed_count=session.parsed_count,
            normalized_count=len(sightings),
            inserted_or_updated_count=upserted.inserted_or_updated_count,
            skipped_count=session.skipped_count,
            errors=[*session.row_errors, *upserted.errors],
            state=ImportState.DONE,
            cancelled=upserted.cancelled,
        )
        log_event(
            logger,
            logging.INFO,
            "import.finished",
            run_id=session.run_id,
            source=profile.name,
            parsed=result.parsed_count,
            normalized=result.normalized_count,
            upserted=result.inserted_or_updated_count,
            skipped=result.skipped_count,
            errors=len(result.errors),
            cancelled=result.cancelled,
        )
        self._record_run(run_log, session, locator, result=result)
        return result

    @staticmethod
    def _map_rows(
        session: ImportSession,
        profile: SourceProfile,
        rows: Iterator[RawRow],
    ) -> list[NormalizedSighting]:
        mapper = SightingMapper()
        sightings: list[NormalizedSighting] = []
        for row in rows:
            index = session.next_row_index()
            if all(is_blank(value) for value in row.values()):
                session.record_mapping_skip(index, "row has no values")
                continue
            sighting = mapper.map_row(row, profile)
            if sighting is None:
                session.record_mapping_skip(index, "missing required field 'description'")
                continue
            sightings.append(sighting)
        return sightings

    @staticmethod
    def _log_fatal(session: ImportSession, exc: ImportRunError) -> None:
        logger.error(
            "Import aborted source=%s run_id=%s stage=%s kind=%s error=%s",
            session.source_name,
            session.run_id,
            session.history[-2] if session.state == ImportState.FAILED else session.state,
            exc.kind,
            exc.message,
        )

    @staticmethod
    def _record_run(
        run_log: ImportRunLog | None,
        session: ImportSession,
        locator: str | None,
        *,
        result: ImportResult | None = None,
        error: ImportRunError | None = None,
    ) -> None:
        if run_log is None:
            return
        try:
            run_log.record_run(
                source_name=session.source_name,
                locator=locator,
                started_at=session.started_at,
                finished_at=datetime.now(timezone.utc),
                result=result,
                error=error,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Import run log write failed source=%s run_id=%s: %s",
                session.source_name,
                session.run_id,
                exc,
            )


@lru_cache(maxsize=1)
def get_import_session_runner() -> ImportSessionRunner:
    """
    Build and cache the runner with env-driven settings.
    """

    settings = get_import_settings()
    return ImportSessionRunner(
        settings=settings,
        fetcher=SourceFetcher(settings),
        feed_settings=get_source_feed_settings(),
    )

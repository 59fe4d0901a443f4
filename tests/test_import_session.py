"""
tests/test_import_session.py

Import Session Runner: end-to-end runs over in-memory collaborators.

Coverage
--------
- Date/city/summary end-to-end example
- Idempotent re-import of the same local file
- Fatal fetch, empty input and storage errors
- Row-level skips (parse and mapping) and error capping
- JSON-array feeds and hand-submitted reports
- Cancellation, locator resolution, state machine rules
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from app.config import ImportSettings, SourceFeedSettings
from app.connectors.source_fetcher import SourceFetcher
from app.domain.errors import EmptyInputError, FetchFailed, FetchTimeout, StorageUnavailable
from app.domain.sighting import ErrorKind, ImportState, SourceKind
from app.ingestion.profiles import GEIPAN_PROFILE, USER_PROFILE, SourceProfile
from app.services.batch_upsert import CancelToken
from app.services.import_session import (
    ImportSession,
    ImportSessionRunner,
    InvalidStateTransition,
    resolve_locator,
)

E2E_TEXT = b"date;city;summary\n2024-01-01;Paris;Bright light\n;;"


def _runner(settings: ImportSettings, fetcher, **kwargs) -> ImportSessionRunner:
    return ImportSessionRunner(settings=settings, fetcher=fetcher, **kwargs)


def test_end_to_end_example(import_settings, fetcher_factory, fake_store, summary_profile) -> None:
    runner = _runner(import_settings, fetcher_factory(E2E_TEXT))

    result = runner.run_import(profile=summary_profile, store=fake_store)

    assert result.parsed_count == 2
    assert result.normalized_count == 1
    assert result.skipped_count == 1
    assert result.inserted_or_updated_count == 1
    assert result.state == ImportState.DONE
    assert [error.kind for error in result.errors] == [ErrorKind.ROW_MAPPING_SKIPPED]
    assert result.errors[0].row_index == 1

    (stored,) = fake_store.rows.values()
    assert stored.description == "Bright light"
    assert stored.city == "Paris"
    assert stored.date_event == "2024-01-01"
    assert stored.source_name == "TEST"


def test_reimport_of_same_file_is_idempotent(tmp_path, import_settings, fake_store) -> None:
    feed = tmp_path / "geipan.csv"
    feed.write_bytes(
        "date_observation;lieu;resume;latitude;longitude\n"
        "12/03/2024;Toulouse;Boule lumineuse;43,6;1,44\n"
        "13/03/2024;Albi;Triangle silencieux;;\n".encode("utf-8")
    )
    runner = _runner(import_settings, SourceFetcher(import_settings))

    first = runner.run_import(profile=GEIPAN_PROFILE, store=fake_store, locator=str(feed))
    keys_after_first = set(fake_store.rows)
    new_after_first = fake_store.new_rows
    second = runner.run_import(profile=GEIPAN_PROFILE, store=fake_store, locator=feed.as_uri())

    assert first.normalized_count == 2
    assert set(fake_store.rows) == keys_after_first
    assert second.inserted_or_updated_count == second.normalized_count == 2
    assert fake_store.new_rows == new_after_first == 2


def test_fetch_timeout_is_fatal_and_logged(import_settings, fetcher_factory, fake_store, fake_run_log, summary_profile) -> None:
    fetcher = fetcher_factory(error=FetchTimeout("timed out after 30s"))
    runner = _runner(import_settings, fetcher)

    with pytest.raises(FetchTimeout) as exc_info:
        runner.run_import(profile=summary_profile, store=fake_store, run_log=fake_run_log)

    assert exc_info.value.source_name == "TEST"
    assert fake_store.calls == []
    (run,) = fake_run_log.runs
    assert run["error"].kind == ErrorKind.FETCH_TIMEOUT
    assert run["result"] is None


def test_missing_locator_is_a_fetch_failure(import_settings, fetcher_factory, fake_store) -> None:
    profile = SourceProfile(name="NOFEED", field_mapping={"description": ("text",)})
    with pytest.raises(FetchFailed):
        _runner(import_settings, fetcher_factory(b"")).run_import(profile=profile, store=fake_store)


def test_empty_source_raises_empty_input(import_settings, fetcher_factory, fake_store, fake_run_log, summary_profile) -> None:
    runner = _runner(import_settings, fetcher_factory(b"\xef\xbb\xbf\r\n  \r\n"))

    with pytest.raises(EmptyInputError):
        runner.run_import(profile=summary_profile, store=fake_store, run_log=fake_run_log)

    assert fake_run_log.runs[0]["error"].kind == ErrorKind.EMPTY_INPUT


def test_storage_unavailable_propagates(import_settings, fetcher_factory, store_factory, fake_run_log, summary_profile) -> None:
    store = store_factory(unavailable_call=0)
    runner = _runner(import_settings, fetcher_factory(E2E_TEXT))

    with pytest.raises(StorageUnavailable):
        runner.run_import(profile=summary_profile, store=store, run_log=fake_run_log)

    assert fake_run_log.runs[0]["error"].kind == ErrorKind.STORAGE_UNAVAILABLE


def test_malformed_line_is_counted_and_run_continues(import_settings, fetcher_factory, fake_store, summary_profile) -> None:
    text = b'date;city;summary\n2024-01-01;"Paris;broken\n2024-01-02;Lyon;Orb'
    result = _runner(import_settings, fetcher_factory(text)).run_import(profile=summary_profile, store=fake_store)

    assert result.parsed_count == 2
    assert result.normalized_count == 1
    assert result.skipped_count == 1
    assert result.errors[0].kind == ErrorKind.ROW_PARSE_SKIPPED
    assert result.errors[0].reason == "line 2: unbalanced quote"


def test_short_rows_are_imported_with_nulls(import_settings, fetcher_factory, fake_store, summary_profile) -> None:
    profile = replace(
        summary_profile,
        field_mapping={"description": ("summary",), "date_event": ("date",), "city": ("city",)},
    )
    text = b"summary;date;city\nDisc;2020-05-05;Reno\nOrb\nCigar;2021-01-01;Elko"
    result = _runner(import_settings, fetcher_factory(text)).run_import(profile=profile, store=fake_store)

    assert result.normalized_count == 3
    assert result.skipped_count == 0
    short = next(row for row in fake_store.rows.values() if row.description == "Orb")
    assert short.date_event is None and short.city is None


def test_recorded_errors_are_capped_but_skips_are_counted(fetcher_factory, fake_store, summary_profile) -> None:
    settings = ImportSettings(max_recorded_errors=2, log_row_errors=False)
    text = b"date;city;summary\n" + b"2024-01-01;Paris;\n" * 5 + b"2024-01-01;Paris;Orb\n"

    result = _runner(settings, fetcher_factory(text)).run_import(profile=summary_profile, store=fake_store)

    assert result.skipped_count == 5
    assert len(result.errors) == 2
    assert result.normalized_count == 1


def test_chunk_failures_are_reported_after_row_errors(import_settings, fetcher_factory, store_factory, summary_profile) -> None:
    store = store_factory(fail_calls=[0])
    result = _runner(import_settings, fetcher_factory(E2E_TEXT)).run_import(profile=summary_profile, store=store)

    assert [error.kind for error in result.errors] == [
        ErrorKind.ROW_MAPPING_SKIPPED,
        ErrorKind.CHUNK_UPSERT_FAILED,
    ]
    assert result.inserted_or_updated_count == 0
    assert result.state == ImportState.DONE


def test_json_array_feed_is_detected(import_settings, fetcher_factory, fake_store, summary_profile) -> None:
    payload = b'[{"summary": "Orb", "date": "2024-05-01", "city": "Nantes"}, "junk"]'
    result = _runner(import_settings, fetcher_factory(payload)).run_import(profile=summary_profile, store=fake_store)

    assert result.parsed_count == 2
    assert result.normalized_count == 1
    assert result.errors[0].kind == ErrorKind.ROW_PARSE_SKIPPED


def test_json_profile_with_invalid_payload_is_empty_input(import_settings, fetcher_factory, fake_store, summary_profile) -> None:
    profile = replace(summary_profile, kind=SourceKind.JSON_ARRAY)
    with pytest.raises(EmptyInputError):
        _runner(import_settings, fetcher_factory(b"{oops")).run_import(profile=profile, store=fake_store)


def test_bracketed_csv_header_is_not_treated_as_json(import_settings, fetcher_factory, fake_store, summary_profile) -> None:
    profile = replace(summary_profile, delimiter=",")
    text = b"[summary],city\nBright light,Paris\n"

    result = _runner(import_settings, fetcher_factory(text)).run_import(profile=profile, store=fake_store)

    assert result.normalized_count == 1
    (stored,) = fake_store.rows.values()
    assert stored.description == "Bright light"
    assert stored.city == "Paris"


def test_configured_source_encoding_is_used(fetcher_factory, fake_store, summary_profile) -> None:
    settings = ImportSettings(encoding="utf-16-le")
    payload = "date;city;summary\n2024-01-01;Orl\u00e9ans;Bright light".encode("utf-16-le")

    _runner(settings, fetcher_factory(payload)).run_import(profile=summary_profile, store=fake_store)

    (stored,) = fake_store.rows.values()
    assert stored.description == "Bright light"
    assert stored.city == "Orl\u00e9ans"


def test_profile_encoding_overrides_settings(fetcher_factory, fake_store, summary_profile) -> None:
    settings = ImportSettings(encoding="utf-16-le")
    profile = replace(summary_profile, encoding="utf-8")

    _runner(settings, fetcher_factory(E2E_TEXT)).run_import(profile=profile, store=fake_store)

    (stored,) = fake_store.rows.values()
    assert stored.description == "Bright light"


def test_hand_submitted_reports(import_settings, fetcher_factory, fake_store, fake_run_log) -> None:
    runner = _runner(import_settings, fetcher_factory(b""))
    items = [{"description": "Hovering disc", "lat": 48.85, "lon": "2.35", "shape": "DISC"}, "junk"]

    result = runner.run_payload(profile=USER_PROFILE, items=items, store=fake_store, run_log=fake_run_log)

    assert result.parsed_count == 2
    assert result.normalized_count == 1
    assert result.skipped_count == 1
    (stored,) = fake_store.rows.values()
    assert (stored.latitude, stored.longitude, stored.shape) == (48.85, 2.35, "disc")
    assert stored.source_name == "USER"
    assert fake_run_log.runs[0]["locator"] is None


def test_empty_submission_is_rejected(import_settings, fetcher_factory, fake_store) -> None:
    with pytest.raises(EmptyInputError):
        _runner(import_settings, fetcher_factory(b"")).run_payload(profile=USER_PROFILE, items=[], store=fake_store)


def test_cancelled_run_finishes_with_flag(import_settings, fetcher_factory, fake_store, summary_profile) -> None:
    token = CancelToken()
    token.cancel()

    result = _runner(import_settings, fetcher_factory(E2E_TEXT)).run_import(
        profile=summary_profile,
        store=fake_store,
        cancel_token=token,
    )

    assert result.cancelled is True
    assert result.state == ImportState.DONE
    assert result.normalized_count == 1
    assert fake_store.calls == []


def test_chunk_size_option(import_settings, fetcher_factory, fake_store, summary_profile) -> None:
    text = b"date;city;summary\n" + b"".join(f"2024-01-0{i};Paris;Orb {i}\n".encode() for i in range(1, 6))
    _runner(import_settings, fetcher_factory(text)).run_import(profile=summary_profile, store=fake_store, chunk_size=2)
    assert fake_store.calls == [2, 2, 1]


def test_run_log_failure_does_not_fail_the_run(import_settings, fetcher_factory, fake_store, run_log_factory, summary_profile) -> None:
    result = _runner(import_settings, fetcher_factory(E2E_TEXT)).run_import(
        profile=summary_profile,
        store=fake_store,
        run_log=run_log_factory(fail=True),
    )
    assert result.normalized_count == 1


def test_successful_run_is_logged_with_result(import_settings, fetcher_factory, fake_store, fake_run_log, summary_profile) -> None:
    _runner(import_settings, fetcher_factory(E2E_TEXT)).run_import(
        profile=summary_profile,
        store=fake_store,
        locator="https://example.org/feed.csv",
        run_log=fake_run_log,
    )
    (run,) = fake_run_log.runs
    assert run["locator"] == "https://example.org/feed.csv"
    assert run["result"].normalized_count == 1
    assert run["error"] is None
    assert run["finished_at"] >= run["started_at"]


def test_locator_resolution_order(summary_profile) -> None:
    feeds = SourceFeedSettings(geipan_url="https://mirror.example/geipan.csv")

    assert resolve_locator(GEIPAN_PROFILE, " ./local.csv ", feeds) == "./local.csv"
    assert resolve_locator(GEIPAN_PROFILE, None, feeds) == "https://mirror.example/geipan.csv"
    assert resolve_locator(GEIPAN_PROFILE, None, SourceFeedSettings()) == GEIPAN_PROFILE.feed_url
    with pytest.raises(FetchFailed):
        resolve_locator(USER_PROFILE, None, feeds)


def test_configured_feed_url_is_fetched(import_settings, fetcher_factory, fake_store, summary_profile) -> None:
    fetcher = fetcher_factory(E2E_TEXT)
    runner = _runner(import_settings, fetcher, feed_settings=SourceFeedSettings())
    runner.run_import(profile=summary_profile, store=fake_store)
    assert fetcher.locators == ["file:///dev/null"]


class TestImportSessionStates:
    def _session(self) -> ImportSession:
        return ImportSession(source_name="TEST", max_recorded_errors=10, log_row_errors=False)

    def test_forward_transitions_may_skip_stages(self) -> None:
        session = self._session()
        session.advance(ImportState.FETCHING)
        session.advance(ImportState.PARSING)
        session.advance(ImportState.DONE)
        assert session.history == [
            ImportState.IDLE,
            ImportState.FETCHING,
            ImportState.PARSING,
            ImportState.DONE,
        ]

    def test_backward_transition_is_rejected(self) -> None:
        session = self._session()
        session.advance(ImportState.MAPPING)
        with pytest.raises(InvalidStateTransition):
            session.advance(ImportState.PARSING)

    def test_failed_is_reachable_from_fetching_only(self) -> None:
        session = self._session()
        session.advance(ImportState.FETCHING)
        session.fail()
        assert session.state == ImportState.FAILED
        with pytest.raises(InvalidStateTransition):
            session.advance(ImportState.DONE)

        other = self._session()
        other.advance(ImportState.PARSING)
        with pytest.raises(InvalidStateTransition):
            other.fail()

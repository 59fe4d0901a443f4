"""
app/services/batch_upsert.py

Chunked, conflict-aware persistence of normalized sightings.

Chunks are dispatched sequentially in input order. A chunk the store rejects
with ChunkUpsertFailed is recorded and skipped; StorageUnavailable aborts the
remaining chunks. Cancellation is checked before each chunk, never inside one.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator, Sequence
from itertools import islice
from typing import Protocol

from app.domain.errors import ChunkUpsertFailed
from app.domain.sighting import ErrorKind, ImportResult, NormalizedSighting, RowError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500
DEFAULT_TABLE = "reports"
DEFAULT_CONFLICT_KEY = "dedupe_key"


class SightingStore(Protocol):
    """
    Storage collaborator: insert-or-update rows on a unique conflict key.

    Returns the affected row count, or None when the store cannot report it.
    """

    def upsert(
        self,
        table: str,
        rows: Sequence[NormalizedSighting],
        conflict_key: str,
    ) -> int | None: ...


class CancelToken:
    """
    Cooperative cancellation flag shared between a caller and a running import.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def iter_chunks(
    items: Iterable[NormalizedSighting],
    chunk_size: int,
) -> Iterator[tuple[int, list[NormalizedSighting]]]:
    """
    Yield ``(start_index, chunk)`` pairs preserving input order.
    """

    size = max(1, chunk_size)
    iterator = iter(items)
    start = 0
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield start, chunk
        start += len(chunk)


class BatchUpsertOrchestrator:
    """
    Partitions sightings into chunks and upserts each through the store.
    """

    def __init__(
        self,
        store: SightingStore,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        table: str = DEFAULT_TABLE,
        conflict_key: str = DEFAULT_CONFLICT_KEY,
    ) -> None:
        self._store = store
        self._chunk_size = max(1, chunk_size)
        self._table = table
        self._conflict_key = conflict_key

    def upsert_all(
        self,
        sightings: Iterable[NormalizedSighting],
        *,
        chunk_size: int | None = None,
        cancel_token: CancelToken | None = None,
    ) -> ImportResult:
        """
        Upsert every sighting chunk by chunk and summarize the outcome.

        ``normalized_count`` counts the sightings handed to the store;
        ``inserted_or_updated_count`` sums the
        affected counts of the chunks that succeeded.

        Raises StorageUnavailable as soon as the store reports it.
        """

        size = max(1, chunk_size) if chunk_size is not None else self._chunk_size
        affected_total = 0
        seen = 0
        errors: list[RowError] = []
        cancelled = False

        for start, chunk in iter_chunks(sightings, size):
            if cancel_token is not None and cancel_token.cancelled:
                cancelled = True
                logger.info("Batch upsert cancelled before chunk start=%s", start)
                break

            seen += len(chunk)
            try:
                affected = self._store.upsert(self._table, chunk, self._conflict_key)
            except ChunkUpsertFailed as exc:
                logger.error(
                    "Chunk upsert failed start=%s rows=%s error=%s",
                    start,
                    len(chunk),
                    exc,
                )
                errors.append(
                    RowError(
                        row_index=start,
                        reason=str(exc),
                        kind=ErrorKind.CHUNK_UPSERT_FAILED,
                    )
                )
                continue

            affected_total += len(chunk) if affected is None else affected
            logger.debug("Chunk upserted start=%s rows=%s affected=%s", start, len(chunk), affected)

        return ImportResult(
            normalized_count=seen,
            inserted_or_updated_count=affected_total,
            errors=errors,
            cancelled=cancelled,
        )

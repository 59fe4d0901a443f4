"""
app/domain/errors.py

Exceptions raised by the sighting import pipeline and its collaborators.
"""

from __future__ import annotations

from app.domain.sighting import ErrorKind


class ImportRunError(RuntimeError):
    """
    Base exception for import failures surfaced to the caller.
    """

    kind: str = "ImportRunError"

    def __init__(self, message: str, *, source_name: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.source_name = source_name

    def to_dict(self) -> dict[str, str | None]:
        return {
            "kind": self.kind,
            "message": self.message,
            "source_name": self.source_name,
        }


class FetchFailed(ImportRunError):
    """
    Raised when the raw source cannot be retrieved.
    """

    kind = ErrorKind.FETCH_FAILED


class FetchTimeout(FetchFailed):
    """
    Raised when retrieving the raw source exceeds the fetch timeout.
    """

    kind = ErrorKind.FETCH_TIMEOUT


class EmptyInputError(ImportRunError):
    """
    Raised when the raw source contains no parseable lines at all.
    """

    kind = ErrorKind.EMPTY_INPUT


class StorageUnavailable(ImportRunError):
    """
    Raised when the storage collaborator cannot be reached.
    """

    kind = ErrorKind.STORAGE_UNAVAILABLE


class ChunkUpsertFailed(ImportRunError):
    """
    Raised by a store when one chunk could not be written; the run continues.
    """

    kind = ErrorKind.CHUNK_UPSERT_FAILED


class UnknownSourceError(ValueError):
    """
    Raised when no source profile is registered under the requested name.
    """

    def __init__(self, source_name: str, known: list[str]) -> None:
        super().__init__(
            f"Unsupported source '{source_name}'. Allowed sources: {', '.join(sorted(known))}."
        )
        self.source_name = source_name

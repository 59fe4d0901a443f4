"""
app/connectors/source_fetcher.py

Fetch collaborator: resolves a raw source locator (http(s) URL, file:// URL,
or local path) to bytes.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests

from app.config import ImportSettings
from app.domain.errors import FetchFailed, FetchTimeout

logger = logging.getLogger(__name__)

_HTTP_SCHEMES = {"http", "https"}
_CHUNK_BYTES = 64 * 1024


class SourceFetcher:
    """
    Single-attempt fetcher with an explicit timeout. Retries belong to the
    scheduler that re-runs the import.
    """

    def __init__(
        self,
        settings: ImportSettings,
        *,
        session: requests.Session | None = None,
    ) -> None:
        self._session = session or requests.Session()
        self._timeout_seconds = settings.fetch_timeout_seconds
        self._user_agent = settings.user_agent

    def fetch(self, locator: str) -> bytes:
        """
        Return the raw bytes behind ``locator``.

        Raises FetchTimeout when the request exceeds the timeout and
        FetchFailed for any other retrieval problem.
        """

        locator = (locator or "").strip()
        if not locator:
            raise FetchFailed("No source locator configured.")

        parsed = urlparse(locator)
        scheme = parsed.scheme.lower()
        if scheme in _HTTP_SCHEMES:
            return self._fetch_http(locator)
        if scheme == "file":
            return self._fetch_file(Path(url2pathname(parsed.path)), locator)
        # Single-letter schemes are Windows drive letters.
        if scheme and len(scheme) > 1:
            raise FetchFailed(f"Unsupported locator scheme '{parsed.scheme}'.")
        return self._fetch_file(Path(locator), locator)

    def _fetch_http(self, url: str) -> bytes:
        # requests applies ``timeout`` per connect/read; the deadline bounds
        # the whole download so a trickling server still times out.
        deadline = time.monotonic() + self._timeout_seconds
        chunks: list[bytes] = []
        try:
            response = self._session.get(
                url,
                headers={"User-Agent": self._user_agent},
                timeout=self._timeout_seconds,
                stream=True,
            )
            try:
                response.raise_for_status()
                for chunk in response.iter_content(chunk_size=_CHUNK_BYTES):
                    chunks.append(chunk)
                    if time.monotonic() > deadline:
                        raise requests.Timeout(f"download exceeded {self._timeout_seconds:g}s")
            finally:
                response.close()
        except requests.Timeout as exc:
            logger.error("Source fetch timed out url=%s timeout_seconds=%s", url, self._timeout_seconds)
            raise FetchTimeout(
                f"Fetching {url} timed out after {self._timeout_seconds:g}s."
            ) from exc
        except requests.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            logger.error("Source fetch failed url=%s status=%s", url, status_code)
            raise FetchFailed(f"Fetching {url} failed with HTTP {status_code}.") from exc
        except requests.RequestException as exc:
            logger.error("Source fetch failed url=%s error=%s", url, exc)
            raise FetchFailed(f"Fetching {url} failed: {exc}") from exc

        data = b"".join(chunks)
        logger.info("Fetched source url=%s bytes=%s", url, len(data))
        return data

    @staticmethod
    def _fetch_file(path: Path, locator: str) -> bytes:
        try:
            data = path.read_bytes()
        except OSError as exc:
            logger.error("Source file read failed locator=%s error=%s", locator, exc)
            raise FetchFailed(f"Reading {locator} failed: {exc}") from exc
        logger.info("Read source file path=%s bytes=%s", path, len(data))
        return data

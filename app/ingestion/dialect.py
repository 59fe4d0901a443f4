"""
app/ingestion/dialect.py

Delimiter and quoting dialect detection for delimiter-separated feeds.
"""

from __future__ import annotations

import logging

from app.domain.sighting import Dialect

logger = logging.getLogger(__name__)

# Tie-break order when several candidates occur equally often.
DELIMITER_PRIORITY: tuple[str, ...] = (",", ";", "|", "\t")

DELIMITER_NAMES: dict[str, str] = {
    "comma": ",",
    "semicolon": ";",
    "pipe": "|",
    "tab": "\t",
}

# Hint fragments (source names, URL pieces) with a known fixed delimiter.
KNOWN_HINT_DELIMITERS: dict[str, str] = {
    "geipan": ";",
    "export_cas_pub": ";",
    "nuforc": ",",
    "mufon": ",",
}


def dialect_for_hint(hint: str | None) -> Dialect | None:
    """
    Resolve a hint to a fixed dialect, or None when the hint is unknown.

    A hint may be a literal delimiter character, a delimiter name
    ("semicolon"), or any string containing a known source fragment.
    """

    if not hint:
        return None

    if hint in DELIMITER_PRIORITY:
        return Dialect(delimiter=hint)

    lowered = hint.strip().lower()
    if lowered in DELIMITER_NAMES:
        return Dialect(delimiter=DELIMITER_NAMES[lowered])

    for fragment, delimiter in KNOWN_HINT_DELIMITERS.items():
        if fragment in lowered:
            return Dialect(delimiter=delimiter)
    return None


def count_unquoted(line: str, candidate: str, quote_char: str = '"') -> int:
    """
    Count occurrences of ``candidate`` outside quoted spans of ``line``.
    """

    count = 0
    in_quotes = False
    for ch in line:
        if ch == quote_char:
            in_quotes = not in_quotes
        elif ch == candidate and not in_quotes:
            count += 1
    return count


def detect_dialect(
    text: str,
    hint: str | None = None,
    *,
    candidates: tuple[str, ...] = DELIMITER_PRIORITY,
) -> Dialect:
    """
    Choose the field delimiter for ``text``.

    A known hint wins; otherwise the first non-blank line is scanned and the
    candidate with the most unquoted occurrences is selected, ties broken by
    ``DELIMITER_PRIORITY`` order. Quoting is always lax.
    """

    hinted = dialect_for_hint(hint)
    if hinted is not None:
        return hinted

    ordered = tuple(sorted(candidates, key=_priority)) or DELIMITER_PRIORITY
    first_line = next((line for line in text.split("\n") if line.strip()), "")

    best = ordered[0]
    best_count = 0
    for candidate in ordered:
        count = count_unquoted(first_line, candidate)
        if count > best_count:
            best = candidate
            best_count = count

    logger.debug("Detected delimiter=%r occurrences=%s hint=%r", best, best_count, hint)
    return Dialect(delimiter=best)


def _priority(candidate: str) -> int:
    try:
        return DELIMITER_PRIORITY.index(candidate)
    except ValueError:
        return len(DELIMITER_PRIORITY)

"""
app/ingestion/parser.py

Tolerant row parsing for delimiter-separated text and JSON-array feeds.

Both parsers are lazy: rows are produced while the caller iterates. Bad input
degrades to fewer rows; the only hard failure is a structurally empty payload.
"""

from __future__ import annotations

import csv
import json
import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any

from app.domain.errors import EmptyInputError
from app.domain.sighting import Dialect, RawRow

logger = logging.getLogger(__name__)

# Called with (line_number or item index, reason) for every skipped record.
SkipCallback = Callable[[int, str], None]

DEFAULT_MAX_CONTINUATION_LINES = 50

# Appended after the last line; a field that swallows it had an open quote at
# end of input. Control characters never survive encoding normalization.
_END_OF_INPUT = "\x1f"


def positional_column(index: int) -> str:
    return f"col_{index}"


def _csv_reader(lines: Sequence[str], dialect: Dialect, *, strict: bool):
    return csv.reader(
        lines,
        delimiter=dialect.delimiter,
        quotechar=dialect.quote_char,
        doublequote=True,
        strict=strict,
    )


def _physical_lines(text: str) -> list[str]:
    # csv keeps newlines inside quoted fields only when lines carry them.
    return [f"{line}\n" for line in text.split("\n")]


def _hit_end_of_input(fields: Sequence[str]) -> bool:
    return any(_END_OF_INPUT in field for field in fields)


def split_record(record: str, dialect: Dialect) -> tuple[list[str], bool]:
    """
    Tokenize one logical record, which may hold quoted newlines.

    Returns the fields and whether every quoted span was closed. With
    ``lax_quoting`` off, stray characters after a closing quote raise
    ``csv.Error``.
    """

    lines = _physical_lines(record)
    lines[-1] = lines[-1][:-1]
    fields = next(_csv_reader([*lines, _END_OF_INPUT], dialect, strict=not dialect.lax_quoting), [])
    if _hit_end_of_input(fields):
        return [field.replace(_END_OF_INPUT, "") for field in fields], False
    return fields, True


class TabularParser:
    """
    Turns cleaned text plus a dialect into ``RawRow`` mappings.

    A quoted field may span lines. The merged record is kept only when its
    quotes close cleanly and it has the expected field count; otherwise the
    line that opened the quote is skipped and parsing resumes on the next one.
    """

    def __init__(self, *, max_continuation_lines: int = DEFAULT_MAX_CONTINUATION_LINES) -> None:
        self._max_continuation_lines = max(0, max_continuation_lines)

    def parse(
        self,
        text: str,
        dialect: Dialect,
        *,
        has_header: bool = True,
        on_skip: SkipCallback | None = None,
    ) -> Iterator[RawRow]:
        """
        Validate that ``text`` has at least one line and return a lazy row iterator.

        Raises EmptyInputError when the input holds no non-blank line.
        """

        if not text.strip():
            raise EmptyInputError("Raw source contained no parseable lines.")
        return self._iter_rows(_physical_lines(text), dialect, has_header=has_header, on_skip=on_skip)

    def _iter_rows(
        self,
        lines: list[str],
        dialect: Dialect,
        *,
        has_header: bool,
        on_skip: SkipCallback | None,
    ) -> Iterator[RawRow]:
        header: list[str] | None = None
        width: int | None = None
        offset = 0
        total = len(lines)

        while offset < total:
            reader = _csv_reader([*lines[offset:], _END_OF_INPUT], dialect, strict=not dialect.lax_quoting)
            resume_at: int | None = None
            while resume_at is None:
                first = offset + reader.line_num
                if first >= total:
                    return
                try:
                    fields = next(reader)
                except csv.Error as exc:
                    self._skip(first + 1, f"malformed quoting: {exc}", on_skip)
                    resume_at = first + 1
                    continue

                span = offset + reader.line_num - first
                if not any(field.strip() for field in fields) and len(fields) <= 1:
                    continue
                if span > 1 and not self._is_clean_continuation(lines[first : first + span], fields, dialect, width):
                    self._skip(first + 1, "unbalanced quote", on_skip)
                    resume_at = first + 1
                    continue

                if has_header and header is None:
                    header = self._build_header(fields)
                    width = len(header)
                    continue
                if width is None:
                    width = len(fields)
                yield self._build_row(fields, header, dialect)
            offset = resume_at

    def _is_clean_continuation(
        self,
        block: list[str],
        fields: list[str],
        dialect: Dialect,
        width: int | None,
    ) -> bool:
        if _hit_end_of_input(fields) or len(block) - 1 > self._max_continuation_lines:
            return False
        if width is not None and len(fields) != width:
            return False
        try:
            next(_csv_reader(block, dialect, strict=True))
        except csv.Error:
            return False
        return True

    @staticmethod
    def _skip(line_number: int, reason: str, on_skip: SkipCallback | None) -> None:
        logger.warning("Skipping malformed line line=%s reason=%s", line_number, reason)
        if on_skip is not None:
            on_skip(line_number, reason)

    @staticmethod
    def _build_header(fields: Sequence[str]) -> list[str]:
        header: list[str] = []
        seen: dict[str, int] = {}
        for position, raw_name in enumerate(fields):
            name = raw_name.strip() or positional_column(position)
            if name in seen:
                seen[name] += 1
                name = f"{name}_{seen[name]}"
            else:
                seen[name] = 1
            header.append(name)
        return header

    @staticmethod
    def _build_row(fields: list[str], header: list[str] | None, dialect: Dialect) -> RawRow:
        if header is None:
            return {positional_column(position): value for position, value in enumerate(fields)}

        width = len(header)
        if len(fields) > width:
            # Extra fields belong to the last declared column.
            fields = [*fields[: width - 1], dialect.delimiter.join(fields[width - 1 :])]

        row: RawRow = {}
        for position, name in enumerate(header):
            row[name] = fields[position] if position < len(fields) else None
        return row


def parse_json_rows(text: str, *, on_skip: SkipCallback | None = None) -> Iterator[RawRow]:
    """
    Parse a JSON array of objects into ``RawRow`` mappings.

    Non-object items are skipped; nested values are JSON-encoded strings.
    Raises EmptyInputError when the payload is blank, malformed, or not an array.
    """

    if not text.strip():
        raise EmptyInputError("Raw source contained no parseable lines.")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise EmptyInputError(f"Raw source is not valid JSON: {exc}") from exc

    if isinstance(payload, Mapping):
        payload = [payload]
    if not isinstance(payload, list):
        raise EmptyInputError("JSON source must be an array of objects.")

    return _iter_json_rows(payload, on_skip=on_skip)


def _iter_json_rows(items: list[Any], *, on_skip: SkipCallback | None) -> Iterator[RawRow]:
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            reason = f"expected object, got {type(item).__name__}"
            logger.warning("Skipping JSON item index=%s reason=%s", index, reason)
            if on_skip is not None:
                on_skip(index + 1, reason)
            continue
        yield coerce_row(item)


def coerce_row(item: Mapping[str, Any]) -> RawRow:
    """
    Convert one JSON object into a ``RawRow`` with string-or-None values.
    """

    row: RawRow = {}
    for key, value in item.items():
        if value is None:
            row[str(key)] = None
        elif isinstance(value, str):
            row[str(key)] = value
        elif isinstance(value, (dict, list)):
            row[str(key)] = json.dumps(value, ensure_ascii=False)
        else:
            row[str(key)] = str(value)
    return row

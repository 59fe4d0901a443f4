"""
app/ingestion/encoding.py

Repairs raw upstream bytes/text into clean, analyzable text.
"""

from __future__ import annotations

import codecs
import logging

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"

# Windows-1252 covers the smart quotes most legacy exports emit; latin-1
# is the last resort since it maps every byte.
FALLBACK_ENCODING = "cp1252"

_QUOTE_FOLDING = str.maketrans(
    {
        "\u2018": "'",
        "\u2019": "'",
        "\u201a": "'",
        "\u201b": "'",
        "\u2032": "'",
        "\u2039": "'",
        "\u203a": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\u201e": '"',
        "\u201f": '"',
        "\u2033": '"',
        "\u00ab": '"',
        "\u00bb": '"',
    }
)

_ALLOWED_CONTROL = {"\t", "\n"}


def decode_bytes(raw: bytes, encoding: str = DEFAULT_ENCODING) -> str:
    """
    Decode bytes using the declared encoding, falling back only on lossy input.
    """

    if raw.startswith(codecs.BOM_UTF16_LE) or raw.startswith(codecs.BOM_UTF16_BE):
        return raw.decode("utf-16")

    try:
        return raw.decode(encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        logger.warning("Declared encoding failed encoding=%s error=%s", encoding, exc)

    try:
        return raw.decode(FALLBACK_ENCODING)
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def normalize_text(raw: bytes | str, *, encoding: str = DEFAULT_ENCODING) -> str:
    """
    Return cleaned text: BOM stripped, newlines unified, smart quotes folded,
    and disallowed characters replaced by a single space each.

    Characters are replaced rather than deleted so delimiter-based column
    alignment is preserved. This step never fails.
    """

    text = decode_bytes(raw, encoding) if isinstance(raw, (bytes, bytearray)) else str(raw)

    if text.startswith("\ufeff"):
        text = text[1:]

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.translate(_QUOTE_FOLDING)

    return "".join(
        ch if ch in _ALLOWED_CONTROL or ch.isprintable() else " "
        for ch in text
    )


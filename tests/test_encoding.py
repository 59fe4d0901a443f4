from __future__ import annotations

import unittest

from app.ingestion.encoding import decode_bytes, normalize_text


class TestDecodeBytes(unittest.TestCase):
    def test_declared_encoding_is_used_when_it_decodes(self) -> None:
        self.assertEqual(decode_bytes(b"\xe9t\xe9", "latin-1"), "été")

    def test_falls_back_to_cp1252_when_utf8_would_lose_data(self) -> None:
        raw = "café ’".encode("cp1252")
        self.assertEqual(decode_bytes(raw), "café ’")

    def test_unknown_encoding_name_falls_back(self) -> None:
        self.assertEqual(decode_bytes(b"abc", "no-such-codec"), "abc")

    def test_utf16_with_bom(self) -> None:
        self.assertEqual(decode_bytes("a;b".encode("utf-16")), "a;b")


class TestNormalizeText(unittest.TestCase):
    def test_strips_utf8_bom(self) -> None:
        self.assertEqual(normalize_text(b"\xef\xbb\xbfdate,city"), "date,city")

    def test_strips_bom_from_text_input(self) -> None:
        self.assertEqual(normalize_text("\ufeffdate,city"), "date,city")

    def test_unifies_line_endings(self) -> None:
        self.assertEqual(normalize_text("a\r\nb\rc\n"), "a\nb\nc\n")

    def test_folds_smart_quotes_and_guillemets(self) -> None:
        text = "“Bright” light ‘over’ «Paris»"
        self.assertEqual(normalize_text(text), "\"Bright\" light 'over' \"Paris\"")

    def test_replaces_control_characters_with_one_space_each(self) -> None:
        self.assertEqual(normalize_text("a\x00b\x07\x07c"), "a b  c")

    def test_keeps_tab_and_newline(self) -> None:
        self.assertEqual(normalize_text("a\tb\nc"), "a\tb\nc")

    def test_replacement_preserves_column_count(self) -> None:
        cleaned = normalize_text("x;\x0by;z")
        self.assertEqual(cleaned.count(";"), 2)
        self.assertEqual(len(cleaned), len("x;\x0by;z"))

    def test_undecodable_bytes_never_raise(self) -> None:
        self.assertEqual(normalize_text(b"\x81"), " ")

    def test_keeps_non_ascii_printable_text(self) -> None:
        self.assertEqual(normalize_text("Boule lumineuse à Orléans".encode("utf-8")), "Boule lumineuse à Orléans")


if __name__ == "__main__":
    unittest.main()

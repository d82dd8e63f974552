"""
High-level API Tests
"""
import pytest

from notes_parser.models import Success
from notes_parser.parser import parse_files


class TestParseFiles:
    def test_paths(self, tmp_path, make_pdf, recognizer):
        pdf = tmp_path / "bio.pdf"
        pdf.write_bytes(make_pdf("Mitochondria produce ATP"))
        txt = tmp_path / "notes.txt"
        txt.write_text("Golgi apparatus", encoding="utf-8")

        outcomes = parse_files(paths=[pdf, str(txt)], recognizer=recognizer)

        assert outcomes == [
            Success("bio.pdf", "Mitochondria produce ATP"),
            Success("notes.txt", "Golgi apparatus"),
        ]

    def test_bytes_in_text_mode(self, recognizer):
        text = parse_files(
            files=[("a.txt", b"Alpha\r\n"), ("b.md", b"Beta", "text/markdown")],
            mode="text",
            recognizer=recognizer,
        )
        assert text == "Alpha\n\nBeta"

    def test_requires_input(self, recognizer):
        with pytest.raises(ValueError):
            parse_files(recognizer=recognizer)

    def test_missing_path(self, tmp_path, recognizer):
        with pytest.raises(ValueError):
            parse_files(paths=[tmp_path / "missing.pdf"], recognizer=recognizer)

    def test_unknown_mode(self, recognizer):
        with pytest.raises(ValueError):
            parse_files(files=[("a.txt", b"a")], mode="xml", recognizer=recognizer)

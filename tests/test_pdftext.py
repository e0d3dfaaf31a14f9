"""Tests for PDF text extraction, inline and in a child process."""

import multiprocessing

import pytest

from sitesift.errors import DocumentParseError
from sitesift.pdftext import extract_text, page_marker, parse_inline, parse_isolated

from tests.conftest import make_pdf

URL = "https://www.example.com/files/terms.pdf"


def numbered_pdf(n: int) -> bytes:
    return make_pdf([f"Clause {i} of the card terms" for i in range(1, n + 1)])


class TestExtractText:
    def test_page_markers_in_order(self):
        text = extract_text(numbered_pdf(3))
        assert text.index(page_marker(1)) < text.index(page_marker(2)) < text.index(page_marker(3))
        assert "Clause 2 of the card terms" in text

    def test_page_cap(self):
        text = extract_text(numbered_pdf(25), max_pages=10)
        for n in range(1, 11):
            assert f"[PAGE {n}]\n" in text
        assert "[PAGE 11]" not in text
        assert "Clause 11 " not in text

    def test_blocks_separated_by_blank_line(self):
        blocks = extract_text(numbered_pdf(2)).split("\n\n")
        assert [b.splitlines()[0] for b in blocks] == ["[PAGE 1]", "[PAGE 2]"]

    def test_corrupt_bytes(self):
        with pytest.raises(DocumentParseError):
            extract_text(b"<html>not a pdf</html>", source=URL)

    def test_parse_inline_reports_failure(self):
        outcome = parse_inline(b"garbage", URL)
        assert not outcome.ok
        assert outcome.text == ""
        assert outcome.url == URL


class TestParseIsolated:
    def test_success(self):
        outcome = parse_isolated(numbered_pdf(2), URL, timeout=60)
        assert outcome.ok
        assert "[PAGE 2]" in outcome.text
        assert not outcome.timed_out

    def test_corrupt_document(self):
        outcome = parse_isolated(b"not a pdf at all", URL, timeout=60)
        assert not outcome.ok
        assert outcome.error.startswith("PDF parsing failed")
        assert not outcome.timed_out

    def test_timeout_terminates_worker(self):
        outcome = parse_isolated(numbered_pdf(3), URL, timeout=0.0001)
        assert outcome.timed_out
        assert not outcome.ok
        assert outcome.error == f"PDF parsing timeout for {URL}"
        assert outcome.text == ""
        assert not any(p.is_alive() for p in multiprocessing.active_children())

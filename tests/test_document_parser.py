"""Tests for document text extraction."""

import pytest
from docx import Document

from glossa.utils import document_parser
from glossa.utils.document_parser import (
    MAX_TEXT_LENGTH,
    TRUNCATION_MARKER,
    DocumentParseError,
    format_file_size,
    parse_document,
)


def test_text_file(tmp_path):
    path = tmp_path / "notes.md"
    path.write_text("# Notes\n\nSome text.", encoding="utf-8")

    document = parse_document(path)

    assert document.name == "notes.md"
    assert document.type == "MD"
    assert document.content == "# Notes\n\nSome text."
    assert document.char_count == len(document.content)
    assert document.size == path.stat().st_size


def test_invalid_utf8_is_replaced(tmp_path):
    path = tmp_path / "data.log"
    path.write_bytes(b"ok \xff done")

    assert parse_document(path).content == "ok \ufffd done"


def test_long_text_is_truncated(tmp_path):
    path = tmp_path / "big.txt"
    path.write_text("x" * (MAX_TEXT_LENGTH + 10), encoding="utf-8")

    content = parse_document(path).content

    assert content == "x" * MAX_TEXT_LENGTH + TRUNCATION_MARKER


def test_oversized_file_is_rejected(tmp_path, monkeypatch):
    monkeypatch.setattr(document_parser, "MAX_FILE_SIZE", 10)
    path = tmp_path / "big.txt"
    path.write_text("more than ten bytes", encoding="utf-8")

    with pytest.raises(DocumentParseError, match="exceeds 10MB limit"):
        parse_document(path)


def test_missing_file(tmp_path):
    with pytest.raises(DocumentParseError):
        parse_document(tmp_path / "nope.txt")


def test_docx_paragraphs(tmp_path):
    path = tmp_path / "report.docx"
    doc = Document()
    doc.add_paragraph("First paragraph.")
    doc.add_paragraph("   ")
    doc.add_paragraph("Second paragraph.")
    doc.save(str(path))

    document = parse_document(path)

    assert document.type == "DOCX"
    assert document.content == "First paragraph.\n\nSecond paragraph."


def test_broken_pdf_is_reported(tmp_path):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"this is not a pdf")

    with pytest.raises(DocumentParseError, match="broken.pdf"):
        parse_document(path)


def test_format_file_size():
    assert format_file_size(512) == "512 B"
    assert format_file_size(2048) == "2.0 KB"
    assert format_file_size(3 * 1024 * 1024) == "3.0 MB"

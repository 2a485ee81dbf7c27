"""Tests for document context building and the document library."""

import json

from glossa.orchestrator.document_context import (
    CONTEXT_FOOTER,
    CONTEXT_HEADER,
    build_document_context,
)
from glossa.storage import ParsedDocument
from glossa.storage.document_library import DocumentLibrary


def doc(name, content, doc_id=None):
    return ParsedDocument(id=doc_id or name, name=name, content=content)


def test_no_documents_gives_empty_prefix():
    assert build_document_context([]) == ""


def test_documents_are_wrapped_in_order():
    context = build_document_context([doc("a.txt", "Alpha"), doc("b.md", "Beta")])

    assert context == (
        f"{CONTEXT_HEADER}\n"
        "--- a.txt ---\nAlpha\n--- end a.txt ---\n"
        "\n"
        "--- b.md ---\nBeta\n--- end b.md ---\n"
        f"{CONTEXT_FOOTER}\n\n"
    )


def test_library_keeps_documents_per_conversation(tmp_path):
    path = tmp_path / "documents.json"
    library = DocumentLibrary(path)
    library.add("c1", doc("a.txt", "Alpha", "d1"))
    library.add("c1", doc("b.txt", "Beta", "d2"))
    library.add("c2", doc("c.txt", "Gamma", "d3"))

    reloaded = DocumentLibrary(path)
    reloaded.load()

    assert [d.name for d in reloaded.documents_for("c1")] == ["a.txt", "b.txt"]
    assert reloaded.documents_for(None) == ()
    assert reloaded.remove("c1", "d1") is True
    assert reloaded.remove("c1", "d1") is False
    reloaded.drop_conversation("c2")
    assert reloaded.documents_for("c2") == ()


def test_library_tolerates_corrupt_file(tmp_path):
    path = tmp_path / "documents.json"
    path.write_text("{not json", encoding="utf-8")

    library = DocumentLibrary(path)
    library.load()

    assert library.documents_for("c1") == ()


def test_library_skips_malformed_records(tmp_path):
    path = tmp_path / "documents.json"
    path.write_text(json.dumps({
        "c1": ["oops", {"id": "d1", "name": "a.txt", "content": "Alpha"}],
        "c2": None,
    }), encoding="utf-8")

    library = DocumentLibrary(path)
    library.load()

    assert [d.id for d in library.documents_for("c1")] == ["d1"]
    assert library.documents_for("c2") == ()

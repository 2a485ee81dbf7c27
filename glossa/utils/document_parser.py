"""Text extraction from uploaded documents.

Supports PDF, DOCX and text-like files. Extracted text is capped so a
single document cannot crowd out the conversation in the prompt.
"""

import zipfile
from pathlib import Path
from typing import Union

import pypdf
import structlog
from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from pypdf.errors import PyPdfError

from ..storage import ParsedDocument, new_id


logger = structlog.get_logger()

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_TEXT_LENGTH = 100_000
TRUNCATION_MARKER = "\n\n[... Document truncated at 100K characters ...]"

# File dialog filter
SUPPORTED_FILTER = (
    "Documents (*.pdf *.docx *.txt *.md *.csv *.json *.xml *.log "
    "*.yaml *.yml *.ini *.conf)"
)


class DocumentParseError(Exception):
    """A document is too large or cannot be read."""


def format_file_size(size: int) -> str:
    """Format a byte count for display."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def parse_document(path: Union[str, Path]) -> ParsedDocument:
    """Extract the text of a file.

    Args:
        path: File to read

    Returns:
        ParsedDocument with capped content

    Raises:
        DocumentParseError: If the file is missing, over 10MB or unreadable
    """
    file_path = Path(path)
    try:
        size = file_path.stat().st_size
    except OSError as e:
        raise DocumentParseError(f"Cannot open \"{file_path.name}\": {e}") from e

    if size > MAX_FILE_SIZE:
        raise DocumentParseError(
            f"File \"{file_path.name}\" exceeds 10MB limit "
            f"({size / 1024 / 1024:.1f}MB)"
        )

    suffix = file_path.suffix.lower()
    try:
        if suffix == ".pdf":
            content = _read_pdf(file_path)
        elif suffix == ".docx":
            content = _read_docx(file_path)
        else:
            # Unknown extensions are tried as text
            content = file_path.read_text(encoding="utf-8", errors="replace")
    except (
        OSError, PyPdfError, PackageNotFoundError, zipfile.BadZipFile, ValueError, KeyError
    ) as e:
        raise DocumentParseError(f"Could not read \"{file_path.name}\": {e}") from e

    if len(content) > MAX_TEXT_LENGTH:
        content = content[:MAX_TEXT_LENGTH] + TRUNCATION_MARKER

    logger.info("document_parsed", name=file_path.name, chars=len(content))
    return ParsedDocument(
        id=new_id(),
        name=file_path.name,
        content=content,
        size=size,
        type=suffix.lstrip(".").upper(),
        char_count=len(content),
    )


def _read_pdf(file_path: Path) -> str:
    """Read PDF pages as [Page n] blocks, skipping empty pages."""
    text_parts = []
    with open(file_path, "rb") as f:
        reader = pypdf.PdfReader(f)
        for page_num, page in enumerate(reader.pages):
            text = (page.extract_text() or "").strip()
            if text:
                text_parts.append(f"[Page {page_num + 1}]\n{text}")

    return "\n\n".join(text_parts)


def _read_docx(file_path: Path) -> str:
    doc = Document(str(file_path))
    paragraphs = [p.text for p in doc.paragraphs if p.text.strip()]
    return "\n\n".join(paragraphs)

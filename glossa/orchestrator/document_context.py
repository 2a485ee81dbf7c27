"""Document context prefix for user turns."""

from typing import Iterable

from ..storage import ParsedDocument


CONTEXT_HEADER = "[DOCUMENTS CONTEXT: Answer based on these uploaded documents when relevant]"
CONTEXT_FOOTER = "[END DOCUMENTS]"


def build_document_context(documents: Iterable[ParsedDocument]) -> str:
    """Build the prefix placed before the user's text.

    Args:
        documents: Parsed documents, already length-capped

    Returns:
        Empty string for no documents, otherwise one block per document
        between the context header and footer
    """
    blocks = [
        f"--- {doc.name} ---\n{doc.content}\n--- end {doc.name} ---\n"
        for doc in documents
    ]
    if not blocks:
        return ""
    return f"{CONTEXT_HEADER}\n" + "\n".join(blocks) + f"{CONTEXT_FOOTER}\n\n"

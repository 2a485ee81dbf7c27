"""Uploaded documents, grouped by conversation."""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import structlog

from . import ParsedDocument
from .json_file import load_json, save_json


logger = structlog.get_logger()


class DocumentLibrary:
    """Per-conversation document lists persisted as one JSON object.

    The file maps conversation id to a list of documents in upload order.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path
        self._documents: Dict[str, Tuple[ParsedDocument, ...]] = {}

    def load(self) -> None:
        """Load documents from disk, starting empty on any failure."""
        self._documents = {}
        if self._path is None:
            return

        data = load_json(self._path, default=dict)
        if not isinstance(data, dict):
            data = {}

        for conversation_id, records in data.items():
            docs: List[ParsedDocument] = []
            for record in records if isinstance(records, list) else []:
                try:
                    docs.append(ParsedDocument.from_dict(record))
                except (AttributeError, KeyError, TypeError, ValueError) as e:
                    logger.warning("document_record_skipped", error=str(e))
            if docs:
                self._documents[conversation_id] = tuple(docs)

    def _save(self) -> None:
        if self._path is None:
            return
        save_json(self._path, {
            conversation_id: [d.to_dict() for d in docs]
            for conversation_id, docs in self._documents.items()
        })

    def documents_for(self, conversation_id: Optional[str]) -> Tuple[ParsedDocument, ...]:
        """Documents attached to a conversation, oldest first."""
        if conversation_id is None:
            return ()
        return self._documents.get(conversation_id, ())

    def add(self, conversation_id: str, document: ParsedDocument) -> None:
        """Attach a document to a conversation."""
        self._documents[conversation_id] = self.documents_for(conversation_id) + (document,)
        self._save()

    def remove(self, conversation_id: str, document_id: str) -> bool:
        """Detach one document.

        Returns:
            True if removed, False if not found
        """
        current = self.documents_for(conversation_id)
        remaining = tuple(d for d in current if d.id != document_id)
        if len(remaining) == len(current):
            return False

        if remaining:
            self._documents[conversation_id] = remaining
        else:
            self._documents.pop(conversation_id, None)
        self._save()
        return True

    def drop_conversation(self, conversation_id: str) -> None:
        """Forget every document of a deleted conversation."""
        if self._documents.pop(conversation_id, None) is not None:
            self._save()

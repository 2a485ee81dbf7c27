"""Conversation store: the single source of truth for chat state.

Holds every Conversation in memory, replaces whole Conversation objects on
each write (copy-on-write) and notifies subscribers afterwards. Durability
is a JSON document written by save(); the host UI decides when to call it.
"""

from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from . import Annotation, Conversation, Message
from .json_file import load_json, save_json


logger = structlog.get_logger()

StoreListener = Callable[[Optional[str]], None]


class RecordNotFoundError(LookupError):
    """A conversation or message id does not exist in the store."""


def _advance(previous: datetime) -> datetime:
    """Timestamp for a mutation; never earlier than the previous one."""
    now = datetime.now()
    return now if now > previous else previous


class ConversationStore:
    """Manages the conversation collection.

    Conversations are kept newest first. Every mutation that touches
    messages or annotations refreshes the conversation's updated_at.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        """Initialize the conversation store.

        Args:
            path: JSON file backing the store, or None for memory only
        """
        self._path = path
        self._conversations: List[Conversation] = []
        self._listeners: List[StoreListener] = []

    # ==================== Persistence ====================

    def load(self) -> None:
        """Load conversations from disk, starting empty on any failure."""
        self._conversations = []
        if self._path is None:
            return

        data = load_json(self._path, default=list)
        if not isinstance(data, list):
            logger.warning("conversation_store_bad_shape", path=str(self._path))
            data = []

        for index, record in enumerate(data):
            try:
                self._conversations.append(Conversation.from_dict(record))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(
                    "conversation_record_skipped", index=index, error=str(e)
                )

        logger.info("conversations_loaded", count=len(self._conversations))
        self._notify(None)

    def save(self) -> None:
        """Write the whole collection to disk."""
        if self._path is None:
            return
        save_json(self._path, [c.to_dict() for c in self._conversations])

    # ==================== Subscription ====================

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener.

        Args:
            listener: Called with the changed conversation id (None for
                whole-collection changes)

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, conversation_id: Optional[str]) -> None:
        for listener in list(self._listeners):
            listener(conversation_id)

    # ==================== Reads ====================

    @property
    def conversations(self) -> Tuple[Conversation, ...]:
        """All conversations, newest first."""
        return tuple(self._conversations)

    def get(self, conversation_id: str) -> Optional[Conversation]:
        """Get a conversation by ID."""
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    def require(self, conversation_id: str) -> Conversation:
        """Get a conversation by ID or raise RecordNotFoundError."""
        conversation = self.get(conversation_id)
        if conversation is None:
            raise RecordNotFoundError(f"Unknown conversation: {conversation_id}")
        return conversation

    def annotations_for(
        self, conversation_id: str, message_id: str
    ) -> Tuple[Annotation, ...]:
        """Get the annotations attached to a message (empty if unknown)."""
        conversation = self.get(conversation_id)
        if conversation is None:
            return ()
        return conversation.annotations_for(message_id)

    def find_annotation(
        self, conversation_id: str, message_id: str, annotation_id: str
    ) -> Optional[Annotation]:
        """Find one annotation by ID."""
        for annotation in self.annotations_for(conversation_id, message_id):
            if annotation.id == annotation_id:
                return annotation
        return None

    # ==================== Writes ====================

    def _put(self, conversation: Conversation) -> Conversation:
        for i, existing in enumerate(self._conversations):
            if existing.id == conversation.id:
                self._conversations[i] = conversation
                break
        else:
            raise RecordNotFoundError(f"Unknown conversation: {conversation.id}")
        self._notify(conversation.id)
        return conversation

    def create_conversation(self, title: str = "New chat") -> Conversation:
        """Create a conversation and place it first.

        Args:
            title: Initial title

        Returns:
            The new conversation
        """
        conversation = Conversation.create(title)
        self._conversations.insert(0, conversation)
        logger.debug("conversation_created", conversation_id=conversation.id)
        self._notify(conversation.id)
        return conversation

    def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation.

        Returns:
            True if deleted, False if not found
        """
        remaining = [c for c in self._conversations if c.id != conversation_id]
        if len(remaining) == len(self._conversations):
            return False
        self._conversations = remaining
        self._notify(conversation_id)
        return True

    def rename(self, conversation_id: str, title: str) -> Conversation:
        """Change a conversation's title."""
        conversation = self.require(conversation_id)
        return self._put(replace(
            conversation,
            title=title,
            updated_at=_advance(conversation.updated_at),
        ))

    def touch(self, conversation_id: str) -> Conversation:
        """Refresh a conversation's updated_at."""
        conversation = self.require(conversation_id)
        return self._put(replace(
            conversation, updated_at=_advance(conversation.updated_at)
        ))

    def append_messages(
        self,
        conversation_id: str,
        *messages: Message,
        title: Optional[str] = None,
    ) -> Conversation:
        """Append messages to the end of a conversation.

        Args:
            conversation_id: Target conversation
            messages: Messages to append, in order
            title: Optional new title applied in the same write
        """
        conversation = self.require(conversation_id)
        return self._put(replace(
            conversation,
            messages=conversation.messages + tuple(messages),
            title=title if title is not None else conversation.title,
            updated_at=_advance(conversation.updated_at),
        ))

    def set_message_content(
        self, conversation_id: str, message_id: str, content: str
    ) -> Conversation:
        """Replace a message's content.

        Raises:
            RecordNotFoundError: If the conversation or message is unknown
        """
        conversation = self.require(conversation_id)
        if conversation.get_message(message_id) is None:
            raise RecordNotFoundError(f"Unknown message: {message_id}")

        messages = tuple(
            replace(m, content=content) if m.id == message_id else m
            for m in conversation.messages
        )
        return self._put(replace(
            conversation,
            messages=messages,
            updated_at=_advance(conversation.updated_at),
        ))

    def add_annotation(
        self, conversation_id: str, message_id: str, annotation: Annotation
    ) -> Conversation:
        """Attach an annotation to a message.

        Raises:
            RecordNotFoundError: If the conversation or message is unknown
        """
        conversation = self.require(conversation_id)
        if conversation.get_message(message_id) is None:
            raise RecordNotFoundError(f"Unknown message: {message_id}")

        annotations: Dict[str, Tuple[Annotation, ...]] = dict(conversation.annotations)
        annotations[message_id] = annotations.get(message_id, ()) + (annotation,)
        return self._put(replace(
            conversation,
            annotations=annotations,
            updated_at=_advance(conversation.updated_at),
        ))

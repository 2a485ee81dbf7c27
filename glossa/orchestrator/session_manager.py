"""Streaming session manager.

Runs one user turn at a time: appends the user and placeholder assistant
messages, streams snapshots from the active provider into the store and
falls back to the other enabled credentials when a provider fails.
"""

from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

import structlog

from ..config.settings import settings
from ..llm.base_adapter import ErrorKind, ImageAttachment, NoCredentialError, ProviderError
from ..llm.registry import AdapterFactory, create_adapter
from ..storage import ROLE_ASSISTANT, ROLE_USER, Message, ProviderCredential
from ..storage.conversation_store import ConversationStore, RecordNotFoundError
from ..storage.credential_store import ProviderRegistry
from ..storage.document_library import DocumentLibrary
from .document_context import build_document_context


logger = structlog.get_logger()

DEFAULT_TITLE = "New chat"
ERROR_TEMPLATE = "⚠️ **Error:** {message}\n\nPlease check your API key in settings."


class SessionState(str, Enum):
    """Whether a turn is currently streaming."""

    IDLE = "idle"
    STREAMING = "streaming"


@dataclass
class StreamingSession:
    """The in-flight turn. Never persisted."""

    conversation_id: str
    message_id: str
    cancelled: bool = False
    buffer: str = ""


StateListener = Callable[[SessionState], None]


def format_error(message: str) -> str:
    """Render a failure as assistant message content."""
    return ERROR_TEMPLATE.format(message=message)


def generate_title(text: str, max_chars: Optional[int] = None) -> Optional[str]:
    """Title for a conversation from its first user message.

    Returns:
        The first `max_chars` characters, with "..." when cut, or None
        for blank text
    """
    if max_chars is None:
        max_chars = settings.title_max_chars
    stripped = text.strip()
    title = stripped[:max_chars].strip()
    if not title:
        return None
    return title + "..." if len(stripped) > max_chars else title


class StreamingSessionManager:
    """Orchestrates user turns with provider failover.

    Only one session streams at a time. Submitting while streaming is
    ignored rather than queued. State changes happen only inside the
    manager and are reported to listeners registered with
    on_state_changed().
    """

    def __init__(
        self,
        store: ConversationStore,
        registry: ProviderRegistry,
        documents: Optional[DocumentLibrary] = None,
        adapter_factory: AdapterFactory = create_adapter,
    ) -> None:
        """Initialize the session manager.

        Args:
            store: Conversation store written by every turn
            registry: Source of the active and fallback credentials
            documents: Uploaded documents prefixed to user turns
            adapter_factory: Builds an adapter for a credential
        """
        self._store = store
        self._registry = registry
        self._documents = documents
        self._adapter_factory = adapter_factory

        self._state = SessionState.IDLE
        self._session: Optional[StreamingSession] = None
        self._streaming_text = ""
        self._listeners: List[StateListener] = []

    # ==================== Status ====================

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def is_streaming(self) -> bool:
        """Whether a turn is in flight."""
        return self._state == SessionState.STREAMING

    @property
    def streaming_text(self) -> str:
        """Latest snapshot of the in-flight turn (empty when idle)."""
        return self._streaming_text

    @property
    def current_session(self) -> Optional[StreamingSession]:
        """The in-flight session, if any."""
        return self._session

    def on_state_changed(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: SessionState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    # ==================== Turns ====================

    async def submit(
        self,
        conversation_id: Optional[str],
        text: str,
        image: Optional[ImageAttachment] = None,
    ) -> Optional[str]:
        """Run one user turn to completion.

        Args:
            conversation_id: Target conversation; None or unknown creates one
            text: The user's message
            image: Optional single image attachment

        Returns:
            ID of the assistant message, or None if a turn was already
            streaming
        """
        if self.is_streaming:
            logger.debug("submit_ignored", reason="already_streaming")
            return None

        conversation = self._store.get(conversation_id) if conversation_id else None
        if conversation is None:
            conversation = self._store.create_conversation(DEFAULT_TITLE)

        title = generate_title(text) if not conversation.messages else None

        # History excludes the messages appended for this turn
        history = [
            {"role": m.role, "content": m.content}
            for m in conversation.messages
            if m.content
        ]

        user_message = Message.create(
            ROLE_USER, text, image_url=image.data_url if image is not None else None
        )

        active = self._registry.active_credential()
        if active is None:
            error = NoCredentialError()
            reply = Message.create(ROLE_ASSISTANT, format_error(error.message))
            self._store.append_messages(conversation.id, user_message, reply, title=title)
            logger.warning("turn_without_credential", conversation_id=conversation.id)
            return reply.id

        # Fixed for the whole turn; later credential edits do not affect it
        candidates = (active,) + self._registry.fallback_order(exclude=active.id)

        placeholder = Message.create(ROLE_ASSISTANT)
        self._store.append_messages(
            conversation.id, user_message, placeholder, title=title
        )

        session = StreamingSession(conversation.id, placeholder.id)
        self._session = session
        self._streaming_text = ""
        self._set_state(SessionState.STREAMING)

        documents = self._documents.documents_for(conversation.id) if self._documents else ()
        payload_text = build_document_context(documents) + text

        try:
            await self._run(session, candidates, history, payload_text, image)
        finally:
            if self._session is session:
                self._session = None
                self._streaming_text = ""
                self._set_state(SessionState.IDLE)

        return placeholder.id

    def stop(self) -> bool:
        """Cancel the in-flight turn, keeping any partial content.

        Returns:
            True if a turn was cancelled
        """
        session = self._session
        if session is None:
            return False

        session.cancelled = True
        self._session = None
        self._streaming_text = ""
        self._set_state(SessionState.IDLE)
        logger.info(
            "stream_cancelled",
            conversation_id=session.conversation_id,
            chars=len(session.buffer),
        )
        return True

    async def _run(
        self,
        session: StreamingSession,
        candidates: Sequence[ProviderCredential],
        history: List[Dict[str, str]],
        payload_text: str,
        image: Optional[ImageAttachment],
    ) -> None:
        first_error: Optional[ProviderError] = None

        for credential in candidates:
            if session.cancelled:
                return

            try:
                await self._stream_with(session, credential, history, payload_text, image)
                return
            except ProviderError as e:
                error = e
            except Exception as e:
                logger.exception(
                    "adapter_unexpected_error", provider=credential.provider.value
                )
                error = ProviderError(ErrorKind.UNKNOWN, str(e) or type(e).__name__)

            if session.cancelled:
                return

            logger.warning(
                "provider_failed",
                provider=credential.provider.value,
                credential_id=credential.id,
                kind=error.kind.value,
                message=error.message,
            )
            if first_error is None:
                first_error = error
            # No partial text from a failed attempt survives
            self._apply(session, "")

        if first_error is not None and not session.cancelled:
            self._write(session, format_error(first_error.message))

    async def _stream_with(
        self,
        session: StreamingSession,
        credential: ProviderCredential,
        history: List[Dict[str, str]],
        payload_text: str,
        image: Optional[ImageAttachment],
    ) -> None:
        adapter = self._adapter_factory(credential)
        logger.debug(
            "stream_started", provider=adapter.provider, model=adapter.model_id
        )

        async with aclosing(adapter.generate(history, payload_text, image)) as snapshots:
            async for snapshot in snapshots:
                if session.cancelled:
                    break
                self._apply(session, snapshot)

    def _apply(self, session: StreamingSession, snapshot: str) -> None:
        session.buffer = snapshot
        if self._session is session:
            self._streaming_text = snapshot
        self._write(session, snapshot)

    def _write(self, session: StreamingSession, content: str) -> None:
        try:
            self._store.set_message_content(
                session.conversation_id, session.message_id, content
            )
        except RecordNotFoundError:
            # Conversation deleted mid-stream; nothing left to update
            logger.info("stream_target_gone", conversation_id=session.conversation_id)
            session.cancelled = True

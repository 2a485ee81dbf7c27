"""Annotation engine.

Explains text the user selects in an assistant message, stores the
explanation as an annotation and runs the small follow-up dialogue that
hangs off it. Also tracks what a click in the chat view should do.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import structlog

from ..config.settings import settings
from ..llm.base_adapter import NoCredentialError, ProviderError
from ..llm.registry import AdapterFactory, create_adapter
from ..storage import ROLE_ASSISTANT, ROLE_USER, Annotation
from ..storage.conversation_store import ConversationStore, RecordNotFoundError
from ..storage.credential_store import ProviderRegistry
from ..utils.markdown_renderer import strip_markdown
from .span_resolver import Span, contains_case_insensitive, resolve_spans


logger = structlog.get_logger()

EXPLAIN_FAILED = "Sorry, I could not generate an explanation at this time."
FOLLOW_UP_FAILED = "Sorry, I could not answer that."


@dataclass(frozen=True)
class DialogueTurn:
    """One line of an annotation dialogue."""

    role: str
    content: str


@dataclass
class AnnotationDialogue:
    """The ad-hoc conversation about one selection.

    Lives only as long as the popup showing it. Follow-ups are appended
    here and never written back to the annotation.
    """

    conversation_id: str
    message_id: str
    selected_text: str
    turns: List[DialogueTurn] = field(default_factory=list)
    annotation_id: Optional[str] = None
    busy: bool = False

    def transcript(self) -> str:
        """Turns as "User: ..." / "Assistant: ..." lines."""
        return "\n".join(
            f"{'User' if turn.role == ROLE_USER else 'Assistant'}: {turn.content}"
            for turn in self.turns
        )


def truncate(text: str, max_chars: int) -> str:
    """Cut text to max_chars, marking the cut with "..."."""
    return text[:max_chars] + "..." if len(text) > max_chars else text


def seed_prompt(selected_text: str) -> str:
    """Opening user line of a dialogue."""
    return f'Explain: "{truncate(selected_text, settings.selection_preview_chars)}"'


def build_follow_up_context(dialogue: AnnotationDialogue, question: str) -> str:
    """Context string for a follow-up question."""
    return (
        f'Original selected text: "{dialogue.selected_text}"\n\n'
        f"Conversation so far:\n{dialogue.transcript()}\n\n"
        f"User's follow-up question: {question}"
    )


def is_findable(content: str, selected_text: str) -> bool:
    """Check that a selection occurs in the raw or rendered message text."""
    return contains_case_insensitive(content, selected_text) or contains_case_insensitive(
        strip_markdown(content), selected_text
    )


class AnnotationEngine:
    """Creates, reopens and extends annotation dialogues."""

    def __init__(
        self,
        store: ConversationStore,
        registry: ProviderRegistry,
        adapter_factory: AdapterFactory = create_adapter,
    ) -> None:
        self._store = store
        self._registry = registry
        self._adapter_factory = adapter_factory

    async def _explain(self, selected_text: str, context: str) -> str:
        credential = self._registry.active_credential()
        if credential is None:
            raise NoCredentialError()
        adapter = self._adapter_factory(credential)
        return await adapter.explain(selected_text, context)

    async def explain_selection(
        self, conversation_id: str, message_id: str, selected_text: str
    ) -> AnnotationDialogue:
        """Explain a new selection and persist it as an annotation.

        The annotation is stored only when the provider answered and the
        selection can be found in the message.

        Args:
            conversation_id: Conversation holding the message
            message_id: The assistant message the text was selected in
            selected_text: The selected text

        Returns:
            Dialogue with the seed line and the explanation (or apology)

        Raises:
            RecordNotFoundError: If the conversation or message is unknown
        """
        message = self._store.require(conversation_id).get_message(message_id)
        if message is None:
            raise RecordNotFoundError(f"Unknown message: {message_id}")

        selection = selected_text.strip()
        dialogue = AnnotationDialogue(
            conversation_id=conversation_id,
            message_id=message_id,
            selected_text=selection,
            turns=[DialogueTurn(ROLE_USER, seed_prompt(selection))],
            busy=True,
        )

        succeeded = False
        try:
            explanation = await self._explain(
                selection, message.content[:settings.explain_context_chars]
            )
            succeeded = True
        except ProviderError as e:
            logger.warning("explain_failed", kind=e.kind.value, message=e.message)
            explanation = EXPLAIN_FAILED
        except Exception:
            logger.exception("explain_unexpected_error")
            explanation = EXPLAIN_FAILED
        finally:
            dialogue.busy = False

        dialogue.turns.append(DialogueTurn(ROLE_ASSISTANT, explanation))

        if succeeded:
            if is_findable(message.content, selection):
                annotation = Annotation.create(selection, explanation)
                self._store.add_annotation(conversation_id, message_id, annotation)
                dialogue.annotation_id = annotation.id
            else:
                logger.info(
                    "annotation_not_persisted",
                    reason="selection_not_found",
                    message_id=message_id,
                )

        return dialogue

    def reopen(
        self, conversation_id: str, message_id: str, annotation_id: str
    ) -> Optional[AnnotationDialogue]:
        """Rebuild the dialogue of a stored annotation without a provider call."""
        annotation = self._store.find_annotation(conversation_id, message_id, annotation_id)
        if annotation is None:
            return None

        return AnnotationDialogue(
            conversation_id=conversation_id,
            message_id=message_id,
            selected_text=annotation.text,
            turns=[
                DialogueTurn(ROLE_USER, seed_prompt(annotation.text)),
                DialogueTurn(ROLE_ASSISTANT, annotation.explanation),
            ],
            annotation_id=annotation.id,
        )

    async def ask_follow_up(
        self, dialogue: AnnotationDialogue, question: str
    ) -> Optional[str]:
        """Ask a follow-up question inside a dialogue.

        Args:
            dialogue: Dialogue to extend
            question: The user's question

        Returns:
            The answer (or apology), or None if the question was blank or
            the dialogue is still waiting for an answer
        """
        question = question.strip()
        if not question or dialogue.busy:
            return None

        context = build_follow_up_context(dialogue, question)
        dialogue.turns.append(DialogueTurn(ROLE_USER, question))
        dialogue.busy = True

        try:
            answer = await self._explain(question, context)
        except ProviderError as e:
            logger.warning("follow_up_failed", kind=e.kind.value, message=e.message)
            answer = FOLLOW_UP_FAILED
        except Exception:
            logger.exception("follow_up_unexpected_error")
            answer = FOLLOW_UP_FAILED
        finally:
            dialogue.busy = False

        dialogue.turns.append(DialogueTurn(ROLE_ASSISTANT, answer))
        return answer

    def spans_for(
        self, conversation_id: str, message_id: str, text: Optional[str] = None
    ) -> List[Span]:
        """Resolve a message's annotations against its text.

        Args:
            conversation_id: Conversation holding the message
            message_id: Message whose annotations apply
            text: Text to resolve against (message content if None)
        """
        if text is None:
            conversation = self._store.get(conversation_id)
            message = conversation.get_message(message_id) if conversation else None
            text = message.content if message else ""
        return resolve_spans(text, self._store.annotations_for(conversation_id, message_id))


class ClickOutcome(str, Enum):
    """What a click in the chat view leads to."""

    REOPEN = "reopen"
    ASK = "ask"
    DISMISS = "dismiss"


@dataclass(frozen=True)
class PendingSelection:
    """A selection waiting for the user to press "ask"."""

    message_id: str
    text: str


@dataclass(frozen=True)
class ClickResult:
    """Outcome of a click plus the data needed to act on it."""

    outcome: ClickOutcome
    annotation_id: Optional[str] = None
    selection: Optional[PendingSelection] = None


class SelectionController:
    """Decides between reopening, offering "ask" and dismissing.

    Holds the transient "ask" affordance state.
    """

    def __init__(self, min_chars: Optional[int] = None) -> None:
        self._min_chars = settings.min_selection_chars if min_chars is None else min_chars
        self._pending: Optional[PendingSelection] = None

    @property
    def pending(self) -> Optional[PendingSelection]:
        """The selection currently offering "ask", if any."""
        return self._pending

    def handle_click(
        self,
        message_id: Optional[str],
        annotation_id: Optional[str] = None,
        selected_text: str = "",
    ) -> ClickResult:
        """Classify a click.

        Args:
            message_id: Message under the click, None outside any message
            annotation_id: Highlight under the click, if any
            selected_text: The live text selection at click time
        """
        if annotation_id is not None:
            self._pending = None
            return ClickResult(ClickOutcome.REOPEN, annotation_id=annotation_id)

        text = selected_text.strip()
        if message_id is not None and len(text) >= self._min_chars:
            self._pending = PendingSelection(message_id, text)
            return ClickResult(ClickOutcome.ASK, selection=self._pending)

        self._pending = None
        return ClickResult(ClickOutcome.DISMISS)

    def take_pending(self) -> Optional[PendingSelection]:
        """Consume the pending selection (the user pressed "ask")."""
        pending, self._pending = self._pending, None
        return pending

    def dismiss(self) -> None:
        """Drop the pending selection."""
        self._pending = None

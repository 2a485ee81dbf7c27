"""Base adapter interface for LLM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Dict, List, Optional


class ErrorKind(str, Enum):
    """Failure categories shared by every provider."""

    AUTH_ERROR = "auth_error"
    RATE_LIMIT = "rate_limit"
    NETWORK_ERROR = "network_error"
    MODEL_ERROR = "model_error"
    NO_CREDENTIAL = "no_credential"
    UNKNOWN = "unknown"


class ProviderError(Exception):
    """A provider request failed.

    Attributes:
        kind: Failure category
        message: Human-readable description shown to the user
    """

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"ProviderError(kind={self.kind.value!r}, message={self.message!r})"


class NoCredentialError(ProviderError):
    """No enabled credential is configured."""

    def __init__(self, message: str = "No API key configured. Add one in Settings.") -> None:
        super().__init__(ErrorKind.NO_CREDENTIAL, message)


def error_kind_for_status(status_code: Optional[int]) -> ErrorKind:
    """Map an HTTP status code onto an ErrorKind."""
    if status_code in (401, 403):
        return ErrorKind.AUTH_ERROR
    if status_code == 429:
        return ErrorKind.RATE_LIMIT
    if status_code is None:
        return ErrorKind.UNKNOWN
    return ErrorKind.MODEL_ERROR


@dataclass(frozen=True)
class ImageAttachment:
    """A single image attached to a user turn."""

    base64: str
    mime_type: str = "image/png"

    @property
    def data_url(self) -> str:
        """The image as a data: URL."""
        return f"data:{self.mime_type};base64,{self.base64}"


# Yielded instead of raising when a backend returns no text
EMPTY_RESPONSE = "Sorry, I could not generate a response."
EMPTY_EXPLANATION = "Could not generate explanation."


class ProviderAdapter(ABC):
    """Abstract base class for provider adapters.

    Adapters are stateless - they receive a prompt and return a response.
    They do not maintain conversation history or touch the stores.

    generate() yields cumulative snapshots: every item is the complete
    text produced so far, never a delta. Backends that cannot stream
    still return a one-shot async iterator.
    """

    @abstractmethod
    def generate(
        self,
        history: List[Dict[str, str]],
        new_user_text: str,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[str]:
        """Stream a response as cumulative snapshots.

        Args:
            history: Prior turns as dicts with 'role' and 'content' keys,
                oldest first
            new_user_text: The new user message (with any document prefix)
            image: Optional image for multimodal models

        Yields:
            The accumulated response text after each chunk

        Raises:
            ProviderError: On any backend failure
        """

    @abstractmethod
    async def explain(self, selected_text: str, context: str) -> str:
        """Explain a piece of selected text (non-streaming).

        Args:
            selected_text: The text the user highlighted
            context: Surrounding message text or follow-up transcript

        Returns:
            Explanation text

        Raises:
            ProviderError: On any backend failure
        """

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Get the model ID."""

    @property
    @abstractmethod
    def provider(self) -> str:
        """Get the provider name."""

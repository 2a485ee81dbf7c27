"""Google Gemini adapter implementation."""

import base64
from typing import Any, AsyncIterator, Dict, List, Optional

import google.generativeai as genai
from google.api_core import exceptions

from .base_adapter import (
    EMPTY_EXPLANATION,
    EMPTY_RESPONSE,
    ErrorKind,
    ImageAttachment,
    ProviderAdapter,
    ProviderError,
)
from .prompts import DEFAULT_IMAGE_PROMPT, SYSTEM_PROMPT, build_explain_prompt


def to_provider_error(error: Exception) -> ProviderError:
    """Translate a Google API error.

    Google reports a rejected key as a 400 InvalidArgument.
    """
    if isinstance(error, (exceptions.Unauthenticated, exceptions.PermissionDenied)):
        kind = ErrorKind.AUTH_ERROR
    elif isinstance(error, exceptions.InvalidArgument) and "api key" in str(error).lower():
        kind = ErrorKind.AUTH_ERROR
    elif isinstance(error, (exceptions.ResourceExhausted, exceptions.TooManyRequests)):
        kind = ErrorKind.RATE_LIMIT
    elif isinstance(error, (exceptions.ServiceUnavailable, exceptions.DeadlineExceeded)):
        kind = ErrorKind.NETWORK_ERROR
    elif isinstance(error, exceptions.GoogleAPICallError):
        kind = ErrorKind.MODEL_ERROR
    else:
        kind = ErrorKind.UNKNOWN
    return ProviderError(kind, f"Gemini API error: {error}")


def chunk_text(chunk: Any) -> str:
    """Text carried by one streamed response chunk.

    Chunks blocked by safety filters have no candidates or parts.
    """
    pieces = []
    for candidate in getattr(chunk, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            text = getattr(part, "text", "")
            if text:
                pieces.append(text)
    return "".join(pieces)


class GeminiAdapter(ProviderAdapter):
    """Adapter for Google Gemini models.

    Streams through the SDK's native async response iterator.
    """

    def __init__(
        self,
        api_key: str,
        model_id: str = "gemini-2.5-flash",
        model: Optional[Any] = None,
    ) -> None:
        """Initialize the Gemini adapter.

        Args:
            api_key: Google AI Studio key
            model_id: The Gemini model ID to use
            model: Pre-built GenerativeModel (tests)

        Raises:
            ProviderError: If no API key is given
        """
        self._model_id = model_id
        self._api_key = api_key
        if model is None and not api_key:
            raise ProviderError(ErrorKind.AUTH_ERROR, "No Gemini API key configured.")
        self._model = model

    @property
    def model_id(self) -> str:
        """Get the model ID."""
        return self._model_id

    @property
    def provider(self) -> str:
        """Get the provider name."""
        return "gemini"

    def _get_model(self, system_instruction: Optional[str] = None) -> Any:
        if self._model is not None:
            return self._model
        # The SDK keeps one global client configuration
        genai.configure(api_key=self._api_key)
        return genai.GenerativeModel(
            self._model_id, system_instruction=system_instruction
        )

    @staticmethod
    def build_history(history: List[Dict[str, str]]) -> List[Dict[str, Any]]:
        """Convert history to Gemini chat format ('assistant' becomes 'model')."""
        return [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [m["content"]],
            }
            for m in history
        ]

    async def generate(
        self,
        history: List[Dict[str, str]],
        new_user_text: str,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[str]:
        """Stream a response from Gemini as cumulative snapshots."""
        if image is not None:
            content: Any = [
                new_user_text or DEFAULT_IMAGE_PROMPT,
                {"mime_type": image.mime_type, "data": base64.b64decode(image.base64)},
            ]
        else:
            content = new_user_text

        full_text = ""
        try:
            model = self._get_model(SYSTEM_PROMPT)
            chat = model.start_chat(history=self.build_history(history))
            response = await chat.send_message_async(content, stream=True)
            async for chunk in response:
                text = chunk_text(chunk)
                if text:
                    full_text += text
                    yield full_text
        except exceptions.GoogleAPIError as e:
            raise to_provider_error(e) from e

        if not full_text:
            yield EMPTY_RESPONSE

    async def explain(self, selected_text: str, context: str) -> str:
        """Get a short explanation from Gemini."""
        try:
            model = self._get_model()
            response = await model.generate_content_async(
                build_explain_prompt(selected_text, context)
            )
        except exceptions.GoogleAPIError as e:
            raise to_provider_error(e) from e

        return chunk_text(response) or EMPTY_EXPLANATION

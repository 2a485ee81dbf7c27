"""OpenAI adapter implementation."""

from typing import Any, AsyncIterator, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from .base_adapter import (
    EMPTY_EXPLANATION,
    EMPTY_RESPONSE,
    ErrorKind,
    ImageAttachment,
    ProviderAdapter,
    ProviderError,
)
from .prompts import DEFAULT_IMAGE_PROMPT, SYSTEM_PROMPT, build_explain_prompt


def to_provider_error(error: openai.APIError, label: str = "OpenAI") -> ProviderError:
    """Translate an OpenAI SDK error (also used by compatible backends)."""
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        kind = ErrorKind.AUTH_ERROR
    elif isinstance(error, openai.RateLimitError):
        kind = ErrorKind.RATE_LIMIT
    elif isinstance(error, openai.APIConnectionError):
        kind = ErrorKind.NETWORK_ERROR
    elif isinstance(error, openai.APIStatusError):
        kind = ErrorKind.MODEL_ERROR
    else:
        kind = ErrorKind.UNKNOWN
    return ProviderError(kind, f"{label} API error: {error}")


class OpenAIAdapter(ProviderAdapter):
    """Adapter for OpenAI chat-completions models.

    Streams server-sent chat-completion chunks and accumulates their
    deltas into snapshots.
    """

    def __init__(
        self,
        api_key: str,
        model_id: str = "gpt-4o-mini",
        client: Optional[Any] = None,
    ) -> None:
        """Initialize the OpenAI adapter.

        Args:
            api_key: OpenAI API key
            model_id: The OpenAI model ID to use
            client: Pre-built AsyncOpenAI client (tests)

        Raises:
            ProviderError: If no API key is given
        """
        self._model_id = model_id
        if client is None:
            if not api_key:
                raise ProviderError(ErrorKind.AUTH_ERROR, "No OpenAI API key configured.")
            client = AsyncOpenAI(api_key=api_key)
        self._client = client

    @property
    def model_id(self) -> str:
        """Get the model ID."""
        return self._model_id

    @property
    def provider(self) -> str:
        """Get the provider name."""
        return "openai"

    @staticmethod
    def build_messages(
        history: List[Dict[str, str]],
        new_user_text: str,
        image: Optional[ImageAttachment] = None,
    ) -> List[Dict[str, Any]]:
        """Prepare chat-completions messages with the system prompt."""
        api_messages: List[Dict[str, Any]] = [
            {"role": "system", "content": SYSTEM_PROMPT}
        ]
        api_messages.extend({"role": m["role"], "content": m["content"]} for m in history)

        if image is not None:
            api_messages.append({
                "role": "user",
                "content": [
                    {"type": "text", "text": new_user_text or DEFAULT_IMAGE_PROMPT},
                    {"type": "image_url", "image_url": {"url": image.data_url}},
                ],
            })
        else:
            api_messages.append({"role": "user", "content": new_user_text})
        return api_messages

    async def generate(
        self,
        history: List[Dict[str, str]],
        new_user_text: str,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[str]:
        """Stream a response from OpenAI as cumulative snapshots."""
        full_text = ""
        try:
            stream = await self._client.chat.completions.create(
                model=self._model_id,
                messages=self.build_messages(history, new_user_text, image),
                stream=True,
            )

            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    full_text += chunk.choices[0].delta.content
                    yield full_text

        except openai.APIError as e:
            raise to_provider_error(e) from e

        if not full_text:
            yield EMPTY_RESPONSE

    async def explain(self, selected_text: str, context: str) -> str:
        """Get a short explanation from OpenAI."""
        try:
            response = await self._client.chat.completions.create(
                model=self._model_id,
                messages=[{
                    "role": "user",
                    "content": build_explain_prompt(selected_text, context),
                }],
            )
        except openai.APIError as e:
            raise to_provider_error(e) from e

        if not response.choices:
            return EMPTY_EXPLANATION
        return response.choices[0].message.content or EMPTY_EXPLANATION

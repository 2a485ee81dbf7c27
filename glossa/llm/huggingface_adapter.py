"""Hugging Face adapter implementation.

The Hugging Face router speaks the OpenAI chat-completions protocol. It is
called without streaming and the finished text is replayed as word
snapshots so it behaves like the streaming backends.
"""

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
from .openai_adapter import to_provider_error
from .prompts import EXPLAIN_SYSTEM_PROMPT, SYSTEM_PROMPT, simulate_stream


HUGGINGFACE_BASE_URL = "https://router.huggingface.co/v1"


def extract_response_text(response: Any) -> Optional[str]:
    """Pull text out of a chat completion.

    Reasoning models (DeepSeek R1) may answer in reasoning_content
    instead of content.
    """
    if not response.choices:
        return None
    message = response.choices[0].message
    return message.content or getattr(message, "reasoning_content", None) or None


class HuggingFaceAdapter(ProviderAdapter):
    """Adapter for Hugging Face hosted models.

    Hugging Face provides access to open models through an
    OpenAI-compatible API.
    """

    def __init__(
        self,
        api_key: str,
        model_id: str = "meta-llama/Llama-3.1-8B-Instruct",
        client: Optional[Any] = None,
        chunk_delay: Optional[float] = None,
    ) -> None:
        """Initialize the Hugging Face adapter.

        Args:
            api_key: Hugging Face access token
            model_id: The hub model ID to use
            client: Pre-built AsyncOpenAI client (tests)
            chunk_delay: Seconds between simulated snapshots

        Raises:
            ProviderError: If no token is given
        """
        self._model_id = model_id
        self._chunk_delay = chunk_delay
        if client is None:
            if not api_key:
                raise ProviderError(
                    ErrorKind.AUTH_ERROR, "No Hugging Face API key configured."
                )
            client = AsyncOpenAI(api_key=api_key, base_url=HUGGINGFACE_BASE_URL)
        self._client = client

    @property
    def model_id(self) -> str:
        """Get the model ID."""
        return self._model_id

    @property
    def provider(self) -> str:
        """Get the provider name."""
        return "huggingface"

    async def generate(
        self,
        history: List[Dict[str, str]],
        new_user_text: str,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[str]:
        """Get a complete response and replay it as snapshots.

        Images are not supported by the router models and are ignored.
        """
        api_messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        api_messages.extend({"role": m["role"], "content": m["content"]} for m in history)
        api_messages.append({"role": "user", "content": new_user_text})

        try:
            response = await self._client.chat.completions.create(
                model=self._model_id,
                messages=api_messages,
                max_tokens=2048,
                temperature=0.7,
                top_p=0.95,
                stream=False,
            )
        except openai.APIError as e:
            raise to_provider_error(e, "Hugging Face") from e

        text = extract_response_text(response)
        if not text:
            yield EMPTY_RESPONSE
            return

        async for snapshot in simulate_stream(text, self._chunk_delay):
            yield snapshot

    async def explain(self, selected_text: str, context: str) -> str:
        """Get a short explanation from Hugging Face."""
        try:
            response = await self._client.chat.completions.create(
                model=self._model_id,
                messages=[
                    {"role": "system", "content": EXPLAIN_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": f'Explain this:\n\n"{selected_text}"\n\nContext: "{context}"',
                    },
                ],
                max_tokens=300,
                temperature=0.5,
                stream=False,
            )
        except openai.APIError as e:
            raise to_provider_error(e, "Hugging Face") from e

        return extract_response_text(response) or EMPTY_EXPLANATION

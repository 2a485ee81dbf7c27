"""Anthropic Claude adapter implementation."""

from typing import Any, AsyncIterator, Dict, List, Optional

import anthropic

from .base_adapter import (
    EMPTY_EXPLANATION,
    EMPTY_RESPONSE,
    ErrorKind,
    ImageAttachment,
    ProviderAdapter,
    ProviderError,
)
from .prompts import DEFAULT_IMAGE_PROMPT, SYSTEM_PROMPT, build_explain_prompt
from ..config.settings import settings


def to_provider_error(error: anthropic.APIError) -> ProviderError:
    """Translate an Anthropic SDK error."""
    if isinstance(error, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        kind = ErrorKind.AUTH_ERROR
    elif isinstance(error, anthropic.RateLimitError):
        kind = ErrorKind.RATE_LIMIT
    elif isinstance(error, anthropic.APIConnectionError):
        kind = ErrorKind.NETWORK_ERROR
    elif isinstance(error, anthropic.APIStatusError):
        kind = ErrorKind.MODEL_ERROR
    else:
        kind = ErrorKind.UNKNOWN
    return ProviderError(kind, f"Anthropic API error: {error}")


class AnthropicAdapter(ProviderAdapter):
    """Adapter for Anthropic Claude models.

    Streams through the SDK's native event stream.
    """

    def __init__(
        self,
        api_key: str,
        model_id: str = "claude-sonnet-4-5-20250929",
        client: Optional[Any] = None,
    ) -> None:
        """Initialize the Anthropic adapter.

        Args:
            api_key: Anthropic API key
            model_id: The Claude model ID to use
            client: Pre-built AsyncAnthropic client (tests)

        Raises:
            ProviderError: If no API key is given
        """
        self._model_id = model_id
        if client is None:
            if not api_key:
                raise ProviderError(
                    ErrorKind.AUTH_ERROR, "No Anthropic API key configured."
                )
            client = anthropic.AsyncAnthropic(api_key=api_key)
        self._client = client

    @property
    def model_id(self) -> str:
        """Get the model ID."""
        return self._model_id

    @property
    def provider(self) -> str:
        """Get the provider name."""
        return "anthropic"

    @staticmethod
    def build_messages(
        history: List[Dict[str, str]],
        new_user_text: str,
        image: Optional[ImageAttachment] = None,
    ) -> List[Dict[str, Any]]:
        """Convert history and the new turn to Messages API format."""
        messages: List[Dict[str, Any]] = [
            {"role": m["role"], "content": m["content"]} for m in history
        ]
        if image is not None:
            messages.append({
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": image.mime_type,
                            "data": image.base64,
                        },
                    },
                    {"type": "text", "text": new_user_text or DEFAULT_IMAGE_PROMPT},
                ],
            })
        else:
            messages.append({"role": "user", "content": new_user_text})
        return messages

    async def generate(
        self,
        history: List[Dict[str, str]],
        new_user_text: str,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[str]:
        """Stream a response from Claude as cumulative snapshots."""
        full_text = ""
        try:
            async with self._client.messages.stream(
                model=self._model_id,
                max_tokens=settings.max_tokens,
                system=SYSTEM_PROMPT,
                messages=self.build_messages(history, new_user_text, image),
            ) as stream:
                async for text in stream.text_stream:
                    if text:
                        full_text += text
                        yield full_text
        except anthropic.APIError as e:
            raise to_provider_error(e) from e

        if not full_text:
            yield EMPTY_RESPONSE

    async def explain(self, selected_text: str, context: str) -> str:
        """Get a short explanation from Claude."""
        try:
            response = await self._client.messages.create(
                model=self._model_id,
                max_tokens=512,
                messages=[{
                    "role": "user",
                    "content": build_explain_prompt(selected_text, context),
                }],
            )
        except anthropic.APIError as e:
            raise to_provider_error(e) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return text or EMPTY_EXPLANATION

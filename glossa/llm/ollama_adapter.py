"""Ollama adapter implementation.

Talks to a local Ollama daemon. Streaming responses arrive as
newline-delimited JSON objects, one per generated chunk.
"""

import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import structlog

from .base_adapter import (
    EMPTY_EXPLANATION,
    EMPTY_RESPONSE,
    ErrorKind,
    ImageAttachment,
    ProviderAdapter,
    ProviderError,
    error_kind_for_status,
)
from .prompts import DEFAULT_IMAGE_PROMPT, SYSTEM_PROMPT, build_explain_prompt
from ..config.settings import settings


logger = structlog.get_logger()

# Tried in order when no model is configured
PREFERRED_MODELS = ["llama3.2", "llama3.1", "llama3", "mistral", "phi3", "gemma2", "qwen2.5"]
VISION_MODEL = "llava"


@dataclass
class OllamaStatus:
    """Reachability of the local daemon and its installed models."""

    running: bool
    models: List[str] = field(default_factory=list)


def pick_model(installed: List[str]) -> Optional[str]:
    """Choose the preferred installed model, else the first one."""
    for preferred in PREFERRED_MODELS:
        for name in installed:
            if name.startswith(preferred):
                return name
    return installed[0] if installed else None


class OllamaAdapter(ProviderAdapter):
    """Adapter for a local Ollama daemon."""

    def __init__(
        self,
        model_id: str = "",
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the Ollama adapter.

        Args:
            model_id: Model to use; empty picks the best installed model
            base_url: Daemon URL (settings default if None)
            client: Pre-built client (tests); must carry its own base_url
        """
        self._model_id = model_id
        self._base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self._client = client

    @property
    def model_id(self) -> str:
        """Get the model ID."""
        return self._model_id

    @property
    def provider(self) -> str:
        """Get the provider name."""
        return "ollama"

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        # No request timeout: a hung daemon blocks until the transport fails
        async with httpx.AsyncClient(base_url=self._base_url, timeout=None) as client:
            yield client

    async def check_status(self) -> OllamaStatus:
        """Check whether the daemon is reachable and list its models."""
        try:
            async with self._session() as client:
                response = await client.get("/api/tags")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("ollama_unreachable", error=str(e))
            return OllamaStatus(running=False)

        models = [m.get("name", "") for m in data.get("models", []) if m.get("name")]
        return OllamaStatus(running=True, models=models)

    async def best_model(self) -> Optional[str]:
        """Find the best available installed model."""
        status = await self.check_status()
        if not status.running:
            return None
        return pick_model(status.models)

    async def _resolve_model(self, image: Optional[ImageAttachment]) -> str:
        if self._model_id:
            return self._model_id
        if image is not None:
            return VISION_MODEL
        model = await self.best_model()
        if not model:
            raise ProviderError(
                ErrorKind.MODEL_ERROR,
                "No Ollama models available. Please run: ollama pull llama3.2",
            )
        return model

    @staticmethod
    def build_messages(
        history: List[Dict[str, str]],
        new_user_text: str,
        image: Optional[ImageAttachment] = None,
    ) -> List[Dict[str, Any]]:
        """Prepare /api/chat messages."""
        messages: List[Dict[str, Any]] = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages.extend(
            {
                "role": "assistant" if m["role"] == "assistant" else "user",
                "content": m["content"],
            }
            for m in history
        )
        user_message: Dict[str, Any] = {"role": "user", "content": new_user_text}
        if image is not None:
            user_message["content"] = new_user_text or DEFAULT_IMAGE_PROMPT
            user_message["images"] = [image.base64]
        messages.append(user_message)
        return messages

    async def generate(
        self,
        history: List[Dict[str, str]],
        new_user_text: str,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[str]:
        """Stream a response from Ollama as cumulative snapshots."""
        model = await self._resolve_model(image)
        payload = {
            "model": model,
            "messages": self.build_messages(history, new_user_text, image),
            "stream": True,
        }

        full_text = ""
        try:
            async with self._session() as client:
                async with client.stream("POST", "/api/chat", json=payload) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise ProviderError(
                            error_kind_for_status(response.status_code),
                            f"Ollama error: {body}",
                        )

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError:
                            logger.debug("ollama_line_skipped", line=line[:80])
                            continue

                        if data.get("error"):
                            raise ProviderError(
                                ErrorKind.MODEL_ERROR, f"Ollama error: {data['error']}"
                            )

                        piece = (data.get("message") or {}).get("content")
                        if piece:
                            full_text += piece
                            yield full_text

        except httpx.TransportError as e:
            raise ProviderError(
                ErrorKind.NETWORK_ERROR, f"Could not reach Ollama at {self._base_url}: {e}"
            ) from e

        if not full_text:
            yield EMPTY_RESPONSE

    async def explain(self, selected_text: str, context: str) -> str:
        """Get a short explanation from Ollama."""
        model = await self._resolve_model(None)
        payload = {
            "model": model,
            "messages": [{
                "role": "user",
                "content": build_explain_prompt(selected_text, context),
            }],
            "stream": False,
        }

        try:
            async with self._session() as client:
                response = await client.post("/api/chat", json=payload)
        except httpx.TransportError as e:
            raise ProviderError(
                ErrorKind.NETWORK_ERROR, f"Could not reach Ollama at {self._base_url}: {e}"
            ) from e

        if response.status_code >= 400:
            raise ProviderError(
                error_kind_for_status(response.status_code),
                f"Ollama error: {response.text}",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(ErrorKind.MODEL_ERROR, "Ollama returned invalid JSON") from e
        return (data.get("message") or {}).get("content") or EMPTY_EXPLANATION

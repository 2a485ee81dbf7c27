"""Adapter registry: maps provider kinds to adapter classes."""

from typing import Callable

from .anthropic_adapter import AnthropicAdapter
from .base_adapter import ErrorKind, ProviderAdapter, ProviderError
from .gemini_adapter import GeminiAdapter
from .huggingface_adapter import HuggingFaceAdapter
from .ollama_adapter import OllamaAdapter
from .openai_adapter import OpenAIAdapter
from ..config.models import ProviderKind, get_provider
from ..storage import ProviderCredential


AdapterFactory = Callable[[ProviderCredential], ProviderAdapter]

KEYED_ADAPTERS = {
    ProviderKind.ANTHROPIC: AnthropicAdapter,
    ProviderKind.OPENAI: OpenAIAdapter,
    ProviderKind.GEMINI: GeminiAdapter,
    ProviderKind.HUGGINGFACE: HuggingFaceAdapter,
}


def create_adapter(credential: ProviderCredential) -> ProviderAdapter:
    """Build the adapter for a stored credential.

    Args:
        credential: Credential naming the provider, key and model

    Returns:
        A ready adapter

    Raises:
        ProviderError: AUTH_ERROR if the provider needs a key and has none,
            MODEL_ERROR for an unknown provider kind
    """
    spec = get_provider(credential.provider)
    if spec is None:
        raise ProviderError(
            ErrorKind.MODEL_ERROR, f"Unknown provider: {credential.provider}"
        )

    if credential.provider == ProviderKind.OLLAMA:
        return OllamaAdapter(model_id=credential.model)

    if spec.requires_key and not credential.api_key:
        raise ProviderError(
            ErrorKind.AUTH_ERROR, f"No {spec.display_name} API key configured."
        )

    adapter_class = KEYED_ADAPTERS[credential.provider]
    return adapter_class(credential.api_key, credential.model or spec.default_model)

"""Provider catalog: supported backends and their models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class ProviderKind(str, Enum):
    """Backend kinds a credential can point at."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GEMINI = "gemini"
    HUGGINGFACE = "huggingface"
    OLLAMA = "ollama"


@dataclass(frozen=True)
class ProviderSpec:
    """Static description of a provider."""

    kind: ProviderKind
    display_name: str
    default_model: str
    models: List[str] = field(default_factory=list)
    requires_key: bool = True
    key_placeholder: str = ""

    def accepts_model(self, model_id: str) -> bool:
        """Check whether a model id is valid for this provider.

        Providers with an empty model list (local backends) accept anything.
        """
        if not self.models:
            return True
        return model_id in self.models


PROVIDERS: Dict[ProviderKind, ProviderSpec] = {
    ProviderKind.ANTHROPIC: ProviderSpec(
        kind=ProviderKind.ANTHROPIC,
        display_name="Anthropic Claude",
        default_model="claude-sonnet-4-5-20250929",
        models=[
            "claude-opus-4-5-20251101",
            "claude-sonnet-4-5-20250929",
            "claude-haiku-4-5-20251001",
            "claude-sonnet-4-20250514",
        ],
        key_placeholder="sk-ant-...",
    ),
    ProviderKind.OPENAI: ProviderSpec(
        kind=ProviderKind.OPENAI,
        display_name="OpenAI",
        default_model="gpt-4o-mini",
        models=["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo", "o1-mini"],
        key_placeholder="sk-...",
    ),
    ProviderKind.GEMINI: ProviderSpec(
        kind=ProviderKind.GEMINI,
        display_name="Google Gemini",
        default_model="gemini-2.5-flash",
        models=[
            "gemini-2.5-flash",
            "gemini-2.5-pro",
            "gemini-2.5-flash-lite",
            "gemini-2.0-flash",
            "gemini-2.0-flash-001",
            "gemini-1.5-flash",
            "gemini-1.5-pro",
        ],
        key_placeholder="AIzaSy...",
    ),
    ProviderKind.HUGGINGFACE: ProviderSpec(
        kind=ProviderKind.HUGGINGFACE,
        display_name="Hugging Face",
        default_model="meta-llama/Llama-3.1-8B-Instruct",
        models=[
            "meta-llama/Llama-3.1-8B-Instruct",
            "meta-llama/Llama-3.2-3B-Instruct",
            "meta-llama/Llama-3.2-1B-Instruct",
            "meta-llama/Llama-3.3-70B-Instruct",
            "Qwen/Qwen2.5-7B-Instruct",
            "Qwen/Qwen2.5-72B-Instruct",
            "Qwen/Qwen2.5-Coder-32B-Instruct",
            "deepseek-ai/DeepSeek-R1-Distill-Qwen-32B",
        ],
        key_placeholder="hf_...",
    ),
    # Local models are whatever the daemon has pulled
    ProviderKind.OLLAMA: ProviderSpec(
        kind=ProviderKind.OLLAMA,
        display_name="Ollama (local)",
        default_model="",
        requires_key=False,
    ),
}


def get_provider(kind: ProviderKind | str) -> Optional[ProviderSpec]:
    """Get the provider description for a kind.

    Args:
        kind: ProviderKind or its string value

    Returns:
        ProviderSpec if known, None otherwise
    """
    try:
        return PROVIDERS[ProviderKind(kind)]
    except ValueError:
        return None


def normalize_model(kind: ProviderKind, model_id: str) -> str:
    """Return a model id valid for the provider.

    Unknown models fall back to the provider default.
    """
    spec = PROVIDERS[kind]
    if model_id and spec.accepts_model(model_id):
        return model_id
    return spec.default_model

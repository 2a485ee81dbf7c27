"""Application settings and configuration."""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


# Load environment variables from .env file if present
load_dotenv()


def _default_data_dir() -> Path:
    override = os.getenv("GLOSSA_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".glossa"


@dataclass
class AppSettings:
    """Application-wide settings."""

    # Window defaults
    window_width: int = 1100
    window_height: int = 760
    window_title: str = "Glossa"

    # Paths
    app_data_dir: Path = field(default_factory=_default_data_dir)

    # Generation
    max_tokens: int = 4096
    simulated_stream_delay: float = 0.02  # Seconds between simulated snapshots
    ollama_base_url: str = field(
        default_factory=lambda: os.getenv("OLLAMA_HOST", "http://localhost:11434")
    )

    # Conversations
    title_max_chars: int = 40

    # Annotations
    explain_context_chars: int = 500
    selection_preview_chars: int = 100
    min_selection_chars: int = 3

    # Host UI save debounce
    save_debounce_ms: int = 500

    log_level: str = field(
        default_factory=lambda: os.getenv("GLOSSA_LOG_LEVEL", "INFO")
    )

    @property
    def conversations_path(self) -> Path:
        """Path of the conversation collection."""
        return self.app_data_dir / "conversations.json"

    @property
    def credentials_path(self) -> Path:
        """Path of the provider credential list."""
        return self.app_data_dir / "credentials.json"

    @property
    def documents_path(self) -> Path:
        """Path of the per-conversation document library."""
        return self.app_data_dir / "documents.json"

    @property
    def preferences_path(self) -> Path:
        """Path of the UI preferences file."""
        return self.app_data_dir / "config.json"


# Environment variables that may carry provider keys
API_KEY_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "huggingface": "HF_TOKEN",
}


def get_api_key(provider: str) -> Optional[str]:
    """Get API key for a provider from environment variables.

    Args:
        provider: The provider name (anthropic, openai, gemini, huggingface)

    Returns:
        The API key if found, None otherwise
    """
    env_var = API_KEY_ENV_VARS.get(provider.lower())
    if env_var:
        return os.getenv(env_var) or None
    return None


# Global settings instance
settings = AppSettings()

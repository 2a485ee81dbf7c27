"""Tests for adapter construction and error mapping."""

import pytest

from glossa.config.models import ProviderKind
from glossa.llm.base_adapter import ErrorKind, ProviderError, error_kind_for_status
from glossa.llm.ollama_adapter import OllamaAdapter
from glossa.llm.registry import create_adapter
from glossa.storage import ProviderCredential


def credential(kind, api_key="", model=""):
    return ProviderCredential(id="c", provider=kind, api_key=api_key, model=model, label="L")


def test_missing_key_is_auth_error():
    with pytest.raises(ProviderError) as excinfo:
        create_adapter(credential(ProviderKind.OPENAI))

    assert excinfo.value.kind == ErrorKind.AUTH_ERROR
    assert "OpenAI" in excinfo.value.message


def test_ollama_needs_no_key():
    adapter = create_adapter(credential(ProviderKind.OLLAMA, model="mistral"))

    assert isinstance(adapter, OllamaAdapter)
    assert adapter.model_id == "mistral"
    assert adapter.provider == "ollama"


def test_keyed_adapter_uses_default_model():
    adapter = create_adapter(credential(ProviderKind.ANTHROPIC, api_key="sk-ant-x"))

    assert adapter.provider == "anthropic"
    assert adapter.model_id == "claude-sonnet-4-5-20250929"


@pytest.mark.parametrize("status, kind", [
    (401, ErrorKind.AUTH_ERROR),
    (403, ErrorKind.AUTH_ERROR),
    (429, ErrorKind.RATE_LIMIT),
    (500, ErrorKind.MODEL_ERROR),
    (None, ErrorKind.UNKNOWN),
])
def test_error_kind_for_status(status, kind):
    assert error_kind_for_status(status) == kind

"""Tests for the provider registry."""

import json

import pytest

from glossa.config.models import PROVIDERS, ProviderKind
from glossa.storage.credential_store import ProviderRegistry, clean_api_key


def test_first_enabled_credential_becomes_active(registry):
    first = registry.add(ProviderKind.OPENAI, api_key="sk-one")
    registry.add(ProviderKind.ANTHROPIC, api_key="sk-ant-two")

    assert registry.active_id == first.id
    assert registry.active_credential() == first


def test_label_and_model_defaults(registry):
    credential = registry.add(ProviderKind.GEMINI, api_key="AIza", model="not-a-model")

    assert credential.label == "Google Gemini Key"
    assert credential.model == PROVIDERS[ProviderKind.GEMINI].default_model


def test_disabled_active_falls_back_to_first_enabled(registry):
    first = registry.add(ProviderKind.OPENAI, api_key="sk-one")
    second = registry.add(ProviderKind.ANTHROPIC, api_key="sk-ant-two")

    registry.set_enabled(first.id, False)

    assert registry.active_credential() == registry.get(second.id)
    assert registry.has_usable_credential()


def test_no_enabled_credentials(registry):
    only = registry.add(ProviderKind.OPENAI, api_key="sk-one")
    registry.toggle(only.id)

    assert registry.active_credential() is None
    assert not registry.has_usable_credential()


def test_fallback_order_skips_active_and_disabled(registry):
    a = registry.add(ProviderKind.OPENAI, api_key="a")
    b = registry.add(ProviderKind.ANTHROPIC, api_key="b")
    c = registry.add(ProviderKind.GEMINI, api_key="c")
    d = registry.add(ProviderKind.HUGGINGFACE, api_key="d")
    registry.set_enabled(c.id, False)

    assert [x.id for x in registry.fallback_order(exclude=a.id)] == [b.id, d.id]


def test_removing_active_clears_pointer(registry):
    first = registry.add(ProviderKind.OPENAI, api_key="sk-one")
    second = registry.add(ProviderKind.ANTHROPIC, api_key="sk-ant-two")

    assert registry.remove(first.id) is True
    assert registry.active_id is None
    assert registry.active_credential().id == second.id
    assert registry.remove(first.id) is False


def test_set_active_unknown_raises(registry):
    with pytest.raises(KeyError):
        registry.set_active("missing")


def test_changes_persist_and_reload(tmp_path):
    path = tmp_path / "credentials.json"
    registry = ProviderRegistry(path)
    kept = registry.add(ProviderKind.OPENAI, api_key="sk-one", label="Work")
    other = registry.add(ProviderKind.OLLAMA)
    registry.set_active(other.id)

    reloaded = ProviderRegistry(path)
    reloaded.load()

    assert [c.label for c in reloaded.credentials] == ["Work", "Ollama (local) Key"]
    assert reloaded.active_id == other.id
    assert reloaded.get(kept.id).api_key == "sk-one"


def test_load_normalizes_stale_records(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps({
        "credentials": [
            {
                "id": "c1",
                "provider": "anthropic",
                "api_key": "sk-ant-\u200bkey\n",
                "model": "claude-retired",
                "label": "Old",
            },
            {"id": "bad", "provider": "nonexistent"},
        ],
        "active_id": "c1",
    }), encoding="utf-8")

    registry = ProviderRegistry(path)
    registry.load()

    credential = registry.get("c1")
    assert credential.api_key == "sk-ant-key"
    assert credential.model == PROVIDERS[ProviderKind.ANTHROPIC].default_model
    assert len(registry.credentials) == 1
    # Normalized records are written back
    assert json.loads(path.read_text(encoding="utf-8"))["credentials"][0]["api_key"] == "sk-ant-key"


def test_corrupt_file_loads_empty(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text("[[[", encoding="utf-8")

    registry = ProviderRegistry(path)
    registry.load()

    assert registry.credentials == ()


def test_import_from_environment(registry, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    registry.add(ProviderKind.ANTHROPIC, api_key="sk-ant-stored")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env")

    added = registry.import_from_environment()

    assert [c.provider for c in added] == [ProviderKind.OPENAI]
    assert added[0].api_key == "sk-env"


def test_repr_hides_key(registry):
    credential = registry.add(ProviderKind.OPENAI, api_key="sk-secret-value")
    assert "sk-secret" not in repr(credential)
    assert credential.masked_key == "sk-secre..."


def test_clean_api_key():
    assert clean_api_key("  sk-abc \t ") == "sk-abc"


def test_set_model_normalizes(registry):
    credential = registry.add(ProviderKind.OPENAI, api_key="sk-one")

    assert registry.set_model(credential.id, "gpt-4o").model == "gpt-4o"
    assert registry.set_model(credential.id, "unknown").model == "gpt-4o-mini"


def test_malformed_credential_list_loads_empty(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps({"credentials": None, "active_id": None}), encoding="utf-8")

    registry = ProviderRegistry(path)
    registry.load()

    assert registry.credentials == ()
    assert registry.active_credential() is None


def test_non_object_records_are_skipped(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps({
        "credentials": ["oops", {"id": "c1", "provider": "openai", "api_key": "sk-one"}],
    }), encoding="utf-8")

    registry = ProviderRegistry(path)
    registry.load()

    assert [c.id for c in registry.credentials] == ["c1"]

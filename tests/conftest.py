"""Shared fixtures: scripted adapters and temporary stores."""

import asyncio
from typing import AsyncIterator, Dict, List, Optional, Sequence, Union

import pytest

from glossa.config.models import ProviderKind
from glossa.llm.base_adapter import ImageAttachment, ProviderAdapter
from glossa.storage import ProviderCredential
from glossa.storage.conversation_store import ConversationStore
from glossa.storage.credential_store import ProviderRegistry


Step = Union[str, Exception]


class FakeAdapter(ProviderAdapter):
    """Adapter that replays a script.

    `snapshots` items are yielded in order; an Exception item is raised
    at that point. If `gate` is set the stream waits on it after the last
    snapshot and then raises `after_gate`, if given.
    """

    def __init__(
        self,
        name: str,
        snapshots: Sequence[Step] = (),
        explanation: Step = "An explanation.",
        gate: Optional[asyncio.Event] = None,
        after_gate: Optional[Exception] = None,
    ) -> None:
        self.name = name
        self.snapshots = list(snapshots)
        self.explanation = explanation
        self.gate = gate
        self.after_gate = after_gate
        self.calls: List[Dict] = []
        self.explain_calls: List[Dict[str, str]] = []
        self.closed = False

    @property
    def model_id(self) -> str:
        return f"{self.name}-model"

    @property
    def provider(self) -> str:
        return self.name

    async def generate(
        self,
        history: List[Dict[str, str]],
        new_user_text: str,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[str]:
        self.calls.append({"history": history, "text": new_user_text, "image": image})
        try:
            for step in self.snapshots:
                if isinstance(step, Exception):
                    raise step
                yield step
                await asyncio.sleep(0)
            if self.gate is not None:
                await self.gate.wait()
            if self.after_gate is not None:
                raise self.after_gate
        finally:
            self.closed = True

    async def explain(self, selected_text: str, context: str) -> str:
        self.explain_calls.append({"selected_text": selected_text, "context": context})
        if isinstance(self.explanation, Exception):
            raise self.explanation
        return self.explanation


class AdapterBook:
    """Adapter factory keyed by credential label."""

    def __init__(self) -> None:
        self.adapters: Dict[str, FakeAdapter] = {}
        self.requested: List[str] = []

    def register(self, label: str, adapter: FakeAdapter) -> FakeAdapter:
        self.adapters[label] = adapter
        return adapter

    def __call__(self, credential: ProviderCredential) -> ProviderAdapter:
        self.requested.append(credential.label)
        return self.adapters[credential.label]


@pytest.fixture
def store(tmp_path):
    """Conversation store backed by a temporary file."""
    return ConversationStore(tmp_path / "conversations.json")


@pytest.fixture
def registry(tmp_path, monkeypatch):
    """Empty provider registry backed by a temporary file."""
    for var in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY", "HF_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    return ProviderRegistry(tmp_path / "credentials.json")


@pytest.fixture
def book():
    """Scripted adapter factory."""
    return AdapterBook()


def add_credential(registry: ProviderRegistry, label: str, kind=ProviderKind.OPENAI):
    """Add a keyed credential with a recognizable label."""
    return registry.add(kind, api_key=f"sk-{label}", label=label)

"""Tests for the streaming session manager."""

import asyncio

import pytest

from glossa.config.models import ProviderKind
from glossa.llm.base_adapter import ErrorKind, ImageAttachment, ProviderError
from glossa.orchestrator.document_context import CONTEXT_HEADER
from glossa.orchestrator.session_manager import (
    DEFAULT_TITLE,
    SessionState,
    StreamingSessionManager,
    format_error,
    generate_title,
)
from glossa.storage import ROLE_ASSISTANT, ROLE_USER, ParsedDocument
from glossa.storage.document_library import DocumentLibrary

from conftest import FakeAdapter, add_credential


def assistant_contents(store, conversation_id):
    """Record the last assistant message content after every store change."""
    seen = []

    def listener(changed_id):
        conversation = store.get(conversation_id)
        if changed_id != conversation_id or conversation is None or not conversation.messages:
            return
        last = conversation.messages[-1]
        if last.role == ROLE_ASSISTANT:
            seen.append(last.content)

    store.subscribe(listener)
    return seen


@pytest.fixture
def manager(store, registry, book):
    return StreamingSessionManager(store, registry, adapter_factory=book)


@pytest.mark.asyncio
async def test_final_snapshot_becomes_content(manager, store, registry, book):
    """The last snapshot is the stored reply and the session ends idle."""
    add_credential(registry, "primary")
    book.register("primary", FakeAdapter("primary", ["Hel", "Hello", "Hello there"]))
    states = []
    manager.on_state_changed(states.append)

    reply_id = await manager.submit(None, "Say hello")

    conversation = store.conversations[0]
    assert [m.role for m in conversation.messages] == [ROLE_USER, ROLE_ASSISTANT]
    assert conversation.messages[0].content == "Say hello"
    assert conversation.messages[1].id == reply_id
    assert conversation.messages[1].content == "Hello there"
    assert states == [SessionState.STREAMING, SessionState.IDLE]
    assert manager.state == SessionState.IDLE
    assert manager.streaming_text == ""
    assert manager.current_session is None


@pytest.mark.asyncio
async def test_first_message_titles_conversation(manager, store, registry, book):
    """Only the first user message sets the title."""
    add_credential(registry, "primary")
    book.register("primary", FakeAdapter("primary", ["ok"]))
    conversation = store.create_conversation(DEFAULT_TITLE)

    await manager.submit(conversation.id, "  What is a monad in functional programming?  ")
    await manager.submit(conversation.id, "Another question")

    title = store.get(conversation.id).title
    assert title == "What is a monad in functional programming"[:40] + "..."


@pytest.mark.asyncio
async def test_history_excludes_current_turn(manager, store, registry, book):
    """History holds earlier non-empty messages only."""
    add_credential(registry, "primary")
    adapter = book.register("primary", FakeAdapter("primary", ["first answer"]))
    conversation = store.create_conversation()

    await manager.submit(conversation.id, "first")
    await manager.submit(conversation.id, "second")

    assert adapter.calls[0]["history"] == []
    assert adapter.calls[1]["history"] == [
        {"role": ROLE_USER, "content": "first"},
        {"role": ROLE_ASSISTANT, "content": "first answer"},
    ]
    assert adapter.calls[1]["text"] == "second"


@pytest.mark.asyncio
async def test_failover_discards_partial_text(manager, store, registry, book):
    """A failed attempt's text is cleared before the next provider runs."""
    add_credential(registry, "primary")
    add_credential(registry, "backup", ProviderKind.ANTHROPIC)
    book.register(
        "primary",
        FakeAdapter("primary", ["partial", ProviderError(ErrorKind.RATE_LIMIT, "slow down")]),
    )
    book.register("backup", FakeAdapter("backup", ["ok"]))
    conversation = store.create_conversation()
    seen = assistant_contents(store, conversation.id)

    await manager.submit(conversation.id, "hi")

    assert book.requested == ["primary", "backup"]
    assert seen == ["", "partial", "", "ok"]
    assert store.get(conversation.id).messages[-1].content == "ok"


@pytest.mark.asyncio
async def test_all_providers_fail_reports_first_error(manager, store, registry, book):
    """When every candidate fails the first error is shown."""
    add_credential(registry, "primary")
    add_credential(registry, "backup")
    book.register(
        "primary", FakeAdapter("primary", [ProviderError(ErrorKind.AUTH_ERROR, "bad key")])
    )
    book.register(
        "backup", FakeAdapter("backup", [ProviderError(ErrorKind.NETWORK_ERROR, "offline")])
    )

    await manager.submit(None, "hi")

    reply = store.conversations[0].messages[-1]
    assert reply.content == format_error("bad key")
    assert manager.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_unexpected_exception_is_wrapped(manager, store, registry, book):
    """Non-provider exceptions count as failures too."""
    add_credential(registry, "primary")
    book.register("primary", FakeAdapter("primary", [RuntimeError("boom")]))

    await manager.submit(None, "hi")

    assert store.conversations[0].messages[-1].content == format_error("boom")


@pytest.mark.asyncio
async def test_disabled_credentials_are_skipped(manager, store, registry, book):
    add_credential(registry, "primary")
    disabled = add_credential(registry, "disabled")
    registry.set_enabled(disabled.id, False)
    book.register(
        "primary", FakeAdapter("primary", [ProviderError(ErrorKind.MODEL_ERROR, "nope")])
    )

    await manager.submit(None, "hi")

    assert book.requested == ["primary"]


@pytest.mark.asyncio
async def test_fallback_list_is_fixed_at_turn_start(manager, store, registry, book):
    """Credentials added mid-turn are not tried."""
    add_credential(registry, "primary")
    gate = asyncio.Event()
    book.register(
        "primary",
        FakeAdapter(
            "primary", ["one"], gate=gate,
            after_gate=ProviderError(ErrorKind.MODEL_ERROR, "nope"),
        ),
    )
    book.register("late", FakeAdapter("late", ["late answer"]))

    task = asyncio.create_task(manager.submit(None, "hi"))
    while manager.streaming_text != "one":
        await asyncio.sleep(0)

    add_credential(registry, "late")
    gate.set()
    await task

    assert book.requested == ["primary"]
    assert store.conversations[0].messages[-1].content == format_error("nope")


@pytest.mark.asyncio
async def test_stop_keeps_partial_and_allows_new_turn(manager, store, registry, book):
    """Cancelling after three snapshots leaves the third as content."""
    add_credential(registry, "primary")
    gate = asyncio.Event()
    first = book.register(
        "primary", FakeAdapter("primary", ["a", "a b", "a b c"], gate=gate)
    )
    conversation = store.create_conversation()

    task = asyncio.create_task(manager.submit(conversation.id, "count"))
    while manager.streaming_text != "a b c":
        await asyncio.sleep(0)

    assert manager.stop() is True
    assert manager.state == SessionState.IDLE
    assert manager.streaming_text == ""
    stopped_id = store.get(conversation.id).messages[1].id

    # A new turn may start while the old stream is still winding down
    book.register("primary", FakeAdapter("primary", ["fresh"]))
    second_id = await manager.submit(conversation.id, "again")

    gate.set()
    first_id = await task

    messages = store.get(conversation.id).messages
    assert first_id == stopped_id
    assert messages[1].content == "a b c"
    assert messages[-1].id == second_id
    assert messages[-1].content == "fresh"
    assert first.closed is True
    assert manager.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_stop_when_idle_returns_false(manager):
    assert manager.stop() is False


@pytest.mark.asyncio
async def test_submit_while_streaming_is_ignored(manager, store, registry, book):
    add_credential(registry, "primary")
    gate = asyncio.Event()
    book.register("primary", FakeAdapter("primary", ["x"], gate=gate))
    conversation = store.create_conversation()

    task = asyncio.create_task(manager.submit(conversation.id, "one"))
    while not manager.is_streaming:
        await asyncio.sleep(0)

    assert await manager.submit(conversation.id, "two") is None
    gate.set()
    await task

    assert [m.content for m in store.get(conversation.id).messages] == ["one", "x"]


@pytest.mark.asyncio
async def test_no_credential_writes_inline_error(manager, store, book):
    """Without a credential the turn ends immediately with an error reply."""
    states = []
    manager.on_state_changed(states.append)

    reply_id = await manager.submit(None, "hi")

    messages = store.conversations[0].messages
    assert [m.role for m in messages] == [ROLE_USER, ROLE_ASSISTANT]
    assert messages[1].id == reply_id
    assert messages[1].content.startswith("⚠️ **Error:** No API key configured")
    assert states == []
    assert book.requested == []


@pytest.mark.asyncio
async def test_documents_prefix_user_text(store, registry, book, tmp_path):
    add_credential(registry, "primary")
    adapter = book.register("primary", FakeAdapter("primary", ["ok"]))
    documents = DocumentLibrary(tmp_path / "documents.json")
    manager = StreamingSessionManager(store, registry, documents, adapter_factory=book)
    conversation = store.create_conversation()
    documents.add(conversation.id, ParsedDocument(id="d1", name="notes.txt", content="Alpha"))

    await manager.submit(conversation.id, "Summarize")

    sent = adapter.calls[0]["text"]
    assert sent.startswith(CONTEXT_HEADER)
    assert "--- notes.txt ---\nAlpha\n--- end notes.txt ---" in sent
    assert sent.endswith("Summarize")
    # Stored message keeps the user's own words
    assert store.get(conversation.id).messages[0].content == "Summarize"


@pytest.mark.asyncio
async def test_image_is_passed_and_stored(manager, store, registry, book):
    add_credential(registry, "primary")
    adapter = book.register("primary", FakeAdapter("primary", ["a cat"]))
    image = ImageAttachment(base64="aGVsbG8=", mime_type="image/jpeg")

    await manager.submit(None, "What is this?", image)

    assert adapter.calls[0]["image"] == image
    assert store.conversations[0].messages[0].image_url == "data:image/jpeg;base64,aGVsbG8="


@pytest.mark.asyncio
async def test_deleted_conversation_stops_stream(manager, store, registry, book):
    """Deleting the conversation mid-stream ends the turn quietly."""
    add_credential(registry, "primary")
    gate = asyncio.Event()
    book.register(
        "primary",
        FakeAdapter(
            "primary", ["a"], gate=gate,
            after_gate=ProviderError(ErrorKind.NETWORK_ERROR, "dropped"),
        ),
    )
    add_credential(registry, "backup")
    book.register("backup", FakeAdapter("backup", ["never"]))
    conversation = store.create_conversation()

    task = asyncio.create_task(manager.submit(conversation.id, "hi"))
    while manager.streaming_text != "a":
        await asyncio.sleep(0)

    store.delete_conversation(conversation.id)
    gate.set()
    await task

    assert store.get(conversation.id) is None
    assert book.requested == ["primary"]
    assert manager.state == SessionState.IDLE


def test_generate_title():
    assert generate_title("Short question") == "Short question"
    assert generate_title("x" * 45) == "x" * 40 + "..."
    assert generate_title("   ") is None

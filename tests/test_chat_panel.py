"""Tests for chat panel display helpers."""

from glossa.storage import ROLE_ASSISTANT, ROLE_USER, Message
from glossa.ui.chat_panel import THINKING_PLACEHOLDER, display_content


def test_streaming_reply_shows_placeholder_until_first_snapshot():
    reply = Message.create(ROLE_ASSISTANT)

    assert display_content(reply, reply.id) == THINKING_PLACEHOLDER


def test_stopped_empty_reply_stays_blank():
    stopped = Message.create(ROLE_ASSISTANT)
    other = Message.create(ROLE_ASSISTANT)

    assert display_content(stopped) == ""
    assert display_content(stopped, other.id) == ""


def test_content_is_shown_as_is():
    user = Message.create(ROLE_USER, "hello")
    reply = Message.create(ROLE_ASSISTANT, "partial")

    assert display_content(user) == "hello"
    assert display_content(reply, reply.id) == "partial"

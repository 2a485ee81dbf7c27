"""Prompt text shared by all adapters."""

import asyncio
from typing import AsyncIterator

from ..config.settings import settings


SYSTEM_PROMPT = (
    "You are Glossa, a helpful, creative, and intelligent AI assistant. "
    "You provide clear, accurate, and detailed answers. You can write code, "
    "explain concepts, help with analysis, creative writing, math, science, "
    "and much more. Format your responses using Markdown when helpful "
    "(headers, bold, code blocks, lists, tables). Be conversational, "
    "friendly, and thorough."
)

EXPLAIN_SYSTEM_PROMPT = (
    "You explain text concisely in under 150 words. If technical, simplify it."
)

DEFAULT_IMAGE_PROMPT = "What do you see in this image? Describe it in detail."


def build_explain_prompt(selected_text: str, context: str) -> str:
    """Build the user prompt for an explanation request."""
    return (
        "Explain the following text concisely in under 150 words. "
        "If technical, simplify it.\n\n"
        f'Selected text: "{selected_text}"\n\n'
        f'Context: "{context}"\n\n'
        "Provide a brief, clear explanation. Use markdown formatting if helpful."
    )


async def simulate_stream(text: str, delay: float | None = None) -> AsyncIterator[str]:
    """Replay finished text as cumulative word snapshots.

    Used by backends without streaming so the UI sees the same kind of
    incremental updates. Words are split on single spaces so the final
    snapshot equals the input exactly.

    Args:
        text: The complete response
        delay: Seconds between snapshots (settings default if None)

    Yields:
        Cumulative snapshots ending with `text`
    """
    if delay is None:
        delay = settings.simulated_stream_delay

    words = text.split(" ")
    accumulated = ""
    for i, word in enumerate(words):
        accumulated = word if i == 0 else f"{accumulated} {word}"
        yield accumulated
        if delay and i < len(words) - 1:
            await asyncio.sleep(delay)

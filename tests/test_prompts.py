"""Tests for shared prompt helpers."""

import pytest

from glossa.llm.prompts import build_explain_prompt, simulate_stream


@pytest.mark.asyncio
async def test_simulated_stream_is_cumulative():
    snapshots = [s async for s in simulate_stream("one two  three", delay=0)]

    assert snapshots == ["one", "one two", "one two ", "one two  three"]


@pytest.mark.asyncio
async def test_simulated_stream_of_single_word():
    assert [s async for s in simulate_stream("word", delay=0)] == ["word"]


def test_explain_prompt_quotes_selection_and_context():
    prompt = build_explain_prompt("entropy", "Entropy measures disorder.")

    assert 'Selected text: "entropy"' in prompt
    assert 'Context: "Entropy measures disorder."' in prompt
    assert "under 150 words" in prompt

"""Tests for the Ollama adapter against a mocked daemon."""

import json

import httpx
import pytest

from glossa.llm.base_adapter import EMPTY_RESPONSE, ErrorKind, ImageAttachment, ProviderError
from glossa.llm.ollama_adapter import OllamaAdapter, pick_model


def ndjson(*objects, extra_lines=()):
    lines = [json.dumps(o) for o in objects] + list(extra_lines)
    return "\n".join(lines) + "\n"


def make_adapter(handler, model_id=""):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://ollama.test"
    )
    return OllamaAdapter(model_id=model_id, base_url="http://ollama.test", client=client)


async def collect(adapter, *args, **kwargs):
    return [s async for s in adapter.generate(*args, **kwargs)]


def test_pick_model_prefers_known_families():
    assert pick_model(["codellama:7b", "mistral:latest", "llama3.1:8b"]) == "llama3.1:8b"
    assert pick_model(["custom:1b"]) == "custom:1b"
    assert pick_model([]) is None


@pytest.mark.asyncio
async def test_stream_skips_invalid_lines():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = ndjson(
            {"message": {"content": "Hel"}},
            {"message": {"content": "lo"}},
            {"done": True},
            extra_lines=["not json"],
        )
        return httpx.Response(200, text=body)

    adapter = make_adapter(handler, model_id="llama3.2")
    snapshots = await collect(adapter, [{"role": "assistant", "content": "earlier"}], "Hi")

    assert snapshots == ["Hel", "Hello"]
    payload = json.loads(requests[0].content)
    assert payload["model"] == "llama3.2"
    assert payload["stream"] is True
    assert [m["role"] for m in payload["messages"]] == ["system", "assistant", "user"]


@pytest.mark.asyncio
async def test_best_installed_model_is_used():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "phi3:mini"}, {"name": "mistral:7b"}]})
        seen["model"] = json.loads(request.content)["model"]
        return httpx.Response(200, text=ndjson({"message": {"content": "ok"}}))

    adapter = make_adapter(handler)
    assert await collect(adapter, [], "Hi") == ["ok"]
    assert seen["model"] == "mistral:7b"


@pytest.mark.asyncio
async def test_images_use_vision_model():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(200, text=ndjson({"message": {"content": "a cat"}}))

    adapter = make_adapter(handler)
    await collect(adapter, [], "", ImageAttachment(base64="aGk="))

    assert seen["model"] == "llava"
    assert seen["messages"][-1]["images"] == ["aGk="]


@pytest.mark.asyncio
async def test_no_models_installed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"models": []})

    with pytest.raises(ProviderError) as excinfo:
        await collect(make_adapter(handler), [], "Hi")
    assert excinfo.value.kind == ErrorKind.MODEL_ERROR


@pytest.mark.asyncio
async def test_unreachable_daemon_is_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    adapter = make_adapter(handler, model_id="llama3.2")
    with pytest.raises(ProviderError) as excinfo:
        await collect(adapter, [], "Hi")
    assert excinfo.value.kind == ErrorKind.NETWORK_ERROR

    status = await adapter.check_status()
    assert status.running is False


@pytest.mark.asyncio
async def test_error_status_and_error_lines():
    def not_found(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="model not found")

    with pytest.raises(ProviderError) as excinfo:
        await collect(make_adapter(not_found, model_id="x"), [], "Hi")
    assert excinfo.value.kind == ErrorKind.MODEL_ERROR
    assert "model not found" in excinfo.value.message

    def error_line(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=ndjson({"error": "out of memory"}))

    with pytest.raises(ProviderError) as excinfo:
        await collect(make_adapter(error_line, model_id="x"), [], "Hi")
    assert "out of memory" in excinfo.value.message


@pytest.mark.asyncio
async def test_empty_stream_yields_sentinel():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=ndjson({"done": True}))

    assert await collect(make_adapter(handler, model_id="x"), [], "Hi") == [EMPTY_RESPONSE]


@pytest.mark.asyncio
async def test_explain_is_not_streamed():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"message": {"content": "Short answer."}})

    answer = await make_adapter(handler, model_id="x").explain("term", "context")

    assert answer == "Short answer."
    assert seen["stream"] is False
    assert 'Selected text: "term"' in seen["messages"][0]["content"]

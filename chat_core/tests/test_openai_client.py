import asyncio
import json

import httpx
import pytest

from chat_core.domain.bot import ModelConfig
from chat_core.domain.exceptions import AbortedError, NetworkError, RateLimitError, ValidationError
from chat_core.domain.models import ChatMessage, ChatRequest
from chat_core.providers.base import ControllerReady, StreamFailed, StreamFinished, StreamUpdate
from chat_core.providers.openai_client import OpenAICompatibleClient
from chat_core.providers.registry import GLM_CONFIG, OPENAI_CONFIG


class SettingsStub:
    openai_api_key = "sk-test-0123456789"
    openai_base_url = "https://llm.example.com/v1"
    glm_api_key = None
    glm_base_url = "https://open.bigmodel.cn/api/paas/v4"
    http_timeout = 1.0


def _request(stream=True):
    return ChatRequest(
        message="hello",
        chat_history=[ChatMessage(role="system", content="You are helpful.")],
        config=ModelConfig(stream=stream),
    )


def _sse(*deltas):
    lines = [json.dumps({"choices": [{"index": 0, "delta": {"content": d}}]}) for d in deltas]
    return [f"data: {line}" for line in lines] + ["", "data: not-json", "data: [DONE]"]


def _fake_client(calls, status_code=200, lines=(), body=b"", post_response=None, error=None):
    class FakeStreamResponse:
        def __init__(self):
            self.status_code = status_code
            self.text = body.decode()

        async def aread(self):
            return body

        async def aiter_lines(self):
            for line in lines:
                yield line

    class StreamContext:
        async def __aenter__(self):
            if error is not None:
                raise error
            return FakeStreamResponse()

        async def __aexit__(self, *a):
            return False

    class Client:
        def __init__(self, *a, **kw):
            calls.append(("init", kw))

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        def stream(self, method, url, **kw):
            calls.append(("stream", url, kw))
            return StreamContext()

        async def post(self, url, **kw):
            calls.append(("post", url, kw))
            return post_response

    return Client


async def _collect(client, req):
    return [event async for event in client.chat(req)]


@pytest.mark.asyncio
async def test_stream_events(monkeypatch):
    calls = []
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(calls, lines=_sse("Hel", "lo")))
    client = OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub())

    events = await _collect(client, _request())

    assert isinstance(events[0], ControllerReady)
    assert [e.content for e in events if isinstance(e, StreamUpdate)] == ["Hel", "Hello"]
    final = events[-1]
    assert isinstance(final, StreamFinished)
    assert final.messages == [ChatMessage(role="user", content="hello"), ChatMessage(role="assistant", content="Hello")]

    _, url, kw = calls[1]
    assert url == "https://llm.example.com/v1/chat/completions"
    assert kw["headers"]["Authorization"] == "Bearer sk-test-0123456789"
    payload = kw["json"]
    assert payload["model"] == "gpt-4o-mini"
    assert payload["stream"] is True
    assert payload["messages"] == [
        {"role": "system", "content": "You are helpful."},
        {"role": "user", "content": "hello"},
    ]


@pytest.mark.asyncio
async def test_abort_between_chunks(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", _fake_client([], lines=_sse("a", "b", "c")))
    client = OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub())

    events = []
    controller = None
    async for event in client.chat(_request()):
        events.append(event)
        if isinstance(event, ControllerReady):
            controller = event.controller
        elif isinstance(event, StreamUpdate):
            controller.abort()

    assert [e.content for e in events if isinstance(e, StreamUpdate)] == ["a"]
    assert isinstance(events[-1], StreamFailed)
    assert isinstance(events[-1].error, AbortedError)
    assert "aborted" in events[-1].error.message


@pytest.mark.asyncio
async def test_abort_while_server_stalls(monkeypatch):
    async def body():
        yield ("data: " + json.dumps({"choices": [{"index": 0, "delta": {"content": "first"}}]}) + "\n\n").encode()
        await asyncio.sleep(3)
        yield b"data: [DONE]\n\n"

    async def handler(request):
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body())

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient
    monkeypatch.setattr("httpx.AsyncClient", lambda *a, **kw: real_client(*a, transport=transport, **kw))
    client = OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub())

    loop = asyncio.get_running_loop()
    started = loop.time()
    events = []
    controller = None
    async for event in client.chat(_request()):
        events.append(event)
        if isinstance(event, ControllerReady):
            controller = event.controller
        elif isinstance(event, StreamUpdate):
            loop.call_later(0.05, controller.abort)

    assert loop.time() - started < 0.5
    assert [e.content for e in events if isinstance(e, StreamUpdate)] == ["first"]
    assert isinstance(events[-1], StreamFailed)
    assert isinstance(events[-1].error, AbortedError)


@pytest.mark.asyncio
async def test_rate_limit(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", _fake_client([], status_code=429, body=b"slow down"))
    client = OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub())
    events = await _collect(client, _request())
    assert isinstance(events[-1], StreamFailed)
    assert isinstance(events[-1].error, RateLimitError)


@pytest.mark.asyncio
async def test_network_error(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", _fake_client([], error=httpx.ConnectError("refused")))
    client = OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub())
    events = await _collect(client, _request())
    assert isinstance(events[-1].error, NetworkError)
    assert "refused" in events[-1].error.message


@pytest.mark.asyncio
async def test_missing_api_key():
    client = OpenAICompatibleClient(GLM_CONFIG, SettingsStub())
    events = await _collect(client, _request())
    assert len(events) == 2
    assert isinstance(events[0], ControllerReady)
    assert isinstance(events[1].error, ValidationError)
    assert events[1].error.code == "MISSING_API_KEY"


@pytest.mark.asyncio
async def test_non_stream_request(monkeypatch):
    calls = []
    resp = httpx.Response(200, json={"choices": [{"index": 0, "message": {"role": "assistant", "content": "ok"}}]})
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(calls, post_response=resp))
    client = OpenAICompatibleClient(OPENAI_CONFIG, SettingsStub())

    events = await _collect(client, _request(stream=False))

    assert [type(e) for e in events] == [ControllerReady, StreamUpdate, StreamFinished]
    assert events[1].content == "ok"
    assert calls[1][0] == "post"
    assert calls[1][2]["json"]["stream"] is False

import json

import httpx
import pytest

from voice_builder.client import VoiceBuilderClient
from voice_builder.models import ChatMessage, Profile

pytestmark = pytest.mark.asyncio


def _client(handler):
    return VoiceBuilderClient("http://test", transport=httpx.MockTransport(handler))


async def test_stream_chat_sends_history_and_reads_deltas():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        body = 'data: {"text": "为什么"}\n\ndata: {"text": "？"}\n\ndata: [DONE]\n\n'
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    history = [
        ChatMessage(role="user", content="hi"),
        ChatMessage(role="assistant", content="你好"),
    ]
    async with _client(handler) as client:
        deltas = [d async for d in client.stream_chat(history, Profile(bio="dev"))]

    assert deltas == ["为什么", "？"]
    assert seen["path"] == "/api/chat"
    assert seen["body"]["messages"] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "你好"},
    ]
    assert seen["body"]["profile"]["bio"] == "dev"


async def test_batch_transform_forces_stream_off():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"result": "post"})

    async with _client(handler) as client:
        assert await client.transform({"content": "x", "platform": "wechat", "stream": True}) == "post"
    assert seen["body"]["stream"] is False


async def test_extract_points_and_persona_are_validated():
    def handler(request):
        if request.url.path == "/api/extract-points":
            return httpx.Response(200, json={"title": "t", "points": ["a"]})
        return httpx.Response(200, json={
            "platform_bio": "bio", "tone": "t", "style_notes": "s", "is_custom": True,
        })

    async with _client(handler) as client:
        note = await client.extract_points("x")
        persona = await client.generate_persona("linkedin", ["a", "b", "c"])

    assert note.points == ["a"]
    assert persona.is_custom


async def test_error_status_raises():
    def handler(request):
        return httpx.Response(500, json={"error": "Failed to transform content"})

    async with _client(handler) as client:
        with pytest.raises(httpx.HTTPStatusError):
            [d async for d in client.stream_transform({"content": "x"})]
        with pytest.raises(httpx.HTTPStatusError):
            await client.generate_image("x")

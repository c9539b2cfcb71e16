import pytest
from httpx import ASGITransport, AsyncClient

from voice_builder.llm.base import LLMClient, LLMResponse


class FakeLLM(LLMClient):
    """Records every call; replays canned deltas / replies."""

    def __init__(self, deltas=None, reply="", error=None):
        self.deltas = deltas or []
        self.reply = reply
        self.error = error
        self.calls = []

    async def complete(self, system, user, max_tokens=512):
        self.calls.append({"system": system, "user": user, "max_tokens": max_tokens})
        if self.error:
            raise self.error
        return LLMResponse(content=self.reply)

    async def stream(self, system, messages, max_tokens=1024):
        self.calls.append({"system": system, "messages": messages, "max_tokens": max_tokens})
        for delta in self.deltas:
            yield delta
        if self.error:
            raise self.error


@pytest.fixture(autouse=True)
def _reset_sse_exit_event():
    # sse-starlette keeps a process-wide exit event bound to the first event loop.
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield


@pytest.fixture
def client():
    from voice_builder.api.server import app

    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

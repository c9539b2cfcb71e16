import asyncio
import base64
import json
from datetime import date

import httpx
from typer.testing import CliRunner

from voice_builder import cli
from voice_builder.cli import CHAT_FAILED_TEXT, app
from voice_builder.client import VoiceBuilderClient
from voice_builder.orchestrator import RATE_LIMIT_WARNING
from voice_builder.store import DAILY_LIMITS, RateLimitState, Store, StoreState, load_store, save_store

runner = CliRunner()


def _sse(*deltas) -> str:
    frames = "".join(f"data: {json.dumps({'text': d}, ensure_ascii=False)}\n\n" for d in deltas)
    return frames + "data: [DONE]\n\n"


def _seed(db, **used):
    state = StoreState(rate_limit=RateLimitState(date=date.today().isoformat(), **used))
    asyncio.run(save_store(Store(state), db))


def _use_api(monkeypatch, handler):
    """Route the CLI's API client to `handler`; returns the requests it receives."""
    requests = []

    def record(request):
        requests.append(request)
        return handler(request)

    monkeypatch.setattr(
        cli, "VoiceBuilderClient",
        lambda api_url=None: VoiceBuilderClient("http://test", transport=httpx.MockTransport(record)),
    )
    return requests


class _ScriptedPrompt:
    def __init__(self, lines):
        self._lines = list(lines)

    async def prompt_async(self, *args, **kwargs):
        if not self._lines:
            raise EOFError
        return self._lines.pop(0)


def _type(monkeypatch, *lines):
    monkeypatch.setattr(cli, "PromptSession", lambda: _ScriptedPrompt(lines))


def _db(tmp_path, monkeypatch):
    db = tmp_path / "store.db"
    monkeypatch.setenv("VOICE_BUILDER_DB", str(db))
    return db


# ── profile ──────────────────────────────────────────────────────────────────

def test_profile_saves_and_completes_onboarding(tmp_path, monkeypatch):
    db = _db(tmp_path, monkeypatch)

    result = runner.invoke(app, [
        "profile", "--bio", "独立开发者", "--tone", "humorous",
        "--avoid", "赋能, 抓手,", "--interests", "AI,写作",
    ])

    assert result.exit_code == 0, result.output
    store = asyncio.run(load_store(db))
    assert store.state.has_completed_onboarding
    assert store.profile.bio == "独立开发者"
    assert store.profile.tone == "humorous"
    assert store.profile.avoid_words == ["赋能", "抓手"]
    assert store.profile.interests == ["AI", "写作"]


def test_profile_update_keeps_unspecified_fields(tmp_path, monkeypatch):
    db = _db(tmp_path, monkeypatch)
    runner.invoke(app, ["profile", "--bio", "写作者", "--tone", "professional"])

    result = runner.invoke(app, ["profile", "--interests", "阅读"])

    assert result.exit_code == 0, result.output
    profile = asyncio.run(load_store(db)).profile
    assert profile.bio == "写作者"
    assert profile.tone == "professional"
    assert profile.interests == ["阅读"]


def test_profile_rejects_unknown_tone(tmp_path, monkeypatch):
    _db(tmp_path, monkeypatch)
    result = runner.invoke(app, ["profile", "--tone", "sarcastic"])
    assert result.exit_code == 1
    assert "casual, professional, humorous" in result.output


# ── transform ────────────────────────────────────────────────────────────────

def _transform_api(request):
    body = json.loads(request.content)
    if body["stream"]:
        return httpx.Response(200, text=_sse("先", "完成"), headers={"content-type": "text/event-stream"})
    return httpx.Response(200, json={"result": f"batch:{body['platform']}"})


def test_transform_rejects_unknown_platform(tmp_path, monkeypatch):
    _db(tmp_path, monkeypatch)
    result = runner.invoke(app, ["transform", "hello", "--platform", "myspace"])
    assert result.exit_code == 1
    assert "--platform" in result.output


def test_transform_streams_prefetches_and_records_usage(tmp_path, monkeypatch):
    db = _db(tmp_path, monkeypatch)
    requests = _use_api(monkeypatch, _transform_api)

    result = runner.invoke(app, ["transform", "hello", "--platform", "wechat"])

    assert result.exit_code == 0, result.output
    assert "先完成" in result.output
    assert "batch:twitter" in result.output
    assert len(requests) == 4
    assert asyncio.run(load_store(db)).state.rate_limit.transform == 4


def test_transform_active_only_uses_one_request(tmp_path, monkeypatch):
    db = _db(tmp_path, monkeypatch)
    requests = _use_api(monkeypatch, _transform_api)

    result = runner.invoke(app, ["transform", "hello", "--active-only"])

    assert result.exit_code == 0, result.output
    assert len(requests) == 1
    assert asyncio.run(load_store(db)).state.rate_limit.transform == 1


def test_transform_at_daily_limit_sends_nothing(tmp_path, monkeypatch):
    db = _db(tmp_path, monkeypatch)
    _seed(db, transform=DAILY_LIMITS["transform"])
    requests = _use_api(monkeypatch, _transform_api)

    result = runner.invoke(app, ["transform", "hello"])

    assert result.exit_code == 0, result.output
    assert RATE_LIMIT_WARNING in result.output
    assert requests == []


# ── chat ─────────────────────────────────────────────────────────────────────

def test_chat_records_conversation_and_usage(tmp_path, monkeypatch):
    db = _db(tmp_path, monkeypatch)
    requests = _use_api(monkeypatch, lambda request: httpx.Response(
        200, text=_sse("想聊", "什么？"), headers={"content-type": "text/event-stream"}
    ))
    _type(monkeypatch, "我想聊聊写作", "exit")

    result = runner.invoke(app, ["chat"])

    assert result.exit_code == 0, result.output
    assert json.loads(requests[0].content)["messages"] == [{"role": "user", "content": "我想聊聊写作"}]
    store = asyncio.run(load_store(db))
    messages = store.get_current_conversation().messages
    assert [(m.role, m.content) for m in messages] == [
        ("user", "我想聊聊写作"), ("assistant", "想聊什么？"),
    ]
    assert store.state.rate_limit.chat == 1


def test_chat_failure_stores_apology(tmp_path, monkeypatch):
    db = _db(tmp_path, monkeypatch)
    _use_api(monkeypatch, lambda request: httpx.Response(500, json={"error": "Failed to process chat request"}))
    _type(monkeypatch, "你好")

    result = runner.invoke(app, ["chat"])

    assert result.exit_code == 0, result.output
    assert CHAT_FAILED_TEXT in result.output
    messages = asyncio.run(load_store(db)).get_current_conversation().messages
    assert messages[-1].role == "assistant"
    assert messages[-1].content == CHAT_FAILED_TEXT


def test_chat_at_daily_limit_sends_nothing(tmp_path, monkeypatch):
    db = _db(tmp_path, monkeypatch)
    _seed(db, chat=DAILY_LIMITS["chat"])
    requests = _use_api(monkeypatch, lambda request: httpx.Response(500))
    _type(monkeypatch, "你好")

    result = runner.invoke(app, ["chat"])

    assert result.exit_code == 0, result.output
    assert "Daily chat limit reached" in result.output
    assert requests == []
    store = asyncio.run(load_store(db))
    assert store.get_current_conversation().messages == []
    assert store.state.rate_limit.chat == DAILY_LIMITS["chat"]


# ── image ────────────────────────────────────────────────────────────────────

def test_image_writes_png_and_records_usage(tmp_path, monkeypatch):
    db = _db(tmp_path, monkeypatch)
    png = b"\x89PNG\r\n\x1a\n"
    _use_api(monkeypatch, lambda request: httpx.Response(200, json={
        "prompt": "一杯咖啡, line art",
        "highlight": "一杯咖啡",
        "image": "data:image/png;base64," + base64.b64encode(png).decode(),
    }))
    out = tmp_path / "card.png"

    result = runner.invoke(app, ["image", "今天喝了咖啡", "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert out.read_bytes() == png
    assert asyncio.run(load_store(db)).state.rate_limit.image == 1


def test_image_at_daily_limit_exits(tmp_path, monkeypatch):
    db = _db(tmp_path, monkeypatch)
    _seed(db, image=DAILY_LIMITS["image"])
    requests = _use_api(monkeypatch, lambda request: httpx.Response(500))
    out = tmp_path / "card.png"

    result = runner.invoke(app, ["image", "x", "-o", str(out)])

    assert result.exit_code == 1
    assert "Daily image limit reached" in result.output
    assert requests == []
    assert not out.exists()

"""Async HTTP client for the Voice Builder API."""
from typing import Any, AsyncGenerator

import httpx

from voice_builder.config import api_url
from voice_builder.models import ChatMessage, Illustration, NotePoints, Platform, PlatformPersona, Profile
from voice_builder.sse import iter_sse_text

DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)


class VoiceBuilderClient:
    """Thin wrapper over httpx.AsyncClient. Non-2xx responses raise httpx.HTTPStatusError."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: httpx.Timeout | float | None = DEFAULT_TIMEOUT,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url or api_url(), transport=transport, timeout=timeout
        )

    async def __aenter__(self) -> "VoiceBuilderClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post(self, path: str, body: dict[str, Any]) -> Any:
        resp = await self._http.post(path, json=body)
        resp.raise_for_status()
        return resp.json()

    async def _stream(self, path: str, body: dict[str, Any]) -> AsyncGenerator[str, None]:
        async with self._http.stream("POST", path, json=body) as resp:
            resp.raise_for_status()
            async for text in iter_sse_text(resp.aiter_lines()):
                yield text

    # ── Transform ────────────────────────────────────────────────────────────

    def stream_transform(self, request: dict[str, Any]) -> AsyncGenerator[str, None]:
        """Stream text deltas for one platform. `request` is a TransformRequest body."""
        return self._stream("/api/transform", {**request, "stream": True})

    async def transform(self, request: dict[str, Any]) -> str:
        data = await self._post("/api/transform", {**request, "stream": False})
        return data.get("result", "")

    # ── Co-think ─────────────────────────────────────────────────────────────

    def stream_chat(
        self, messages: list[ChatMessage], profile: Profile | None = None
    ) -> AsyncGenerator[str, None]:
        body = {
            "messages": [m.model_dump(exclude_none=True) for m in messages],
            "profile": profile.model_dump() if profile else None,
        }
        return self._stream("/api/chat", body)

    # ── Helpers ──────────────────────────────────────────────────────────────

    async def extract_points(self, content: str) -> NotePoints:
        return NotePoints.model_validate(await self._post("/api/extract-points", {"content": content}))

    async def generate_persona(self, platform: Platform, answers: list[str]) -> PlatformPersona:
        data = await self._post("/api/generate-persona", {"platform": platform, "answers": answers})
        return PlatformPersona.model_validate(data)

    async def generate_image(self, content: str, custom_prompt: str | None = None) -> Illustration:
        data = await self._post(
            "/api/generate-anime-image", {"content": content, "custom_prompt": custom_prompt}
        )
        return Illustration.model_validate(data)

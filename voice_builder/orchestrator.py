"""Per-platform transform state machine: one active stream, background prefetch for the rest.

Each platform slot moves idle -> loading -> streaming -> done. Only the active
platform is streamed, and starting a new stream cancels the previous one. Once
the first stream finishes, the other platforms are fetched in the background
with plain (non-streaming) requests, staggered by `prefetch_delay`.

A slot's `in_flight` flag is set synchronously before any request is awaited,
so two triggers for the same platform can never both pass the guard. Every
request also gets a per-slot id; results of a superseded request are dropped.
"""
import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Callable, Protocol

from voice_builder.client import VoiceBuilderClient
from voice_builder.models import (
    PLATFORMS,
    Audience,
    ContentAngle,
    OutputLanguage,
    OutputLength,
    Platform,
    Profile,
)
from voice_builder.prompts import PLATFORM_LANGUAGE_DEFAULTS
from voice_builder.store import RateLimitCategory, RateLimitResult

_log = logging.getLogger(__name__)

STREAM_FAILED_TEXT = "抱歉，生成失败，请重试。"
RATE_LIMIT_WARNING = "今日转换次数已用完，请明天再试。"
PREFETCH_DELAY = 0.5


class RateLimiter(Protocol):
    def check_rate_limit(self, category: RateLimitCategory) -> RateLimitResult: ...

    def increment_usage(self, category: RateLimitCategory) -> None: ...


@dataclass
class PlatformResult:
    text: str = ""
    is_loading: bool = False
    is_streaming: bool = False
    length: OutputLength = "normal"
    language: OutputLanguage = "auto"
    error: str | None = None
    in_flight: bool = False
    request_id: int = 0

    @property
    def status(self) -> str:
        if self.is_streaming:
            return "streaming"
        if self.is_loading:
            return "loading"
        return "done" if self.text else "idle"


class TransformOrchestrator:
    def __init__(
        self,
        client: VoiceBuilderClient,
        content: str,
        *,
        profile: Profile | None = None,
        audience: Audience = "peers",
        angle: ContentAngle = "sharing",
        rate_limiter: RateLimiter | None = None,
        prefetch_delay: float = PREFETCH_DELAY,
        on_delta: Callable[[Platform, str], None] | None = None,
        on_warning: Callable[[str], None] | None = None,
    ) -> None:
        self._client = client
        self.content = content
        self.profile = profile
        self.audience = audience
        self.angle = angle
        self._rate_limiter = rate_limiter
        self._prefetch_delay = prefetch_delay
        self._on_delta = on_delta
        self._on_warning = on_warning

        self.results: dict[Platform, PlatformResult] = {
            p: PlatformResult(language=PLATFORM_LANGUAGE_DEFAULTS[p]) for p in PLATFORMS
        }
        self.active_platform: Platform = "twitter"
        self.warning: str | None = None

        self._active_task: asyncio.Task | None = None
        self._active_request: tuple[Platform, int] | None = None
        self._background: set[asyncio.Task] = set()
        self._prefetch_scheduled = False

    # ── User actions ─────────────────────────────────────────────────────────

    def start(
        self,
        platform: Platform = "twitter",
        *,
        length: OutputLength | None = None,
        language: OutputLanguage | None = None,
    ) -> asyncio.Task | None:
        """Stream the first platform; its completion kicks off the prefetch of the others."""
        self.active_platform = platform
        result = self.results[platform]
        if length:
            result.length = length
        if language:
            result.language = language
        return self._start_stream(platform)

    def select_platform(self, platform: Platform) -> asyncio.Task | None:
        """Switch tabs. Loaded or in-flight platforms are not fetched again."""
        self.active_platform = platform
        result = self.results[platform]
        if result.text or result.in_flight:
            return None
        return self._start_stream(platform)

    def set_length(self, length: OutputLength) -> asyncio.Task | None:
        self.results[self.active_platform].length = length
        return self._start_stream(self.active_platform)

    def set_language(self, language: OutputLanguage) -> asyncio.Task | None:
        self.results[self.active_platform].language = language
        return self._start_stream(self.active_platform)

    def regenerate(self) -> asyncio.Task | None:
        """Stream the active platform again with its current length and language."""
        return self._start_stream(self.active_platform)

    async def wait_idle(self) -> None:
        """Wait for the active stream and every prefetch it triggered."""
        while True:
            pending = [
                t for t in (self._active_task, *self._background)
                if t is not None and not t.done()
            ]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        self._cancel_active()
        tasks = [t for t in (self._active_task, *self._background) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ── Internals ────────────────────────────────────────────────────────────

    def _request_body(self, platform: Platform) -> dict:
        result = self.results[platform]
        return {
            "content": self.content,
            "profile": self.profile.model_dump() if self.profile else None,
            "platform": platform,
            "length": result.length,
            "language": result.language,
            "audience": self.audience,
            "angle": self.angle,
        }

    def _allow_request(self, *, warn: bool = True) -> bool:
        if self._rate_limiter is None:
            return True
        check = self._rate_limiter.check_rate_limit("transform")
        if not check.allowed:
            if warn:
                self.warning = RATE_LIMIT_WARNING
                _log.warning("Transform rate limit reached; request not sent")
                if self._on_warning:
                    self._on_warning(RATE_LIMIT_WARNING)
            return False
        self._rate_limiter.increment_usage("transform")
        return True

    def _claim(self, platform: Platform) -> int:
        result = self.results[platform]
        result.request_id += 1
        result.in_flight = True
        result.is_loading = True
        result.is_streaming = False
        result.error = None
        return result.request_id

    def _release(self, platform: Platform, request_id: int) -> bool:
        """Clear the busy flags if `request_id` is still current; report whether it was."""
        result = self.results[platform]
        if result.request_id != request_id:
            return False
        result.in_flight = False
        result.is_loading = False
        result.is_streaming = False
        return True

    def _cancel_active(self) -> None:
        """Cancel the active stream and free its slot.

        A task cancelled before its first step never runs its own cleanup,
        so the slot is released here rather than inside `_run_stream`.
        """
        if self._active_task is None or self._active_task.done():
            return
        self._active_task.cancel()
        if self._active_request is not None:
            platform, request_id = self._active_request
            if self._release(platform, request_id):
                self.results[platform].text = ""

    def _start_stream(self, platform: Platform) -> asyncio.Task | None:
        if not self._allow_request():
            return None
        self._cancel_active()

        request_id = self._claim(platform)
        self.results[platform].text = ""
        body = self._request_body(platform)
        self._active_request = (platform, request_id)
        self._active_task = asyncio.create_task(self._run_stream(platform, body, request_id))
        return self._active_task

    async def _run_stream(self, platform: Platform, body: dict, request_id: int) -> None:
        result = self.results[platform]
        try:
            async with aclosing(self._client.stream_transform(body)) as deltas:
                async for delta in deltas:
                    if result.request_id != request_id:
                        return
                    result.is_loading = False
                    result.is_streaming = True
                    result.text += delta
                    if self._on_delta:
                        self._on_delta(platform, delta)
        except asyncio.CancelledError:
            # Partial text is dropped so the tab can be fetched again later.
            if self._release(platform, request_id):
                result.text = ""
            raise
        except Exception as exc:
            _log.error("Transform stream failed for %s: %s", platform, exc)
            if self._release(platform, request_id):
                result.text = STREAM_FAILED_TEXT
                result.error = str(exc)
            return

        if self._release(platform, request_id) and not self._prefetch_scheduled:
            self._schedule_prefetch(exclude=platform)

    def _schedule_prefetch(self, exclude: Platform) -> None:
        self._prefetch_scheduled = True
        others = [p for p in PLATFORMS if p != exclude]
        for index, platform in enumerate(others, start=1):
            task = asyncio.create_task(self._prefetch(platform, index * self._prefetch_delay))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def _prefetch(self, platform: Platform, delay: float) -> None:
        await asyncio.sleep(delay)
        result = self.results[platform]
        if result.text or result.in_flight:
            return
        if not self._allow_request(warn=False):
            _log.info("Skipping prefetch for %s: rate limit reached", platform)
            return

        request_id = self._claim(platform)
        body = self._request_body(platform)
        try:
            text = await self._client.transform(body)
        except asyncio.CancelledError:
            self._release(platform, request_id)
            raise
        except Exception as exc:
            # Slot stays empty; selecting the tab later retries with a stream.
            _log.error("Background prefetch failed for %s: %s", platform, exc)
            self._release(platform, request_id)
            return
        if self._release(platform, request_id):
            result.text = text

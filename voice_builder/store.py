"""Persisted client state: profile, conversations, captures and daily usage counters.

The whole state is one JSON blob stored under STORAGE_NAME. There is no schema
versioning; fields missing from an older blob take their model defaults.
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Literal

import aiosqlite
from pydantic import BaseModel, Field

from voice_builder.models import (
    Capture,
    ChatMessage,
    Conversation,
    Platform,
    PlatformPersona,
    Profile,
)

_log = logging.getLogger(__name__)

STORAGE_NAME = "voice-builder-storage"

RateLimitCategory = Literal["chat", "transform", "image"]

DAILY_LIMITS: dict[RateLimitCategory, int] = {
    "chat": 50,
    "transform": 100,
    "image": 10,
}


def generate_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}"


def _today() -> str:
    return date.today().isoformat()


class RateLimitState(BaseModel):
    date: str = ""   # ISO date the counters belong to
    chat: int = 0
    transform: int = 0
    image: int = 0


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int


class StoreState(BaseModel):
    profile: Profile | None = None
    captures: list[Capture] = []
    conversations: list[Conversation] = []
    current_conversation_id: str | None = None
    has_completed_onboarding: bool = False
    rate_limit: RateLimitState = Field(default_factory=RateLimitState)


class Store:
    """In-memory state plus the actions that mutate it."""

    def __init__(self, state: StoreState | None = None, *, today: Callable[[], str] = _today) -> None:
        self.state = state or StoreState()
        self._today = today

    # ── Profile ──────────────────────────────────────────────────────────────

    @property
    def profile(self) -> Profile | None:
        return self.state.profile

    def set_profile(self, profile: Profile) -> None:
        self.state.profile = profile

    def set_platform_persona(self, platform: Platform, persona: PlatformPersona) -> None:
        if self.state.profile is None:
            self.state.profile = Profile()
        self.state.profile.platform_personas[platform] = persona

    def complete_onboarding(self) -> None:
        self.state.has_completed_onboarding = True

    # ── Captures ─────────────────────────────────────────────────────────────

    def add_capture(self, capture: Capture) -> None:
        self.state.captures.insert(0, capture)

    def delete_capture(self, capture_id: str) -> None:
        self.state.captures = [c for c in self.state.captures if c.id != capture_id]

    # ── Conversations ────────────────────────────────────────────────────────

    def add_conversation(self, conversation: Conversation) -> None:
        """Prepend a conversation and make it the active one."""
        self.state.conversations.insert(0, conversation)
        self.state.current_conversation_id = conversation.id

    def update_conversation(self, conversation_id: str, **updates) -> None:
        self.state.conversations = [
            c.model_copy(update=updates) if c.id == conversation_id else c
            for c in self.state.conversations
        ]

    def set_current_conversation_id(self, conversation_id: str | None) -> None:
        self.state.current_conversation_id = conversation_id

    def get_current_conversation(self) -> Conversation | None:
        current = self.state.current_conversation_id
        if not current:
            return None
        return next((c for c in self.state.conversations if c.id == current), None)

    def add_message_to_current_conversation(self, message: ChatMessage) -> None:
        conversation = self.get_current_conversation()
        if conversation is not None:
            conversation.messages.append(message)

    def update_last_assistant_message(self, content: str) -> None:
        """Overwrite the last message's content, only if it came from the assistant."""
        conversation = self.get_current_conversation()
        if conversation is None or not conversation.messages:
            return
        last = conversation.messages[-1]
        if last.role == "assistant":
            conversation.messages[-1] = last.model_copy(update={"content": content})

    # ── Rate limits (advisory) ───────────────────────────────────────────────

    def check_rate_limit(self, category: RateLimitCategory) -> RateLimitResult:
        """Report whether one more `category` action fits today's limit. Never mutates."""
        limit = DAILY_LIMITS[category]
        state = self.state.rate_limit
        used = getattr(state, category) if state.date == self._today() else 0
        remaining = max(limit - used, 0)
        return RateLimitResult(allowed=remaining > 0, remaining=remaining)

    def increment_usage(self, category: RateLimitCategory) -> None:
        today = self._today()
        if self.state.rate_limit.date != today:
            self.state.rate_limit = RateLimitState(date=today)
        setattr(self.state.rate_limit, category, getattr(self.state.rate_limit, category) + 1)


# ── Persistence ──────────────────────────────────────────────────────────────

class SQLiteStoreBackend:
    """Keeps named state blobs in a single SQLite table."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)

    async def _ensure_table(self, db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS storage (
                name       TEXT PRIMARY KEY,
                state_json TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            )
        """)

    async def load(self, name: str = STORAGE_NAME) -> StoreState:
        async with aiosqlite.connect(self._db_path) as db:
            await self._ensure_table(db)
            async with db.execute(
                "SELECT state_json FROM storage WHERE name = ?", (name,)
            ) as cursor:
                row = await cursor.fetchone()
        if row is None:
            return StoreState()
        return StoreState.model_validate_json(row[0])

    async def save(self, state: StoreState, name: str = STORAGE_NAME) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await self._ensure_table(db)
            await db.execute(
                """INSERT OR REPLACE INTO storage (name, state_json, updated_at)
                   VALUES (?, ?, ?)""",
                (name, state.model_dump_json(), int(time.time() * 1000)),
            )
            await db.commit()
        _log.debug("Saved store %s to %s", name, self._db_path)


async def load_store(db_path: str | Path, name: str = STORAGE_NAME) -> Store:
    return Store(await SQLiteStoreBackend(db_path).load(name))


async def save_store(store: Store, db_path: str | Path, name: str = STORAGE_NAME) -> None:
    await SQLiteStoreBackend(db_path).save(store.state, name)

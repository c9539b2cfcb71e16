from typing import Literal

from pydantic import BaseModel

Platform = Literal["twitter", "xiaohongshu", "wechat", "linkedin"]
OutputLength = Literal["concise", "normal", "detailed"]
OutputLanguage = Literal["zh", "en", "auto"]
Audience = Literal["peers", "beginners", "leadership", "friends"]
ContentAngle = Literal["sharing", "asking", "opinion", "casual", "roast", "teaching", "story"]
Tone = Literal["casual", "professional", "humorous"]

PLATFORMS: tuple[Platform, ...] = ("twitter", "xiaohongshu", "wechat", "linkedin")


class PlatformPersona(BaseModel):
    platform_bio: str = ""
    tone: str = ""
    style_notes: str = ""
    is_custom: bool = False   # True once the user wrote it or it was generated from Q&A


class Profile(BaseModel):
    bio: str = ""
    tone: Tone = "casual"
    avoid_words: list[str] = []
    interests: list[str] = []
    platform_personas: dict[Platform, PlatformPersona] = {}


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = ""
    image: str | None = None   # base64 data URI, user messages only


class Conversation(BaseModel):
    id: str
    capture_id: str | None = None
    messages: list[ChatMessage] = []
    output: str | None = None
    timestamp: int


class Capture(BaseModel):
    id: str
    text: str
    image: str | None = None
    timestamp: int


class NotePoints(BaseModel):
    title: str
    points: list[str]


class Illustration(BaseModel):
    prompt: str
    highlight: str
    image: str   # data:image/png;base64,...

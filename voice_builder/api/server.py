"""FastAPI server exposing Voice Builder's chat, transform and helper endpoints."""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from voice_builder.config import CORS_ORIGINS
from voice_builder.images import ImageGenerationError, generate_illustration
from voice_builder.llm.factory import get_llm_client, provider_api_key_var
from voice_builder.models import (
    Audience,
    ChatMessage,
    ContentAngle,
    OutputLanguage,
    OutputLength,
    Platform,
    PlatformPersona,
    Profile,
)
from voice_builder.prompts import (
    EXTRACT_POINTS_PROMPT,
    GENERATE_PERSONA_PROMPT,
    PLATFORM_NAMES,
    build_cothink_system_prompt,
    build_persona_request,
    build_transform_system_prompt,
    max_tokens_for,
)
from voice_builder.sse import SEPARATOR, relay_text_stream
from voice_builder.utils import extract_json_object

_log = logging.getLogger(__name__)

app = FastAPI(title="voice-builder API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def _error(message: str, status_code: int = 500, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _event_stream(deltas) -> EventSourceResponse:
    return EventSourceResponse(relay_text_stream(deltas), sep=SEPARATOR)


# ── Request bodies ───────────────────────────────────────────────────────────

class TransformRequest(BaseModel):
    content: str
    profile: Profile | None = None
    platform: Platform = "twitter"
    length: OutputLength = "normal"
    language: OutputLanguage = "auto"
    audience: Audience = "peers"
    angle: ContentAngle = "sharing"
    stream: bool = False


class ChatRequest(BaseModel):
    messages: list[ChatMessage]
    profile: Profile | None = None


class ExtractPointsRequest(BaseModel):
    content: str


class GeneratePersonaRequest(BaseModel):
    platform: Platform
    answers: list[str] = []


class GenerateImageRequest(BaseModel):
    content: str = ""
    custom_prompt: str | None = None


# ── Endpoints ────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    """Check that the configured LLM provider has an API key."""
    key_var = provider_api_key_var()
    if not os.getenv(key_var):
        raise HTTPException(status_code=503, detail=f"{key_var} not set")
    return {"status": "ok"}


@app.post("/api/transform")
async def transform(req: TransformRequest):
    """Rewrite content for one platform, streamed as SSE or returned whole.

    The non-streaming mode serves background prefetches.
    """
    try:
        system_prompt = build_transform_system_prompt(
            req.platform, req.profile, req.length, req.language, req.audience, req.angle
        )
        max_tokens = max_tokens_for(req.platform, req.length)
        llm = get_llm_client()

        if req.stream:
            messages = [ChatMessage(role="user", content=req.content)]
            return _event_stream(llm.stream(system_prompt, messages, max_tokens=max_tokens))

        response = await llm.complete(system=system_prompt, user=req.content, max_tokens=max_tokens)
        return {"result": response.content}
    except Exception:
        _log.exception("Transform API error")
        return _error("Failed to transform content")


@app.post("/api/chat")
async def chat(req: ChatRequest):
    """Stream the next co-think interview turn."""
    try:
        system_prompt = build_cothink_system_prompt(req.profile)
        llm = get_llm_client()
        return _event_stream(llm.stream(system_prompt, req.messages, max_tokens=1024))
    except Exception:
        _log.exception("Chat API error")
        return _error("Failed to process chat request")


@app.post("/api/extract-points")
async def extract_points(req: ExtractPointsRequest):
    """Condense a conversation into a note-card title and key points."""
    try:
        llm = get_llm_client()
        response = await llm.complete(system=EXTRACT_POINTS_PROMPT, user=req.content, max_tokens=512)
    except Exception:
        _log.exception("Extract points API error")
        return _error("Failed to extract points")

    data = extract_json_object(response.content)
    if data is None:
        _log.warning("Failed to parse extract-points response: %s", response.content)
        return {"title": "我的想法", "points": ["内容提取失败，请重试"]}
    return data


@app.post("/api/generate-persona")
async def generate_persona(req: GeneratePersonaRequest):
    """Generate a platform persona from the user's answers to PERSONA_QUESTIONS."""
    try:
        llm = get_llm_client()
        response = await llm.complete(
            system=GENERATE_PERSONA_PROMPT,
            user=build_persona_request(req.platform, req.answers),
            max_tokens=512,
        )
    except Exception:
        _log.exception("Generate persona API error")
        return _error("Failed to generate persona")

    data = extract_json_object(response.content)
    if data is None:
        _log.warning("Failed to parse persona response: %s", response.content)
        return PlatformPersona(
            platform_bio=f"{PLATFORM_NAMES[req.platform]} 内容创作者",
            tone="真诚、专业",
            style_notes="保持自然表达",
            is_custom=True,
        ).model_dump()
    return {**data, "is_custom": True}


@app.post("/api/generate-anime-image")
async def generate_anime_image(req: GenerateImageRequest):
    """Extract one scene from the content and render it as a minimal line-art image."""
    if not os.getenv("OPENAI_API_KEY"):
        return _error("OPENAI_API_KEY not configured")
    try:
        illustration = await generate_illustration(
            req.content, get_llm_client(), custom_prompt=req.custom_prompt
        )
    except ImageGenerationError as exc:
        _log.warning("No image data returned")
        return _error(
            "Failed to generate image",
            details=str(exc),
            prompt=exc.prompt,
            highlight=exc.highlight,
        )
    except Exception as exc:
        _log.exception("Image generation error")
        return _error("Failed to generate image", details=str(exc) or "Unknown error")
    return illustration.model_dump()

"""Note-card illustrations: LLM picks one simple scene, DALL-E draws it."""
import logging
import os

from openai import AsyncOpenAI

from voice_builder.config import IMAGE_MODEL_DEFAULT
from voice_builder.llm.base import LLMClient
from voice_builder.models import Illustration
from voice_builder.prompts import EXTRACT_HIGHLIGHT_PROMPT, ILLUSTRATION_STYLE_SUFFIX

_log = logging.getLogger(__name__)


class ImageGenerationError(RuntimeError):
    def __init__(self, message: str, *, prompt: str = "", highlight: str = "") -> None:
        super().__init__(message)
        self.prompt = prompt
        self.highlight = highlight


async def extract_highlight(content: str, llm: LLMClient) -> str:
    response = await llm.complete(system=EXTRACT_HIGHLIGHT_PROMPT, user=content, max_tokens=256)
    return response.content.strip()


async def generate_illustration(
    content: str,
    llm: LLMClient,
    custom_prompt: str | None = None,
) -> Illustration:
    if custom_prompt:
        _log.info("Using custom illustration prompt")
        highlight = custom_prompt
    else:
        _log.info("Extracting highlight")
        highlight = await extract_highlight(content, llm)
    image_prompt = f"{highlight}{ILLUSTRATION_STYLE_SUFFIX}"
    _log.info("Image prompt: %s...", image_prompt[:100])

    client = AsyncOpenAI(api_key=os.getenv("OPENAI_API_KEY"))
    response = await client.images.generate(
        model=os.getenv("IMAGE_MODEL", IMAGE_MODEL_DEFAULT),
        prompt=image_prompt,
        n=1,
        size="1024x1024",
        quality="standard",
        style="natural",
        response_format="b64_json",
    )
    image_data = response.data[0].b64_json if response.data else None
    if not image_data:
        raise ImageGenerationError(
            "Image service did not return image data", prompt=image_prompt, highlight=highlight
        )

    return Illustration(
        prompt=image_prompt,
        highlight=highlight,
        image=f"data:image/png;base64,{image_data}",
    )

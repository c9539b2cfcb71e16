from typing import AsyncIterator

import anthropic

from voice_builder.llm.base import LLMClient, LLMResponse, parse_data_uri
from voice_builder.models import ChatMessage
from voice_builder.prompts import IMAGE_ONLY_PROMPT


def to_anthropic_message(message: ChatMessage) -> dict:
    # Assistant turns are always plain text.
    if message.role == "assistant" or not message.image:
        return {"role": message.role, "content": message.content}

    content: list[dict] = []
    parsed = parse_data_uri(message.image)
    if parsed:
        media_type, data = parsed
        content.append({
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": data},
        })
    content.append({"type": "text", "text": message.content or IMAGE_ONLY_PROMPT})
    return {"role": message.role, "content": content}


class AnthropicClient(LLMClient):
    def __init__(self, api_key: str | None, model: str):
        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self._model = model

    async def complete(self, system: str, user: str, max_tokens: int = 512) -> LLMResponse:
        msg = await self._client.messages.create(
            model=self._model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        first = msg.content[0] if msg.content else None
        content = first.text if first is not None and first.type == "text" else ""
        tokens = (msg.usage.input_tokens or 0) + (msg.usage.output_tokens or 0)
        return LLMResponse(content=content, tokens_used=tokens, model=self._model)

    async def stream(
        self, system: str, messages: list[ChatMessage], max_tokens: int = 1024
    ) -> AsyncIterator[str]:
        async with self._client.messages.stream(
            model=self._model,
            max_tokens=max_tokens,
            system=system,
            messages=[to_anthropic_message(m) for m in messages],
        ) as stream:
            async for text in stream.text_stream:
                yield text

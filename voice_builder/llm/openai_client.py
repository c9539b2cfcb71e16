from typing import AsyncIterator

from openai import AsyncOpenAI

from voice_builder.llm.base import LLMClient, LLMResponse, parse_data_uri
from voice_builder.models import ChatMessage
from voice_builder.prompts import IMAGE_ONLY_PROMPT


def to_openai_message(message: ChatMessage) -> dict:
    if message.role == "assistant" or not message.image:
        return {"role": message.role, "content": message.content}

    content: list[dict] = []
    if parse_data_uri(message.image):
        content.append({"type": "image_url", "image_url": {"url": message.image}})
    content.append({"type": "text", "text": message.content or IMAGE_ONLY_PROMPT})
    return {"role": message.role, "content": content}


class OpenAIClient(LLMClient):
    def __init__(self, api_key: str | None, model: str, base_url: str | None = None):
        kwargs = {"api_key": api_key}
        if base_url:
            kwargs["base_url"] = base_url
        self._client = AsyncOpenAI(**kwargs)
        self._model = model

    async def complete(self, system: str, user: str, max_tokens: int = 512) -> LLMResponse:
        resp = await self._client.chat.completions.create(
            model=self._model,
            max_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
        content = resp.choices[0].message.content or ""
        tokens = resp.usage.total_tokens if resp.usage else 0
        return LLMResponse(content=content, tokens_used=tokens, model=self._model)

    async def stream(
        self, system: str, messages: list[ChatMessage], max_tokens: int = 1024
    ) -> AsyncIterator[str]:
        resp = await self._client.chat.completions.create(
            model=self._model,
            max_tokens=max_tokens,
            messages=[{"role": "system", "content": system}] + [to_openai_message(m) for m in messages],
            stream=True,
        )
        async for chunk in resp:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content

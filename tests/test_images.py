from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tests.conftest import FakeLLM
from voice_builder.images import ImageGenerationError, generate_illustration
from voice_builder.prompts import EXTRACT_HIGHLIGHT_PROMPT, ILLUSTRATION_STYLE_SUFFIX
from voice_builder.utils import extract_json_object

pytestmark = pytest.mark.asyncio


def _openai_returning(data):
    client = MagicMock()
    client.images.generate = AsyncMock(return_value=SimpleNamespace(data=data))
    return client


async def test_illustration_from_extracted_highlight():
    llm = FakeLLM(reply="  一个人在深夜的书桌前写字  ")
    openai = _openai_returning([SimpleNamespace(b64_json="QUJD")])

    with patch("voice_builder.images.AsyncOpenAI", return_value=openai):
        result = await generate_illustration("今晚终于把文章写完了", llm)

    assert result.highlight == "一个人在深夜的书桌前写字"
    assert result.prompt == f"一个人在深夜的书桌前写字{ILLUSTRATION_STYLE_SUFFIX}"
    assert result.image == "data:image/png;base64,QUJD"
    assert llm.calls[0]["system"] == EXTRACT_HIGHLIGHT_PROMPT
    assert llm.calls[0]["max_tokens"] == 256
    kwargs = openai.images.generate.await_args.kwargs
    assert kwargs["response_format"] == "b64_json"
    assert kwargs["size"] == "1024x1024"


async def test_custom_prompt_skips_highlight_extraction():
    llm = FakeLLM()
    openai = _openai_returning([SimpleNamespace(b64_json="QUJD")])

    with patch("voice_builder.images.AsyncOpenAI", return_value=openai):
        result = await generate_illustration("ignored", llm, custom_prompt="一杯咖啡")

    assert result.highlight == "一杯咖啡"
    assert llm.calls == []


async def test_missing_image_data_raises_with_prompt():
    openai = _openai_returning([])

    with patch("voice_builder.images.AsyncOpenAI", return_value=openai):
        with pytest.raises(ImageGenerationError) as exc_info:
            await generate_illustration("x", FakeLLM(), custom_prompt="一棵树")

    assert exc_info.value.highlight == "一棵树"
    assert exc_info.value.prompt.startswith("一棵树")


async def test_extract_json_object_handles_prose_and_garbage():
    assert extract_json_object('好的：\n```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json_object("no braces") is None
    assert extract_json_object("{not json}") is None
    assert extract_json_object("[1, 2]") is None

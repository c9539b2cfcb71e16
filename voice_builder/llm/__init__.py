from voice_builder.llm.base import LLMClient, LLMResponse
from voice_builder.llm.factory import get_llm_client

__all__ = ["LLMClient", "LLMResponse", "get_llm_client"]

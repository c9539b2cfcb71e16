import os

from voice_builder.config import ANTHROPIC_MODEL_DEFAULT, OPENAI_MODEL_DEFAULT
from voice_builder.llm.base import LLMClient


def get_llm_client() -> LLMClient:
    """Build the text LLM client selected by LLM_PROVIDER (anthropic | openai)."""
    provider = os.getenv("LLM_PROVIDER", "anthropic").lower()

    if provider == "anthropic":
        from voice_builder.llm.anthropic_client import AnthropicClient
        return AnthropicClient(
            api_key=os.getenv("ANTHROPIC_API_KEY"),
            model=os.getenv("ANTHROPIC_MODEL", ANTHROPIC_MODEL_DEFAULT),
        )

    if provider == "openai":
        from voice_builder.llm.openai_client import OpenAIClient
        return OpenAIClient(
            api_key=os.getenv("OPENAI_API_KEY"),
            model=os.getenv("OPENAI_MODEL", OPENAI_MODEL_DEFAULT),
            base_url=os.getenv("OPENAI_BASE_URL") or None,
        )

    raise ValueError(f"Unknown LLM_PROVIDER: {provider!r}. Use 'anthropic' or 'openai'.")


def provider_api_key_var() -> str:
    """Name of the env var holding the API key for the configured provider."""
    provider = os.getenv("LLM_PROVIDER", "anthropic").lower()
    return "OPENAI_API_KEY" if provider == "openai" else "ANTHROPIC_API_KEY"

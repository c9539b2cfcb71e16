import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator

from voice_builder.models import ChatMessage

_DATA_URI = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)


@dataclass
class LLMResponse:
    content: str
    tokens_used: int = 0
    model: str = ""


def parse_data_uri(uri: str) -> tuple[str, str] | None:
    """Split a base64 data URI into (media_type, data); None if it isn't one."""
    match = _DATA_URI.match(uri)
    if not match:
        return None
    return match.group(1), match.group(2)


class LLMClient(ABC):
    """Abstract base for all LLM providers."""

    @abstractmethod
    async def complete(self, system: str, user: str, max_tokens: int = 512) -> LLMResponse:
        """Send a single-turn completion request."""
        ...

    @abstractmethod
    def stream(
        self, system: str, messages: list[ChatMessage], max_tokens: int = 1024
    ) -> AsyncIterator[str]:
        """Stream text deltas for a multi-turn request, in arrival order.

        User messages may carry a base64 image; each provider converts it to
        its own multi-part content format.
        """
        ...

"""SSE framing shared by the API routes and the client.

Wire format, one event per text delta:

    data: {"text": "..."}\n\n
    ...
    data: [DONE]\n\n
"""
import json
import logging
from typing import AsyncGenerator, AsyncIterable, AsyncIterator

_log = logging.getLogger(__name__)

DONE = "[DONE]"
SEPARATOR = "\n"   # sse-starlette defaults to \r\n; the protocol above uses bare \n


async def relay_text_stream(deltas: AsyncIterable[str]) -> AsyncGenerator[dict, None]:
    """Turn LLM text deltas into sse-starlette event dicts, then the DONE sentinel.

    An upstream failure is logged and re-raised so the response is aborted
    instead of being closed cleanly; the client never sees [DONE].
    """
    try:
        async for text in deltas:
            yield {"data": json.dumps({"text": text}, ensure_ascii=False)}
    except Exception:
        _log.exception("Stream error")
        raise
    yield {"data": DONE}


async def iter_sse_text(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """Yield the `text` field of each data event until [DONE].

    Non-data lines (blank separators, comments, pings) are skipped. Payloads
    that fail to parse are treated as incomplete chunks and ignored.
    """
    async for line in lines:
        if not line.startswith("data:"):
            continue
        payload = line[len("data:"):].strip()
        if payload == DONE:
            return
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            continue
        if isinstance(event, dict) and event.get("text"):
            yield event["text"]

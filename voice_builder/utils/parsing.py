import json
import re
from typing import Any

_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_json_object(raw: str) -> dict[str, Any] | None:
    """Pull the outermost JSON object out of an LLM reply.

    Replies often wrap the object in prose or ``` fences. Returns None when
    nothing parseable is found so callers can fall back to defaults.
    """
    match = _OBJECT.search(raw)
    if not match:
        return None
    try:
        data = json.loads(match.group())
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None

"""Environment-driven settings.

Values that tests override are read at call time through the helpers below;
the constants are only defaults.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

ANTHROPIC_MODEL_DEFAULT = "claude-sonnet-4-20250514"
OPENAI_MODEL_DEFAULT = "gpt-4o"
IMAGE_MODEL_DEFAULT = "dall-e-3"

API_URL_DEFAULT = "http://127.0.0.1:8000"
DB_PATH_DEFAULT = "~/.voice-builder/store.db"

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]


def api_url() -> str:
    return os.getenv("VOICE_BUILDER_API_URL", API_URL_DEFAULT)


def db_path() -> Path:
    path = Path(os.getenv("VOICE_BUILDER_DB", DB_PATH_DEFAULT)).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path

"""Settings loaded from environment variables."""
import logging
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".kids_tutor" / "tutor.db")
DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_LANGUAGE = "en"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class Settings:
    api_key: str | None
    db_path: str = DEFAULT_DB_PATH
    model: str = DEFAULT_MODEL
    vision_model: str = DEFAULT_MODEL
    language: str = DEFAULT_LANGUAGE
    log_level: str = DEFAULT_LOG_LEVEL


def load_settings(environ=None) -> Settings:
    """Build Settings from the environment (or the given mapping).

    Blank values fall back to the defaults, except the API key, which stays
    None so the content service can reject it at construction time. An
    unknown log level name also falls back to WARNING.
    """
    env = os.environ if environ is None else environ

    def _get(name: str, default: str) -> str:
        value = (env.get(name) or "").strip()
        return value or default

    return Settings(
        api_key=(env.get("GEMINI_API_KEY") or "").strip() or None,
        db_path=str(Path(_get("KIDS_TUTOR_DB", DEFAULT_DB_PATH)).expanduser()),
        model=_get("KIDS_TUTOR_MODEL", DEFAULT_MODEL),
        vision_model=_get("KIDS_TUTOR_VISION_MODEL", DEFAULT_MODEL),
        language=_get("KIDS_TUTOR_LANGUAGE", DEFAULT_LANGUAGE),
        log_level=_log_level(_get("KIDS_TUTOR_LOG_LEVEL", DEFAULT_LOG_LEVEL)),
    )


def _log_level(name: str) -> str:
    level = name.upper()
    # getLevelName maps known names to their numeric level.
    if isinstance(logging.getLevelName(level), int):
        return level
    return DEFAULT_LOG_LEVEL

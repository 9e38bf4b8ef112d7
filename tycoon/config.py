"""Configuration helpers for the Dev Tycoon economy engine."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone

from dotenv import load_dotenv


load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class Settings:
    """Environment driven settings for the simulation runtime."""

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./tycoon.db")
    BOT_TOKEN: str = os.getenv("BOT_TOKEN", "")
    TICK_INTERVAL_SECONDS: float = float(os.getenv("TICK_INTERVAL_SECONDS", "60"))
    MINUTES_PER_GAME_DAY: int = int(os.getenv("MINUTES_PER_GAME_DAY", "1"))
    STARTING_CASH: int = int(os.getenv("STARTING_CASH", "100"))
    BANKRUPTCY_THRESHOLD: int = int(os.getenv("BANKRUPTCY_THRESHOLD", "-10000"))
    REPUTATION_PENALTY_PER_DIFFICULTY: int = int(os.getenv("REPUTATION_PENALTY_PER_DIFFICULTY", "5"))
    QUEST_EXPIRY_REPUTATION_PENALTY: int = int(os.getenv("QUEST_EXPIRY_REPUTATION_PENALTY", "2"))
    BUG_SPAWN_CHANCE: float = float(os.getenv("BUG_SPAWN_CHANCE", "0.15"))
    MAX_OPEN_BUGS: int = int(os.getenv("MAX_OPEN_BUGS", "2"))
    MARKET_EVENT_CHANCE: float = float(os.getenv("MARKET_EVENT_CHANCE", "0.40"))
    AI_EVENT_CHANCE: float = float(os.getenv("AI_EVENT_CHANCE", "0.30"))
    MARKET_EVENT_MINUTES: int = int(os.getenv("MARKET_EVENT_MINUTES", "10"))
    STARTER_PROJECTS_MIN: int = int(os.getenv("STARTER_PROJECTS_MIN", "10"))
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_API_URL: str = os.getenv(
        "GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta/models"
    )
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    AI_TIMEOUT_SECONDS: float = float(os.getenv("AI_TIMEOUT_SECONDS", "15"))
    BROADCAST_TIMEOUT_SECONDS: float = float(os.getenv("BROADCAST_TIMEOUT_SECONDS", "5"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = _env_bool("LOG_JSON", "true")


SETTINGS = Settings()


_RESERVED_RECORD_FIELDS = {
    "args",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}


class JsonLogFormatter(logging.Formatter):
    """Formatter that emits structured JSON lines for easier ingestion."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - short implementation
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in payload or key in _RESERVED_RECORD_FIELDS:
                continue
            payload.setdefault("extras", {})[key] = value
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: int | str | None = None, json_lines: bool | None = None) -> None:
    """Configure application wide logging."""

    resolved_level = level if level is not None else SETTINGS.LOG_LEVEL
    use_json = SETTINGS.LOG_JSON if json_lines is None else json_lines
    handler = logging.StreamHandler()
    if use_json:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    logging.basicConfig(level=resolved_level, handlers=[handler], force=True)


LOGGER = logging.getLogger("tycoon")

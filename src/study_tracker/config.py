from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from study_tracker.ai_config import AiConfig, load_ai_config
from study_tracker.time_utils import DEFAULT_TZ


@dataclass(frozen=True)
class Settings:
    database_path: Path
    tz: str
    openrouter_api_key: str | None
    ai_config_path: Path
    ai: AiConfig
    api_host: str
    api_port: int
    log_level: str


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _parse_port(value: str | None, default: int) -> int:
    try:
        port = int(value) if value is not None else default
    except ValueError:
        return default
    return port if 0 < port < 65536 else default


def load_settings(env_file: Path = Path(".env")) -> Settings:
    _load_env_file(env_file)

    ai_path = Path(os.getenv("AI_CONFIG_PATH", "./ai_models.yaml"))
    return Settings(
        database_path=Path(os.getenv("DATABASE_PATH", "./data/study.db")),
        tz=os.getenv("TZ", DEFAULT_TZ),
        openrouter_api_key=os.getenv("OPENROUTER_API_KEY") or None,
        ai_config_path=ai_path,
        ai=load_ai_config(ai_path),
        api_host=os.getenv("API_HOST", "127.0.0.1"),
        api_port=_parse_port(os.getenv("API_PORT"), 8080),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

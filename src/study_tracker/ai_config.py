from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


@dataclass(frozen=True)
class AiConfig:
    default_model: str = "anthropic/claude-3-haiku"
    max_tokens: int = 300
    max_content_length: int = 4000
    timeout_seconds: float = 30.0
    endpoint: str = OPENROUTER_URL
    referer: str = "https://app.local"
    title: str = "Zahrati Study Tracker"


def _positive_int(value: object, default: int) -> int:
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def load_ai_config(path: Path) -> AiConfig:
    defaults = AiConfig()
    if not path.exists():
        return defaults

    raw = yaml.safe_load(path.read_text()) or {}
    if not isinstance(raw, dict):
        logger.warning("ignoring malformed ai config path=%s", path)
        return defaults

    try:
        timeout = float(raw.get("timeout_seconds", defaults.timeout_seconds))
    except (TypeError, ValueError):
        timeout = defaults.timeout_seconds
    if timeout <= 0:
        timeout = defaults.timeout_seconds

    return AiConfig(
        default_model=str(raw.get("default_model") or defaults.default_model).strip(),
        max_tokens=_positive_int(raw.get("max_tokens"), defaults.max_tokens),
        max_content_length=_positive_int(raw.get("max_content_length"), defaults.max_content_length),
        timeout_seconds=timeout,
        endpoint=str(raw.get("endpoint") or defaults.endpoint).strip(),
        referer=str(raw.get("referer") or defaults.referer).strip(),
        title=str(raw.get("title") or defaults.title).strip(),
    )

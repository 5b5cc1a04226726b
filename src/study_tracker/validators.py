from __future__ import annotations

import re

from study_tracker.errors import ValidationError

COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


def require_text(value: str | None, field: str, max_length: int = 200) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} is required")
    if len(cleaned) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return cleaned


def optional_text(value: str | None, max_length: int = 2000) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    return cleaned[:max_length]


def require_color(value: str) -> str:
    cleaned = (value or "").strip()
    if not COLOR_PATTERN.fullmatch(cleaned):
        raise ValidationError(f"Invalid color '{value}', expected a hex value like #3b82f6")
    return cleaned.lower()


def require_minutes(value: int, field: str, minimum: int, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be a whole number of minutes")
    return require_count(value, field, minimum, maximum)


def require_count(value: int, field: str, minimum: int, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be a whole number")
    if value < minimum or value > maximum:
        raise ValidationError(f"{field} must be between {minimum} and {maximum}")
    return value

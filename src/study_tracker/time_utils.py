from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from study_tracker.errors import ValidationError

DEFAULT_TZ = "Europe/Oslo"
SNAP_MINUTES = 5
DAYS_OF_WEEK = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

TIME_PATTERN = re.compile(r"^(?P<hours>\d{1,2}):(?P<minutes>\d{2})$")


def now_local(tz_name: str = DEFAULT_TZ) -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))


def parse_time(value: str) -> int:
    """Convert ``"HH:MM"`` into minutes since midnight.

    ``24:00`` is accepted as the end-of-day sentinel; any other value past
    midnight is rejected.
    """
    match = TIME_PATTERN.fullmatch(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    hours = int(match.group("hours"))
    minutes = int(match.group("minutes"))
    if minutes > 59 or hours > 24 or (hours == 24 and minutes != 0):
        raise ValidationError(f"Time out of range: '{value}'")
    return hours * 60 + minutes


def format_time(minutes: int) -> str:
    if minutes < 0:
        raise ValidationError("Minutes must not be negative")
    hours, mins = divmod(int(minutes), 60)
    return f"{hours:02d}:{mins:02d}"


def snap_to_five_minutes(minutes: float) -> int:
    # half-up, matching the editor's rounding of drag offsets
    return int(math.floor(minutes / SNAP_MINUTES + 0.5)) * SNAP_MINUTES


def snap_time(value: str) -> str:
    return format_time(snap_to_five_minutes(parse_time(value)))


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return start_a < end_b and start_b < end_a


def day_of_year(day: date) -> int:
    return day.timetuple().tm_yday


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc


@dataclass(frozen=True)
class DayScope:
    """Which weekdays a timetable entry applies to.

    ``day`` is ``None`` for the ``Any`` variant. For blocks, ``Any`` collides
    with every specific day; for fixed events it means "every day".
    """

    day: str | None = None

    @classmethod
    def any(cls) -> DayScope:
        return cls(None)

    @classmethod
    def specific(cls, day: str) -> DayScope:
        normalized = day.strip().lower()
        if normalized not in DAYS_OF_WEEK:
            raise ValidationError(f"Invalid day of week '{day}'")
        return cls(normalized)

    @classmethod
    def from_optional(cls, day: str | None) -> DayScope:
        return cls.any() if day is None else cls.specific(day)

    @property
    def is_any(self) -> bool:
        return self.day is None

    def same_day_applicable(self, other: DayScope) -> bool:
        return self.is_any or other.is_any or self.day == other.day

    def applies_on(self, day: str) -> bool:
        return self.is_any or self.day == day

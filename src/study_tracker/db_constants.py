from __future__ import annotations

DEFAULT_FOCUS_MINUTES = 25
DEFAULT_BREAK_MINUTES = 5
MAX_FOCUS_MINUTES = 180
MAX_BREAK_MINUTES = 60
MAX_SESSION_MINUTES = 24 * 60

DEFAULT_TARGET_SESSIONS = 4

SESSION_TYPES = ("focus", "break")
BLOCK_KINDS = ("study", "break", "fixed")

DEFAULT_BLOCK_COLOR = "#6b7280"
DEFAULT_EVENT_COLOR = "#8b5cf6"
BREAK_LABEL = "Break"
ROTATION_SUFFIX = " (Rotation)"

DEFAULT_TIMETABLE_TITLE = "My Study Schedule"
DEFAULT_DAY_START = "06:30"
DEFAULT_DAY_END = "24:00"
DEFAULT_BREAK_DEFAULT_MINUTES = 30

DEFAULT_SUBJECTS: list[tuple[str, str]] = [
    ("Mathematics", "#3b82f6"),
    ("Physics", "#10b981"),
    ("English", "#f59e0b"),
]

# (subject index or None for a break, start, end)
DEFAULT_BLOCKS: list[tuple[int | None, str, str]] = [
    (0, "18:30", "20:00"),
    (None, "20:00", "20:30"),
    (1, "20:30", "22:00"),
    (2, "22:00", "23:30"),
]

DEFAULT_FIXED_EVENT: tuple[str, str, str, str] = ("Isha Namaz", "20:00", "20:15", DEFAULT_EVENT_COLOR)

"""Pomodoro countdown driven by explicit ``tick`` calls.

The timer holds no clock of its own. Callers feed elapsed seconds in from a
UI loop or a scheduler.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from study_tracker.db import Database
from study_tracker.db_constants import DEFAULT_BREAK_MINUTES, DEFAULT_FOCUS_MINUTES
from study_tracker.errors import ValidationError
from study_tracker.service import record_session

FOCUS = "focus"
BREAK = "break"

CompletionCallback = Callable[[int, str], None]


class PomodoroTimer:
    def __init__(
        self,
        focus_minutes: int = DEFAULT_FOCUS_MINUTES,
        break_minutes: int = DEFAULT_BREAK_MINUTES,
        on_complete: CompletionCallback | None = None,
    ) -> None:
        if focus_minutes <= 0 or break_minutes <= 0:
            raise ValidationError("Timer durations must be positive")
        self.focus_minutes = focus_minutes
        self.break_minutes = break_minutes
        self.on_complete = on_complete
        self.mode = FOCUS
        self.running = False
        self.sessions_completed = 0
        self.remaining_seconds = self._mode_seconds()

    def _mode_minutes(self) -> int:
        return self.focus_minutes if self.mode == FOCUS else self.break_minutes

    def _mode_seconds(self) -> int:
        return self._mode_minutes() * 60

    @property
    def is_break(self) -> bool:
        return self.mode == BREAK

    @property
    def progress_percent(self) -> float:
        total = self._mode_seconds()
        return (total - self.remaining_seconds) / total * 100

    def start(self) -> None:
        self.running = True

    def pause(self) -> None:
        self.running = False

    def reset(self) -> None:
        self.running = False
        self.remaining_seconds = self._mode_seconds()

    def skip(self) -> None:
        """Switch to the other mode without recording a completion."""
        self.running = False
        self._flip()

    def tick(self, seconds: int = 1) -> bool:
        """Advance the countdown; returns True when a phase completed."""
        if not self.running or seconds <= 0:
            return False
        self.remaining_seconds = max(0, self.remaining_seconds - seconds)
        if self.remaining_seconds > 0:
            return False
        self._complete()
        return True

    def _complete(self) -> None:
        self.running = False
        finished_mode = self.mode
        minutes = self._mode_minutes()
        # a failing callback leaves the finished phase in place at 00:00
        if self.on_complete is not None:
            self.on_complete(minutes, finished_mode)
        if finished_mode == FOCUS:
            self.sessions_completed += 1
        self._flip()

    def _flip(self) -> None:
        self.mode = BREAK if self.mode == FOCUS else FOCUS
        self.remaining_seconds = self._mode_seconds()

    def update_durations(self, focus_minutes: int, break_minutes: int) -> None:
        """Apply new settings; an idle countdown is reset to the new length."""
        if focus_minutes <= 0 or break_minutes <= 0:
            raise ValidationError("Timer durations must be positive")
        self.focus_minutes = focus_minutes
        self.break_minutes = break_minutes
        if not self.running:
            self.remaining_seconds = self._mode_seconds()

    def format_remaining(self) -> str:
        mins, secs = divmod(self.remaining_seconds, 60)
        return f"{mins:02d}:{secs:02d}"


def timer_for_user(db: Database, user_id: int, clock: Callable[[], datetime]) -> PomodoroTimer:
    """Timer using the user's durations that records each finished phase."""
    user = db.ensure_user(user_id, clock())

    def record(minutes: int, session_type: str) -> None:
        record_session(db, user_id, minutes, session_type, True, clock())

    return PomodoroTimer(user.focus_duration, user.break_duration, on_complete=record)

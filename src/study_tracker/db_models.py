from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from study_tracker.time_utils import DayScope


@dataclass(frozen=True)
class User:
    id: int
    name: str | None
    email: str | None
    current_streak: int
    longest_streak: int
    last_active_date: date | None
    total_study_time: int
    level: int
    badges: tuple[str, ...]
    focus_duration: int
    break_duration: int
    created_at: datetime


@dataclass(frozen=True)
class StudySession:
    id: int
    user_id: int
    duration: int
    session_type: str
    subject: str | None
    notes: str | None
    completed: bool
    date: date
    created_at: datetime


@dataclass(frozen=True)
class DailyGoal:
    id: int
    user_id: int
    date: date
    target_sessions: int
    target_minutes: int
    completed_sessions: int
    completed_minutes: int


@dataclass(frozen=True)
class Subject:
    id: int
    user_id: int
    name: str
    color: str
    total_time: int


@dataclass(frozen=True)
class LifeGoal:
    id: int
    user_id: int
    title: str
    description: str | None
    target_date: date | None
    completed: bool
    created_at: datetime


@dataclass(frozen=True)
class Timetable:
    id: int
    user_id: int
    title: str
    day_start: str
    day_end: str
    break_default_minutes: int
    rotate_last_block: bool
    weak_subject_ids: tuple[int, ...]


@dataclass(frozen=True)
class TimetableBlock:
    id: int
    timetable_id: int
    kind: str
    subject_id: int | None
    label: str | None
    color: str
    start: str
    end: str
    day_scope: DayScope
    locked: bool


@dataclass(frozen=True)
class FixedEvent:
    id: int
    user_id: int
    label: str
    start: str
    end: str
    color: str
    day_scope: DayScope

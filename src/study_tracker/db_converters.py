from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime

from study_tracker.db_models import (
    DailyGoal,
    FixedEvent,
    LifeGoal,
    StudySession,
    Subject,
    Timetable,
    TimetableBlock,
    User,
)
from study_tracker.time_utils import DayScope


def _row_to_user(row: sqlite3.Row) -> User:
    badges_raw = row["badges_json"] or "[]"
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        current_streak=int(row["current_streak"]),
        longest_streak=int(row["longest_streak"]),
        last_active_date=date.fromisoformat(row["last_active_date"]) if row["last_active_date"] else None,
        total_study_time=int(row["total_study_time"]),
        level=int(row["level"]),
        badges=tuple(str(b) for b in json.loads(badges_raw)),
        focus_duration=int(row["focus_duration"]),
        break_duration=int(row["break_duration"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_session(row: sqlite3.Row) -> StudySession:
    return StudySession(
        id=row["id"],
        user_id=row["user_id"],
        duration=int(row["duration"]),
        session_type=row["session_type"],
        subject=row["subject"],
        notes=row["notes"],
        completed=bool(row["completed"]),
        date=date.fromisoformat(row["session_date"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_daily_goal(row: sqlite3.Row) -> DailyGoal:
    return DailyGoal(
        id=row["id"],
        user_id=row["user_id"],
        date=date.fromisoformat(row["goal_date"]),
        target_sessions=int(row["target_sessions"]),
        target_minutes=int(row["target_minutes"]),
        completed_sessions=int(row["completed_sessions"] or 0),
        completed_minutes=int(row["completed_minutes"] or 0),
    )


def _row_to_subject(row: sqlite3.Row) -> Subject:
    return Subject(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        color=row["color"],
        total_time=int(row["total_time"] or 0),
    )


def _row_to_life_goal(row: sqlite3.Row) -> LifeGoal:
    return LifeGoal(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"],
        target_date=date.fromisoformat(row["target_date"]) if row["target_date"] else None,
        completed=bool(row["completed"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_timetable(row: sqlite3.Row) -> Timetable:
    weak_raw = row["weak_subject_ids_json"] or "[]"
    return Timetable(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        day_start=row["day_start"],
        day_end=row["day_end"],
        break_default_minutes=int(row["break_default_minutes"]),
        rotate_last_block=bool(row["rotate_last_block"]),
        weak_subject_ids=tuple(int(x) for x in json.loads(weak_raw)),
    )


def _row_to_block(row: sqlite3.Row) -> TimetableBlock:
    return TimetableBlock(
        id=row["id"],
        timetable_id=row["timetable_id"],
        kind=row["kind"],
        subject_id=row["subject_id"],
        label=row["label"],
        color=row["color"],
        start=row["start_time"],
        end=row["end_time"],
        day_scope=DayScope(row["day_of_week"]),
        locked=bool(row["locked"]),
    )


def _row_to_fixed_event(row: sqlite3.Row) -> FixedEvent:
    return FixedEvent(
        id=row["id"],
        user_id=row["user_id"],
        label=row["label"],
        start=row["start_time"],
        end=row["end_time"],
        color=row["color"],
        day_scope=DayScope(row["day_of_week"]),
    )

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from study_tracker.db import DailyGoal, Database, LifeGoal, StudySession, Subject, User
from study_tracker.db_constants import (
    MAX_BREAK_MINUTES,
    MAX_FOCUS_MINUTES,
    MAX_SESSION_MINUTES,
    SESSION_TYPES,
)
from study_tracker.errors import NotFoundError, ValidationError
from study_tracker.gamification import badges_earned, level_from_minutes
from study_tracker.streaks import StreakState, next_streak
from study_tracker.time_utils import parse_date
from study_tracker.validators import optional_text, require_color, require_count, require_minutes, require_text

logger = logging.getLogger(__name__)

WEEKLY_WINDOW_DAYS = 7
MAX_DAILY_SESSIONS = 100


@dataclass(frozen=True)
class SessionOutcome:
    session: StudySession
    user: User
    daily_goal: DailyGoal | None
    subject_time_updated: bool


# ---------------------------------------------------------------------------
# sessions
# ---------------------------------------------------------------------------


def _apply_focus_completion(
    db: Database,
    conn: sqlite3.Connection,
    user: User,
    session: StudySession,
    count_towards_goal: bool,
) -> bool:
    db.add_study_time(user.id, session.duration, conn=conn)
    if count_towards_goal:
        db.increment_daily_goal(user.id, session.date, session.duration, conn=conn)

    subject_updated = False
    if session.subject:
        subject_updated = db.add_subject_time_by_name(user.id, session.subject, session.duration, conn=conn)

    streak = next_streak(
        StreakState(user.current_streak, user.longest_streak, user.last_active_date),
        session.date,
    )
    db.save_progress(
        user.id,
        current_streak=streak.current,
        longest_streak=streak.longest,
        last_active_date=streak.last_active,
        level=level_from_minutes(user.total_study_time + session.duration),
        badges=badges_earned(streak.longest, user.badges),
        conn=conn,
    )
    return subject_updated


def _record(
    db: Database,
    user_id: int,
    duration: int,
    session_type: str,
    completed: bool,
    session_date: date,
    now: datetime,
    subject: str | None,
    notes: str | None,
) -> SessionOutcome:
    require_minutes(duration, "duration", 1, MAX_SESSION_MINUTES)
    if session_type not in SESSION_TYPES:
        raise ValidationError(f"Invalid session type '{session_type}'")
    subject = optional_text(subject, max_length=80)
    notes = optional_text(notes)

    with db.transaction() as conn:
        user = db.ensure_user(user_id, now, conn=conn)
        session = db.add_session(
            user_id=user_id,
            duration=duration,
            session_type=session_type,
            completed=completed,
            session_date=session_date,
            created_at=now,
            subject=subject,
            notes=notes,
            conn=conn,
        )
        subject_updated = False
        if completed and session_type == "focus":
            # goal counters only track sessions logged on the goal's own day
            subject_updated = _apply_focus_completion(
                db, conn, user, session, count_towards_goal=session_date == now.date()
            )
        refreshed = db.get_user(user_id, conn=conn)
        goal = db.get_daily_goal(user_id, session_date, conn=conn)

    assert refreshed is not None
    logger.info(
        "recorded session user_id=%s type=%s minutes=%s date=%s completed=%s",
        user_id,
        session_type,
        duration,
        session_date.isoformat(),
        completed,
    )
    return SessionOutcome(session=session, user=refreshed, daily_goal=goal, subject_time_updated=subject_updated)


def record_session(
    db: Database,
    user_id: int,
    duration: int,
    session_type: str,
    completed: bool,
    now: datetime,
    subject: str | None = None,
    notes: str | None = None,
) -> SessionOutcome:
    return _record(db, user_id, duration, session_type, completed, now.date(), now, subject, notes)


def create_manual_session(
    db: Database,
    user_id: int,
    duration: int,
    session_date: str | date,
    session_type: str,
    completed: bool,
    now: datetime,
    subject: str | None = None,
    notes: str | None = None,
) -> SessionOutcome:
    day = session_date if isinstance(session_date, date) else parse_date(session_date)
    if day > now.date():
        raise ValidationError("Cannot log sessions for a future date")
    return _record(db, user_id, duration, session_type, completed, day, now, subject, notes)


def get_sessions_for_date(db: Database, user_id: int, day: date) -> list[StudySession]:
    return db.list_sessions_for_date(user_id, day)


def get_weekly_sessions(db: Database, user_id: int, today: date) -> list[StudySession]:
    return db.list_sessions_since(user_id, today - timedelta(days=WEEKLY_WINDOW_DAYS))


# ---------------------------------------------------------------------------
# user settings
# ---------------------------------------------------------------------------


def get_or_create_user(db: Database, user_id: int, now: datetime) -> User:
    return db.ensure_user(user_id, now)


def update_user_settings(
    db: Database,
    user_id: int,
    now: datetime,
    focus_duration: int | None = None,
    break_duration: int | None = None,
) -> User:
    if focus_duration is not None:
        require_minutes(focus_duration, "focus_duration", 1, MAX_FOCUS_MINUTES)
    if break_duration is not None:
        require_minutes(break_duration, "break_duration", 1, MAX_BREAK_MINUTES)
    db.ensure_user(user_id, now)
    db.update_timer_durations(user_id, focus_duration, break_duration)
    user = db.get_user(user_id)
    assert user is not None
    return user


def update_user_profile(
    db: Database,
    user_id: int,
    now: datetime,
    name: str | None = None,
    email: str | None = None,
) -> User:
    cleaned_email = optional_text(email, max_length=200)
    if cleaned_email is not None and "@" not in cleaned_email:
        raise ValidationError(f"Invalid email '{email}'")
    db.ensure_user(user_id, now)
    db.update_user_profile(user_id, optional_text(name, max_length=80), cleaned_email)
    user = db.get_user(user_id)
    assert user is not None
    return user


# ---------------------------------------------------------------------------
# daily goals
# ---------------------------------------------------------------------------


def set_daily_goal(
    db: Database,
    user_id: int,
    target_sessions: int,
    target_minutes: int,
    today: date,
) -> DailyGoal:
    require_count(target_sessions, "target_sessions", 0, MAX_DAILY_SESSIONS)
    require_minutes(target_minutes, "target_minutes", 0, MAX_SESSION_MINUTES)
    goal = db.upsert_daily_goal(user_id, today, target_sessions, target_minutes)
    logger.info(
        "set daily goal user_id=%s date=%s sessions=%s minutes=%s",
        user_id,
        today.isoformat(),
        target_sessions,
        target_minutes,
    )
    return goal


def get_daily_goal(db: Database, user_id: int, day: date) -> DailyGoal | None:
    return db.get_daily_goal(user_id, day)


# ---------------------------------------------------------------------------
# life goals
# ---------------------------------------------------------------------------


def _life_goal_sort_key(goal: LifeGoal) -> tuple[int, date, datetime, int]:
    return (
        1 if goal.completed else 0,
        goal.target_date or date.max,
        goal.created_at,
        goal.id,
    )


def _optional_date(value: str | date | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return parse_date(value)


def _owned_life_goal(db: Database, user_id: int, goal_id: int) -> LifeGoal:
    goal = db.get_life_goal(goal_id)
    if goal is None or goal.user_id != user_id:
        raise NotFoundError("Life goal not found")
    return goal


def create_life_goal(
    db: Database,
    user_id: int,
    title: str,
    now: datetime,
    description: str | None = None,
    target_date: str | date | None = None,
) -> LifeGoal:
    return db.add_life_goal(
        user_id,
        require_text(title, "title"),
        optional_text(description),
        _optional_date(target_date),
        now,
    )


def update_life_goal(db: Database, user_id: int, goal_id: int, **changes: Any) -> LifeGoal:
    _owned_life_goal(db, user_id, goal_id)
    fields: dict[str, Any] = {}
    if "title" in changes:
        fields["title"] = require_text(changes["title"], "title")
    if "description" in changes:
        fields["description"] = optional_text(changes["description"])
    if "target_date" in changes:
        target = _optional_date(changes["target_date"])
        fields["target_date"] = target.isoformat() if target else None
    unknown = set(changes) - {"title", "description", "target_date"}
    if unknown:
        raise ValidationError(f"Unknown life goal fields: {', '.join(sorted(unknown))}")
    db.update_life_goal_fields(goal_id, fields)
    return _owned_life_goal(db, user_id, goal_id)


def set_life_goal_completed(db: Database, user_id: int, goal_id: int, completed: bool) -> LifeGoal:
    _owned_life_goal(db, user_id, goal_id)
    db.update_life_goal_fields(goal_id, {"completed": 1 if completed else 0})
    return _owned_life_goal(db, user_id, goal_id)


def delete_life_goal(db: Database, user_id: int, goal_id: int) -> None:
    if not db.delete_life_goal(user_id, goal_id):
        raise NotFoundError("Life goal not found")


def list_life_goals(db: Database, user_id: int) -> list[LifeGoal]:
    """Incomplete goals first, then by nearest target date, then oldest first."""
    return sorted(db.list_life_goals(user_id), key=_life_goal_sort_key)


# ---------------------------------------------------------------------------
# subjects
# ---------------------------------------------------------------------------


def create_subject(db: Database, user_id: int, name: str, color: str) -> Subject:
    subject = db.add_subject(user_id, require_text(name, "name", max_length=80), require_color(color))
    logger.info("created subject user_id=%s subject_id=%s", user_id, subject.id)
    return subject


def list_subjects(db: Database, user_id: int) -> list[Subject]:
    return db.list_subjects(user_id)

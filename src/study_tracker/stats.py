from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta

from study_tracker.db import Database, StudySession
from study_tracker.db_constants import DEFAULT_TARGET_SESSIONS
from study_tracker.gamification import LevelProgress, level_progress, streak_badge
from study_tracker.streaks import StreakState, displayed_streak

INSIGHT_WINDOW_DAYS = 7
RECENT_NOTES_LIMIT = 5


@dataclass(frozen=True)
class RatioView:
    focus_minutes: int
    break_minutes: int
    focus_percent: int
    break_percent: int


@dataclass(frozen=True)
class BestDay:
    date: date
    focus_minutes: int


@dataclass(frozen=True)
class WeeklyInsights:
    total_focus_minutes: int
    total_break_minutes: int
    focus_sessions: int
    average_focus_minutes: int
    best_day: BestDay | None
    recent_notes: tuple[StudySession, ...]


@dataclass(frozen=True)
class DashboardView:
    today: date
    completed_sessions: int
    focus_minutes_today: int
    target_sessions: int
    progress_percent: int
    total_study_time: int
    current_streak: int
    longest_streak: int
    level: LevelProgress
    streak_badge: str | None
    badges: tuple[str, ...]


def completion_ratio(completed: int, target: int) -> float:
    if target <= 0:
        return 0.0
    return completed / target


def _completed(sessions: Iterable[StudySession]) -> list[StudySession]:
    return [s for s in sessions if s.completed]


def study_break_ratio(sessions: Iterable[StudySession]) -> RatioView:
    done = _completed(sessions)
    focus = sum(s.duration for s in done if s.session_type == "focus")
    rest = sum(s.duration for s in done if s.session_type == "break")
    total = focus + rest
    if total == 0:
        return RatioView(focus_minutes=0, break_minutes=0, focus_percent=0, break_percent=0)
    focus_percent = round(focus * 100 / total)
    return RatioView(
        focus_minutes=focus,
        break_minutes=rest,
        focus_percent=focus_percent,
        break_percent=100 - focus_percent,
    )


def weekly_insights(sessions: Iterable[StudySession], today: date) -> WeeklyInsights:
    window_start = today - timedelta(days=INSIGHT_WINDOW_DAYS)
    done = [s for s in _completed(sessions) if s.date >= window_start]
    focus = [s for s in done if s.session_type == "focus"]

    total_focus = sum(s.duration for s in focus)
    total_break = sum(s.duration for s in done if s.session_type == "break")
    average = round(total_focus / len(focus)) if focus else 0

    per_day: dict[date, int] = defaultdict(int)
    for s in focus:
        per_day[s.date] += s.duration
    best_day = None
    if per_day:
        # highest minutes wins, earliest date breaks ties
        best_date = min(per_day, key=lambda d: (-per_day[d], d))
        best_day = BestDay(date=best_date, focus_minutes=per_day[best_date])

    noted = [s for s in focus if s.notes or s.subject]
    noted.sort(key=lambda s: (s.created_at, s.id), reverse=True)

    return WeeklyInsights(
        total_focus_minutes=total_focus,
        total_break_minutes=total_break,
        focus_sessions=len(focus),
        average_focus_minutes=average,
        best_day=best_day,
        recent_notes=tuple(noted[:RECENT_NOTES_LIMIT]),
    )


def compute_dashboard(db: Database, user_id: int, today: date) -> DashboardView:
    user = db.get_user(user_id)
    sessions = db.list_sessions_for_date(user_id, today)
    focus_today = [s for s in sessions if s.completed and s.session_type == "focus"]
    goal = db.get_daily_goal(user_id, today)
    target = goal.target_sessions if goal else DEFAULT_TARGET_SESSIONS

    completed = len(focus_today)
    progress = min(100, round(completion_ratio(completed, target) * 100))

    total = user.total_study_time if user else 0
    streak = StreakState(
        current=user.current_streak if user else 0,
        longest=user.longest_streak if user else 0,
        last_active=user.last_active_date if user else None,
    )
    current = displayed_streak(streak, today)

    return DashboardView(
        today=today,
        completed_sessions=completed,
        focus_minutes_today=sum(s.duration for s in focus_today),
        target_sessions=target,
        progress_percent=progress,
        total_study_time=total,
        current_streak=current,
        longest_streak=streak.longest,
        level=level_progress(total),
        streak_badge=streak_badge(current),
        badges=user.badges if user else (),
    )

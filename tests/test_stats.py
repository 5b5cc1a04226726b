from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from study_tracker.db import Database, StudySession
from study_tracker.service import record_session, set_daily_goal
from study_tracker.stats import compute_dashboard, completion_ratio, study_break_ratio, weekly_insights

TODAY = date(2026, 2, 16)


def _session(
    sid: int,
    duration: int,
    day: date,
    session_type: str = "focus",
    completed: bool = True,
    subject: str | None = None,
    notes: str | None = None,
) -> StudySession:
    created = datetime(day.year, day.month, day.day, 10, tzinfo=ZoneInfo("Europe/Oslo")) + timedelta(minutes=sid)
    return StudySession(
        id=sid,
        user_id=1,
        duration=duration,
        session_type=session_type,
        subject=subject,
        notes=notes,
        completed=completed,
        date=day,
        created_at=created,
    )


def test_completion_ratio() -> None:
    assert completion_ratio(1, 4) == 0.25
    assert completion_ratio(5, 4) == 1.25
    assert completion_ratio(3, 0) == 0.0


def test_study_break_ratio() -> None:
    sessions = [
        _session(1, 75, TODAY),
        _session(2, 25, TODAY, session_type="break"),
        _session(3, 50, TODAY, completed=False),
    ]
    ratio = study_break_ratio(sessions)
    assert (ratio.focus_minutes, ratio.break_minutes) == (75, 25)
    assert (ratio.focus_percent, ratio.break_percent) == (75, 25)


def test_study_break_ratio_empty() -> None:
    ratio = study_break_ratio([])
    assert (ratio.focus_percent, ratio.break_percent) == (0, 0)


def test_weekly_insights_best_day_and_totals() -> None:
    sessions = [
        _session(1, 30, TODAY - timedelta(days=6)),
        _session(2, 50, TODAY - timedelta(days=1)),
        _session(3, 10, TODAY - timedelta(days=1), session_type="break"),
        _session(4, 90, TODAY - timedelta(days=9)),
        _session(5, 40, TODAY, completed=False),
    ]
    insights = weekly_insights(sessions, TODAY)

    assert insights.total_focus_minutes == 80
    assert insights.total_break_minutes == 10
    assert insights.focus_sessions == 2
    assert insights.average_focus_minutes == 40
    assert insights.best_day is not None
    assert insights.best_day.date == TODAY - timedelta(days=1)
    assert insights.best_day.focus_minutes == 50


def test_weekly_insights_tie_goes_to_earliest_day() -> None:
    sessions = [
        _session(1, 45, TODAY - timedelta(days=2)),
        _session(2, 45, TODAY - timedelta(days=4)),
    ]
    insights = weekly_insights(sessions, TODAY)
    assert insights.best_day is not None
    assert insights.best_day.date == TODAY - timedelta(days=4)


def test_weekly_insights_empty() -> None:
    insights = weekly_insights([], TODAY)
    assert insights.best_day is None
    assert insights.average_focus_minutes == 0
    assert insights.recent_notes == ()


def test_weekly_insights_recent_notes() -> None:
    sessions = [_session(i, 25, TODAY, notes=f"note {i}") for i in range(1, 8)]
    sessions.append(_session(20, 25, TODAY))
    sessions.append(_session(21, 5, TODAY, session_type="break", notes="stretch"))

    notes = weekly_insights(sessions, TODAY).recent_notes
    assert [s.id for s in notes] == [7, 6, 5, 4, 3]


def test_dashboard_defaults_without_history(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    view = compute_dashboard(db, 1, TODAY)
    assert view.target_sessions == 4
    assert view.completed_sessions == 0
    assert view.progress_percent == 0
    assert view.level.level == 1
    assert view.streak_badge is None


def test_dashboard_progress_is_capped(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    now = datetime(2026, 2, 16, 9, tzinfo=ZoneInfo("Europe/Oslo"))
    set_daily_goal(db, 1, 2, 50, TODAY)
    for _ in range(3):
        record_session(db, 1, 25, "focus", True, now)

    view = compute_dashboard(db, 1, TODAY)
    assert view.completed_sessions == 3
    assert view.focus_minutes_today == 75
    assert view.progress_percent == 100
    assert view.total_study_time == 75
    assert view.current_streak == 1


def test_dashboard_shows_lapsed_streak_as_zero(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    record_session(db, 1, 25, "focus", True, datetime(2026, 2, 10, 9, tzinfo=ZoneInfo("Europe/Oslo")))
    view = compute_dashboard(db, 1, TODAY)
    assert view.current_streak == 0
    assert view.longest_streak == 1

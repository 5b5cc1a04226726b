from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from study_tracker.db import Database
from study_tracker.errors import NotFoundError, ValidationError
from study_tracker.motivation import QUOTES, TIPS, daily_motivation
from study_tracker.service import (
    create_life_goal,
    create_subject,
    delete_life_goal,
    list_life_goals,
    list_subjects,
    set_life_goal_completed,
    update_life_goal,
)


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def test_life_goals_sort_order(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    no_date = create_life_goal(db, 1, "Read more", _dt(2026, 1, 1))
    later = create_life_goal(db, 1, "Finish thesis", _dt(2026, 1, 2), target_date="2026-12-01")
    sooner = create_life_goal(db, 1, "Pass exams", _dt(2026, 1, 3), target_date="2026-06-01")
    done = create_life_goal(db, 1, "Learn to type", _dt(2026, 1, 4), target_date="2026-01-10")
    set_life_goal_completed(db, 1, done.id, True)
    newer_no_date = create_life_goal(db, 1, "Run a marathon", _dt(2026, 1, 5))

    ordered = [g.id for g in list_life_goals(db, 1)]
    assert ordered == [sooner.id, later.id, no_date.id, newer_no_date.id, done.id]


def test_life_goal_update_and_ownership(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    goal = create_life_goal(db, 1, "  Pass exams ", _dt(2026, 1, 1), description="math + physics")
    assert goal.title == "Pass exams"

    updated = update_life_goal(db, 1, goal.id, title="Pass all exams", target_date="2026-06-15")
    assert updated.title == "Pass all exams"
    assert updated.target_date == date(2026, 6, 15)
    assert updated.description == "math + physics"

    cleared = update_life_goal(db, 1, goal.id, target_date=None)
    assert cleared.target_date is None

    with pytest.raises(NotFoundError):
        update_life_goal(db, 2, goal.id, title="mine")
    with pytest.raises(NotFoundError):
        set_life_goal_completed(db, 2, goal.id, True)
    with pytest.raises(ValidationError):
        update_life_goal(db, 1, goal.id, title="   ")
    with pytest.raises(ValidationError):
        create_life_goal(db, 1, "", _dt(2026, 1, 1))

    delete_life_goal(db, 1, goal.id)
    assert list_life_goals(db, 1) == []
    with pytest.raises(NotFoundError):
        delete_life_goal(db, 1, goal.id)


def test_subject_validation(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    with pytest.raises(ValidationError):
        create_subject(db, 1, " ", "#3b82f6")
    with pytest.raises(ValidationError):
        create_subject(db, 1, "Physics", "green")

    create_subject(db, 1, "Physics", "#10B981")
    create_subject(db, 2, "History", "#f00")
    assert [(s.name, s.color) for s in list_subjects(db, 1)] == [("Physics", "#10b981")]


def test_daily_motivation_cycles_by_day_of_month() -> None:
    first = daily_motivation(date(2026, 2, 1))
    assert first.quote == QUOTES[1]
    assert first.tip == TIPS[1]
    assert daily_motivation(date(2026, 3, 7)) == first
    assert daily_motivation(date(2026, 2, 6)).quote == QUOTES[0]

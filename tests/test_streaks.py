from datetime import date

import pytest

from study_tracker.gamification import (
    badges_earned,
    level_from_minutes,
    level_progress,
    minutes_for_level,
    streak_badge,
)
from study_tracker.streaks import StreakState, displayed_streak, next_streak

D = date(2026, 2, 9)


@pytest.mark.parametrize(
    ("state", "activity", "expected"),
    [
        (StreakState(0, 0, None), D, StreakState(1, 1, D)),
        (StreakState(3, 5, date(2026, 2, 8)), D, StreakState(4, 5, D)),
        (StreakState(5, 5, date(2026, 2, 8)), D, StreakState(6, 6, D)),
        (StreakState(3, 5, D), D, StreakState(3, 5, D)),
        (StreakState(3, 5, date(2026, 2, 6)), D, StreakState(1, 5, D)),
        (StreakState(3, 5, date(2026, 2, 12)), D, StreakState(3, 5, date(2026, 2, 12))),
    ],
)
def test_next_streak(state: StreakState, activity: date, expected: StreakState) -> None:
    assert next_streak(state, activity) == expected


def test_displayed_streak_lapses_after_a_missed_day() -> None:
    state = StreakState(4, 4, D)
    assert displayed_streak(state, D) == 4
    assert displayed_streak(state, date(2026, 2, 10)) == 4
    assert displayed_streak(state, date(2026, 2, 11)) == 0
    assert displayed_streak(StreakState(0, 0, None), D) == 0


def test_level_curve() -> None:
    assert minutes_for_level(1) == 0
    assert minutes_for_level(2) == 300
    assert minutes_for_level(3) == 384
    assert level_from_minutes(0) == 1
    assert level_from_minutes(299) == 1
    assert level_from_minutes(300) == 2
    assert level_from_minutes(683) == 2
    assert level_from_minutes(684) == 3

    progress = level_progress(400)
    assert progress.level == 2
    assert progress.current_level_minutes == 100
    assert progress.remaining_to_next == 284


@pytest.mark.parametrize(
    ("days", "badge"),
    [(0, None), (6, None), (7, "Bronze"), (14, "Silver"), (20, "Silver"), (21, "Gold"), (30, "Diamond"), (99, "Diamond")],
)
def test_streak_badge(days: int, badge: str | None) -> None:
    assert streak_badge(days) == badge


def test_badges_are_never_revoked() -> None:
    assert badges_earned(15) == ("Bronze", "Silver")
    assert badges_earned(3, ("Bronze",)) == ("Bronze",)
    assert badges_earned(30, ("Bronze",)) == ("Bronze", "Silver", "Gold", "Diamond")

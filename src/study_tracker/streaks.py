"""Streak transitions driven by completed focus sessions.

A day counts as active once it has at least one completed focus session.
The stored streak only changes when a new active day is recorded; reading
code uses :func:`displayed_streak` so a lapsed streak shows as zero without
a background job rewriting rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta


@dataclass(frozen=True)
class StreakState:
    current: int
    longest: int
    last_active: date | None


def next_streak(state: StreakState, activity_date: date) -> StreakState:
    last = state.last_active
    if last is not None and activity_date <= last:
        # same day again, or a backfill older than the latest active day
        return state

    if last is not None and activity_date - last == timedelta(days=1):
        current = state.current + 1
    else:
        current = 1

    return StreakState(
        current=current,
        longest=max(state.longest, current),
        last_active=activity_date,
    )


def displayed_streak(state: StreakState, today: date) -> int:
    if state.last_active is None:
        return 0
    if today - state.last_active > timedelta(days=1):
        return 0
    return state.current

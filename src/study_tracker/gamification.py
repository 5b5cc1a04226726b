from __future__ import annotations

from dataclasses import dataclass

LEVEL2_BASE_MINUTES = 300
LEVEL_LINEAR_MINUTES = 80
LEVEL_QUADRATIC_MINUTES = 4

STREAK_BADGES: tuple[tuple[int, str], ...] = (
    (30, "Diamond"),
    (21, "Gold"),
    (14, "Silver"),
    (7, "Bronze"),
)


@dataclass(frozen=True)
class LevelProgress:
    level: int
    current_level_minutes: int
    next_level_minutes: int
    progress_ratio: float
    remaining_to_next: int


def minutes_for_level(level: int) -> int:
    if level <= 1:
        return 0
    k = level - 2
    return LEVEL2_BASE_MINUTES + (LEVEL_LINEAR_MINUTES * k) + (LEVEL_QUADRATIC_MINUTES * k * k)


def total_minutes_for_level(level: int) -> int:
    return sum(minutes_for_level(lvl) for lvl in range(2, level + 1))


def level_from_minutes(total_minutes: int) -> int:
    minutes = max(0, total_minutes)
    level = 1
    accumulated = 0
    while True:
        needed = minutes_for_level(level + 1)
        if accumulated + needed > minutes:
            break
        accumulated += needed
        level += 1
    return level


def level_progress(total_minutes: int) -> LevelProgress:
    minutes = max(0, total_minutes)
    level = level_from_minutes(minutes)
    floor = total_minutes_for_level(level)
    ceiling = total_minutes_for_level(level + 1)
    span = max(ceiling - floor, 1)
    return LevelProgress(
        level=level,
        current_level_minutes=minutes - floor,
        next_level_minutes=span,
        progress_ratio=(minutes - floor) / span,
        remaining_to_next=max(ceiling - minutes, 0),
    )


def streak_badge(streak_days: int) -> str | None:
    for threshold, name in STREAK_BADGES:
        if streak_days >= threshold:
            return name
    return None


def badges_earned(longest_streak: int, existing: tuple[str, ...] = ()) -> tuple[str, ...]:
    """Merge streak badges unlocked by ``longest_streak`` into ``existing``.

    Badges are never revoked; newly earned ones are appended lowest tier first.
    """
    earned = list(existing)
    for threshold, name in reversed(STREAK_BADGES):
        if longest_streak >= threshold and name not in earned:
            earned.append(name)
    return tuple(earned)

from __future__ import annotations

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
from study_tracker.db_repo import (
    BaseDatabase,
    GoalMixin,
    SessionMixin,
    SubjectMixin,
    TimetableMixin,
    UserMixin,
)


class Database(
    UserMixin,
    SessionMixin,
    GoalMixin,
    SubjectMixin,
    TimetableMixin,
    BaseDatabase,
):
    pass


__all__ = [
    "Database",
    "DailyGoal",
    "FixedEvent",
    "LifeGoal",
    "StudySession",
    "Subject",
    "Timetable",
    "TimetableBlock",
    "User",
]

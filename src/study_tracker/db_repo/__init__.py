from .base import BaseDatabase
from .users import UserMixin
from .sessions import SessionMixin
from .goals import GoalMixin
from .subjects import SubjectMixin
from .timetable import TimetableMixin

__all__ = [
    "BaseDatabase",
    "UserMixin",
    "SessionMixin",
    "GoalMixin",
    "SubjectMixin",
    "TimetableMixin",
]

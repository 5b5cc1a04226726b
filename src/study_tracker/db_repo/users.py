from __future__ import annotations

import json
import sqlite3
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Protocol

from study_tracker.db_converters import _row_to_user
from study_tracker.db_models import User


class DbProtocol(Protocol):
    def _scope(self, conn: sqlite3.Connection | None) -> AbstractContextManager[sqlite3.Connection]: ...


class UserMixin:
    def ensure_user(self: DbProtocol, user_id: int, now: datetime, conn: sqlite3.Connection | None = None) -> User:
        with self._scope(conn) as c:
            c.execute(
                "INSERT OR IGNORE INTO users(id, created_at) VALUES (?, ?)",
                (user_id, now.isoformat()),
            )
            row = c.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        assert row is not None
        return _row_to_user(row)

    def get_user(self: DbProtocol, user_id: int, conn: sqlite3.Connection | None = None) -> User | None:
        with self._scope(conn) as c:
            row = c.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row) if row else None

    def update_user_profile(
        self: DbProtocol,
        user_id: int,
        name: str | None,
        email: str | None,
    ) -> None:
        with self._scope(None) as c:
            c.execute(
                "UPDATE users SET name = COALESCE(?, name), email = COALESCE(?, email) WHERE id = ?",
                (name, email, user_id),
            )

    def update_timer_durations(
        self: DbProtocol,
        user_id: int,
        focus_duration: int | None,
        break_duration: int | None,
    ) -> None:
        with self._scope(None) as c:
            if focus_duration is not None:
                c.execute("UPDATE users SET focus_duration = ? WHERE id = ?", (focus_duration, user_id))
            if break_duration is not None:
                c.execute("UPDATE users SET break_duration = ? WHERE id = ?", (break_duration, user_id))

    def add_study_time(self: DbProtocol, user_id: int, minutes: int, conn: sqlite3.Connection | None = None) -> None:
        with self._scope(conn) as c:
            c.execute(
                "UPDATE users SET total_study_time = total_study_time + ? WHERE id = ?",
                (max(0, minutes), user_id),
            )

    def save_progress(
        self: DbProtocol,
        user_id: int,
        current_streak: int,
        longest_streak: int,
        last_active_date: date | None,
        level: int,
        badges: tuple[str, ...],
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._scope(conn) as c:
            c.execute(
                """
                UPDATE users
                SET current_streak = ?, longest_streak = ?, last_active_date = ?, level = ?, badges_json = ?
                WHERE id = ?
                """,
                (
                    current_streak,
                    longest_streak,
                    last_active_date.isoformat() if last_active_date else None,
                    level,
                    json.dumps(list(badges)),
                    user_id,
                ),
            )

from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Any, Protocol

from study_tracker.db_converters import _row_to_daily_goal, _row_to_life_goal
from study_tracker.db_models import DailyGoal, LifeGoal


class DbProtocol(Protocol):
    def _scope(self, conn: sqlite3.Connection | None) -> AbstractContextManager[sqlite3.Connection]: ...


class GoalMixin:
    def upsert_daily_goal(
        self: DbProtocol,
        user_id: int,
        goal_date: date,
        target_sessions: int,
        target_minutes: int,
    ) -> DailyGoal:
        with self._scope(None) as c:
            c.execute(
                """
                INSERT INTO daily_goals(user_id, goal_date, target_sessions, target_minutes)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, goal_date) DO UPDATE SET
                    target_sessions=excluded.target_sessions,
                    target_minutes=excluded.target_minutes
                """,
                (user_id, goal_date.isoformat(), target_sessions, target_minutes),
            )
            row = c.execute(
                "SELECT * FROM daily_goals WHERE user_id = ? AND goal_date = ?",
                (user_id, goal_date.isoformat()),
            ).fetchone()
        assert row is not None
        return _row_to_daily_goal(row)

    def get_daily_goal(
        self: DbProtocol,
        user_id: int,
        goal_date: date,
        conn: sqlite3.Connection | None = None,
    ) -> DailyGoal | None:
        with self._scope(conn) as c:
            row = c.execute(
                "SELECT * FROM daily_goals WHERE user_id = ? AND goal_date = ?",
                (user_id, goal_date.isoformat()),
            ).fetchone()
        return _row_to_daily_goal(row) if row else None

    def increment_daily_goal(
        self: DbProtocol,
        user_id: int,
        goal_date: date,
        minutes: int,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        with self._scope(conn) as c:
            cur = c.execute(
                """
                UPDATE daily_goals
                SET completed_sessions = completed_sessions + 1,
                    completed_minutes = completed_minutes + ?
                WHERE user_id = ? AND goal_date = ?
                """,
                (minutes, user_id, goal_date.isoformat()),
            )
        return cur.rowcount > 0

    def add_life_goal(
        self: DbProtocol,
        user_id: int,
        title: str,
        description: str | None,
        target_date: date | None,
        now: datetime,
    ) -> LifeGoal:
        with self._scope(None) as c:
            cur = c.execute(
                """
                INSERT INTO life_goals(user_id, title, description, target_date, completed, created_at)
                VALUES (?, ?, ?, ?, 0, ?)
                """,
                (user_id, title, description, target_date.isoformat() if target_date else None, now.isoformat()),
            )
            row = c.execute("SELECT * FROM life_goals WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_life_goal(row)

    def get_life_goal(self: DbProtocol, goal_id: int) -> LifeGoal | None:
        with self._scope(None) as c:
            row = c.execute("SELECT * FROM life_goals WHERE id = ?", (goal_id,)).fetchone()
        return _row_to_life_goal(row) if row else None

    def update_life_goal_fields(self: DbProtocol, goal_id: int, fields: dict[str, Any]) -> None:
        allowed = {"title", "description", "target_date", "completed"}
        updates = {k: v for k, v in fields.items() if k in allowed}
        if not updates:
            return
        assignments = ", ".join(f"{key} = ?" for key in updates)
        with self._scope(None) as c:
            c.execute(
                f"UPDATE life_goals SET {assignments} WHERE id = ?",
                (*updates.values(), goal_id),
            )

    def delete_life_goal(self: DbProtocol, user_id: int, goal_id: int) -> bool:
        with self._scope(None) as c:
            cur = c.execute("DELETE FROM life_goals WHERE id = ? AND user_id = ?", (goal_id, user_id))
        return cur.rowcount > 0

    def list_life_goals(self: DbProtocol, user_id: int) -> list[LifeGoal]:
        with self._scope(None) as c:
            rows = c.execute(
                "SELECT * FROM life_goals WHERE user_id = ? ORDER BY created_at ASC, id ASC",
                (user_id,),
            ).fetchall()
        return [_row_to_life_goal(r) for r in rows]

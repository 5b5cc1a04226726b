from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Protocol

from study_tracker.db_converters import _row_to_session
from study_tracker.db_models import StudySession


class DbProtocol(Protocol):
    def _scope(self, conn: sqlite3.Connection | None) -> AbstractContextManager[sqlite3.Connection]: ...


class SessionMixin:
    def add_session(
        self: DbProtocol,
        user_id: int,
        duration: int,
        session_type: str,
        completed: bool,
        session_date: date,
        created_at: datetime,
        subject: str | None = None,
        notes: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> StudySession:
        with self._scope(conn) as c:
            cursor = c.execute(
                """
                INSERT INTO study_sessions(
                    user_id, duration, session_type, subject, notes, completed, session_date, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    duration,
                    session_type,
                    subject,
                    notes,
                    1 if completed else 0,
                    session_date.isoformat(),
                    created_at.isoformat(),
                ),
            )
            row = c.execute("SELECT * FROM study_sessions WHERE id = ?", (cursor.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_session(row)

    def list_sessions_for_date(self: DbProtocol, user_id: int, day: date) -> list[StudySession]:
        with self._scope(None) as c:
            rows = c.execute(
                """
                SELECT * FROM study_sessions
                WHERE user_id = ? AND session_date = ?
                ORDER BY created_at ASC, id ASC
                """,
                (user_id, day.isoformat()),
            ).fetchall()
        return [_row_to_session(r) for r in rows]

    def list_sessions_since(self: DbProtocol, user_id: int, start_date: date) -> list[StudySession]:
        with self._scope(None) as c:
            rows = c.execute(
                """
                SELECT * FROM study_sessions
                WHERE user_id = ? AND session_date >= ?
                ORDER BY session_date ASC, created_at ASC, id ASC
                """,
                (user_id, start_date.isoformat()),
            ).fetchall()
        return [_row_to_session(r) for r in rows]

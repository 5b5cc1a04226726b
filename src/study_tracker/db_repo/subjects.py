from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from typing import Protocol

from study_tracker.db_converters import _row_to_subject
from study_tracker.db_models import Subject


class DbProtocol(Protocol):
    def _scope(self, conn: sqlite3.Connection | None) -> AbstractContextManager[sqlite3.Connection]: ...


class SubjectMixin:
    def add_subject(
        self: DbProtocol,
        user_id: int,
        name: str,
        color: str,
        conn: sqlite3.Connection | None = None,
    ) -> Subject:
        with self._scope(conn) as c:
            cur = c.execute(
                "INSERT INTO subjects(user_id, name, color, total_time) VALUES (?, ?, ?, 0)",
                (user_id, name, color),
            )
            row = c.execute("SELECT * FROM subjects WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_subject(row)

    def get_subject(self: DbProtocol, subject_id: int, conn: sqlite3.Connection | None = None) -> Subject | None:
        with self._scope(conn) as c:
            row = c.execute("SELECT * FROM subjects WHERE id = ?", (subject_id,)).fetchone()
        return _row_to_subject(row) if row else None

    def list_subjects(self: DbProtocol, user_id: int, conn: sqlite3.Connection | None = None) -> list[Subject]:
        with self._scope(conn) as c:
            rows = c.execute(
                "SELECT * FROM subjects WHERE user_id = ? ORDER BY id ASC",
                (user_id,),
            ).fetchall()
        return [_row_to_subject(r) for r in rows]

    def add_subject_time_by_name(
        self: DbProtocol,
        user_id: int,
        name: str,
        minutes: int,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        with self._scope(conn) as c:
            cur = c.execute(
                """
                UPDATE subjects SET total_time = total_time + ?
                WHERE id = (
                    SELECT id FROM subjects
                    WHERE user_id = ? AND lower(name) = lower(?)
                    ORDER BY id ASC LIMIT 1
                )
                """,
                (max(0, minutes), user_id, name.strip()),
            )
        return cur.rowcount > 0

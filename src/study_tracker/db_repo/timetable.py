from __future__ import annotations

import json
import sqlite3
from contextlib import AbstractContextManager
from typing import Any, Protocol

from study_tracker.db_converters import _row_to_block, _row_to_fixed_event, _row_to_timetable
from study_tracker.db_models import FixedEvent, Timetable, TimetableBlock

_TIMETABLE_COLUMNS = {
    "title": "title",
    "day_start": "day_start",
    "day_end": "day_end",
    "break_default_minutes": "break_default_minutes",
    "rotate_last_block": "rotate_last_block",
    "weak_subject_ids": "weak_subject_ids_json",
}

_BLOCK_COLUMNS = {
    "kind": "kind",
    "subject_id": "subject_id",
    "label": "label",
    "color": "color",
    "start": "start_time",
    "end": "end_time",
    "day_of_week": "day_of_week",
    "locked": "locked",
}


def _encode(key: str, value: Any) -> Any:
    if key == "weak_subject_ids":
        return json.dumps([int(v) for v in value])
    if key in {"rotate_last_block", "locked"}:
        return 1 if value else 0
    return value


def _assignments(fields: dict[str, Any], columns: dict[str, str]) -> tuple[str, list[Any]]:
    parts: list[str] = []
    params: list[Any] = []
    for key, value in fields.items():
        if key not in columns:
            raise KeyError(f"unknown field: {key}")
        parts.append(f"{columns[key]} = ?")
        params.append(_encode(key, value))
    return ", ".join(parts), params


class DbProtocol(Protocol):
    def _scope(self, conn: sqlite3.Connection | None) -> AbstractContextManager[sqlite3.Connection]: ...


class TimetableMixin:
    def get_first_timetable(self: DbProtocol, user_id: int, conn: sqlite3.Connection | None = None) -> Timetable | None:
        with self._scope(conn) as c:
            row = c.execute(
                "SELECT * FROM timetables WHERE user_id = ? ORDER BY id ASC LIMIT 1",
                (user_id,),
            ).fetchone()
        return _row_to_timetable(row) if row else None

    def get_timetable(self: DbProtocol, timetable_id: int, conn: sqlite3.Connection | None = None) -> Timetable | None:
        with self._scope(conn) as c:
            row = c.execute("SELECT * FROM timetables WHERE id = ?", (timetable_id,)).fetchone()
        return _row_to_timetable(row) if row else None

    def add_timetable(
        self: DbProtocol,
        user_id: int,
        title: str,
        day_start: str,
        day_end: str,
        break_default_minutes: int,
        rotate_last_block: bool,
        weak_subject_ids: tuple[int, ...] = (),
        conn: sqlite3.Connection | None = None,
    ) -> Timetable:
        with self._scope(conn) as c:
            cur = c.execute(
                """
                INSERT INTO timetables(
                    user_id, title, day_start, day_end, break_default_minutes, rotate_last_block, weak_subject_ids_json
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    title,
                    day_start,
                    day_end,
                    break_default_minutes,
                    1 if rotate_last_block else 0,
                    json.dumps(list(weak_subject_ids)),
                ),
            )
            row = c.execute("SELECT * FROM timetables WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_timetable(row)

    def update_timetable_fields(
        self: DbProtocol,
        timetable_id: int,
        fields: dict[str, Any],
        conn: sqlite3.Connection | None = None,
    ) -> None:
        if not fields:
            return
        assignments, params = _assignments(fields, _TIMETABLE_COLUMNS)
        with self._scope(conn) as c:
            c.execute(f"UPDATE timetables SET {assignments} WHERE id = ?", (*params, timetable_id))

    def list_blocks(self: DbProtocol, timetable_id: int, conn: sqlite3.Connection | None = None) -> list[TimetableBlock]:
        with self._scope(conn) as c:
            rows = c.execute(
                "SELECT * FROM timetable_blocks WHERE timetable_id = ? ORDER BY id ASC",
                (timetable_id,),
            ).fetchall()
        return [_row_to_block(r) for r in rows]

    def get_block(self: DbProtocol, block_id: int, conn: sqlite3.Connection | None = None) -> TimetableBlock | None:
        with self._scope(conn) as c:
            row = c.execute("SELECT * FROM timetable_blocks WHERE id = ?", (block_id,)).fetchone()
        return _row_to_block(row) if row else None

    def get_block_owner(self: DbProtocol, block_id: int, conn: sqlite3.Connection | None = None) -> int | None:
        with self._scope(conn) as c:
            row = c.execute(
                """
                SELECT t.user_id AS user_id
                FROM timetable_blocks b
                JOIN timetables t ON t.id = b.timetable_id
                WHERE b.id = ?
                """,
                (block_id,),
            ).fetchone()
        return int(row["user_id"]) if row else None

    def add_block(
        self: DbProtocol,
        timetable_id: int,
        kind: str,
        color: str,
        start: str,
        end: str,
        subject_id: int | None = None,
        label: str | None = None,
        day_of_week: str | None = None,
        locked: bool = False,
        conn: sqlite3.Connection | None = None,
    ) -> TimetableBlock:
        with self._scope(conn) as c:
            cur = c.execute(
                """
                INSERT INTO timetable_blocks(
                    timetable_id, kind, subject_id, label, color, start_time, end_time, day_of_week, locked
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (timetable_id, kind, subject_id, label, color, start, end, day_of_week, 1 if locked else 0),
            )
            row = c.execute("SELECT * FROM timetable_blocks WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_block(row)

    def update_block_fields(
        self: DbProtocol,
        block_id: int,
        fields: dict[str, Any],
        conn: sqlite3.Connection | None = None,
    ) -> None:
        if not fields:
            return
        assignments, params = _assignments(fields, _BLOCK_COLUMNS)
        with self._scope(conn) as c:
            c.execute(f"UPDATE timetable_blocks SET {assignments} WHERE id = ?", (*params, block_id))

    def delete_block(self: DbProtocol, block_id: int) -> bool:
        with self._scope(None) as c:
            cur = c.execute("DELETE FROM timetable_blocks WHERE id = ?", (block_id,))
        return cur.rowcount > 0

    def list_fixed_events(self: DbProtocol, user_id: int, conn: sqlite3.Connection | None = None) -> list[FixedEvent]:
        with self._scope(conn) as c:
            rows = c.execute(
                "SELECT * FROM fixed_events WHERE user_id = ? ORDER BY id ASC",
                (user_id,),
            ).fetchall()
        return [_row_to_fixed_event(r) for r in rows]

    def get_fixed_event(self: DbProtocol, event_id: int, conn: sqlite3.Connection | None = None) -> FixedEvent | None:
        with self._scope(conn) as c:
            row = c.execute("SELECT * FROM fixed_events WHERE id = ?", (event_id,)).fetchone()
        return _row_to_fixed_event(row) if row else None

    def add_fixed_event(
        self: DbProtocol,
        user_id: int,
        label: str,
        start: str,
        end: str,
        color: str,
        day_of_week: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> FixedEvent:
        with self._scope(conn) as c:
            cur = c.execute(
                """
                INSERT INTO fixed_events(user_id, label, start_time, end_time, color, day_of_week)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, label, start, end, color, day_of_week),
            )
            row = c.execute("SELECT * FROM fixed_events WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_fixed_event(row)

    def replace_fixed_event(
        self: DbProtocol,
        event_id: int,
        label: str,
        start: str,
        end: str,
        color: str,
        day_of_week: str | None,
        conn: sqlite3.Connection | None = None,
    ) -> FixedEvent:
        with self._scope(conn) as c:
            c.execute(
                """
                UPDATE fixed_events
                SET label = ?, start_time = ?, end_time = ?, color = ?, day_of_week = ?
                WHERE id = ?
                """,
                (label, start, end, color, day_of_week, event_id),
            )
            row = c.execute("SELECT * FROM fixed_events WHERE id = ?", (event_id,)).fetchone()
        assert row is not None
        return _row_to_fixed_event(row)

    def delete_fixed_event(self: DbProtocol, user_id: int, event_id: int) -> bool:
        with self._scope(None) as c:
            cur = c.execute("DELETE FROM fixed_events WHERE id = ? AND user_id = ?", (event_id, user_id))
        return cur.rowcount > 0

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


class BaseDatabase:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction holding the database lock from the first read.

        Validation reads and the write that depends on them happen on the
        same connection, so concurrent writers cannot interleave.
        """
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            yield conn

    @contextmanager
    def _scope(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with self._connect() as fresh:
            yield fresh

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = {row["version"] for row in conn.execute("SELECT version FROM schema_migrations")}

            migrations: dict[int, str] = {
                1: """
                    CREATE TABLE users (
                        id INTEGER PRIMARY KEY,
                        name TEXT,
                        email TEXT,
                        current_streak INTEGER NOT NULL DEFAULT 0,
                        longest_streak INTEGER NOT NULL DEFAULT 0,
                        last_active_date TEXT,
                        total_study_time INTEGER NOT NULL DEFAULT 0,
                        level INTEGER NOT NULL DEFAULT 1,
                        badges_json TEXT NOT NULL DEFAULT '[]',
                        focus_duration INTEGER NOT NULL DEFAULT 25,
                        break_duration INTEGER NOT NULL DEFAULT 5,
                        created_at TEXT NOT NULL
                    );

                    CREATE TABLE study_sessions (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        duration INTEGER NOT NULL CHECK(duration > 0),
                        session_type TEXT NOT NULL CHECK(session_type IN ('focus', 'break')),
                        subject TEXT,
                        notes TEXT,
                        completed INTEGER NOT NULL DEFAULT 1,
                        session_date TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    );

                    CREATE INDEX idx_study_sessions_user_date ON study_sessions(user_id, session_date);

                    CREATE TABLE daily_goals (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        goal_date TEXT NOT NULL,
                        target_sessions INTEGER NOT NULL,
                        target_minutes INTEGER NOT NULL,
                        completed_sessions INTEGER NOT NULL DEFAULT 0,
                        completed_minutes INTEGER NOT NULL DEFAULT 0,
                        UNIQUE(user_id, goal_date)
                    );

                    CREATE TABLE subjects (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        name TEXT NOT NULL,
                        color TEXT NOT NULL,
                        total_time INTEGER NOT NULL DEFAULT 0
                    );

                    CREATE INDEX idx_subjects_user ON subjects(user_id);

                    CREATE TABLE life_goals (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        title TEXT NOT NULL,
                        description TEXT,
                        target_date TEXT,
                        completed INTEGER NOT NULL DEFAULT 0,
                        created_at TEXT NOT NULL
                    );

                    CREATE INDEX idx_life_goals_user ON life_goals(user_id);
                """,
                2: """
                    CREATE TABLE timetables (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        title TEXT NOT NULL,
                        day_start TEXT NOT NULL,
                        day_end TEXT NOT NULL,
                        break_default_minutes INTEGER NOT NULL DEFAULT 30,
                        rotate_last_block INTEGER NOT NULL DEFAULT 1,
                        weak_subject_ids_json TEXT NOT NULL DEFAULT '[]'
                    );

                    CREATE INDEX idx_timetables_user ON timetables(user_id);

                    CREATE TABLE timetable_blocks (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        timetable_id INTEGER NOT NULL REFERENCES timetables(id) ON DELETE CASCADE,
                        kind TEXT NOT NULL CHECK(kind IN ('study', 'break', 'fixed')),
                        subject_id INTEGER,
                        label TEXT,
                        color TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        day_of_week TEXT CHECK(day_of_week IN ('mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun')),
                        locked INTEGER NOT NULL DEFAULT 0
                    );

                    CREATE INDEX idx_timetable_blocks_timetable ON timetable_blocks(timetable_id, start_time);

                    CREATE TABLE fixed_events (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        label TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        color TEXT NOT NULL,
                        day_of_week TEXT CHECK(day_of_week IN ('mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun'))
                    );

                    CREATE INDEX idx_fixed_events_user ON fixed_events(user_id);
                """,
            }

            now = datetime.now().isoformat(timespec="seconds")
            for version in sorted(migrations):
                if version in current:
                    continue
                conn.executescript(migrations[version])
                conn.execute(
                    "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, now),
                )
                logger.info("applied migration version=%s path=%s", version, self.path)

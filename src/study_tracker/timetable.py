from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date
from typing import Any

from study_tracker.db import Database, FixedEvent, Subject, Timetable, TimetableBlock
from study_tracker.db_constants import (
    BLOCK_KINDS,
    BREAK_LABEL,
    DEFAULT_BLOCK_COLOR,
    DEFAULT_BLOCKS,
    DEFAULT_BREAK_DEFAULT_MINUTES,
    DEFAULT_DAY_END,
    DEFAULT_DAY_START,
    DEFAULT_EVENT_COLOR,
    DEFAULT_FIXED_EVENT,
    DEFAULT_SUBJECTS,
    DEFAULT_TIMETABLE_TITLE,
    ROTATION_SUFFIX,
)
from study_tracker.errors import ConflictError, NotFoundError, ValidationError
from study_tracker.time_utils import (
    SNAP_MINUTES,
    DayScope,
    day_of_year,
    format_time,
    overlaps,
    parse_time,
    snap_time,
    snap_to_five_minutes,
)
from study_tracker.validators import require_color, require_minutes, require_text

logger = logging.getLogger(__name__)

BLOCK_FIELDS = frozenset({"kind", "subject_id", "label", "color", "start", "end", "day_of_week", "locked"})
TIMETABLE_FIELDS = frozenset(
    {"title", "day_start", "day_end", "break_default_minutes", "rotate_last_block", "weak_subject_ids"}
)


@dataclass(frozen=True)
class PreviewItem:
    item_type: str
    id: int
    kind: str | None
    subject_id: int | None
    label: str | None
    color: str
    start: str
    end: str
    day_of_week: str | None
    rotated: bool = False


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _snap_window(start: str, end: str) -> tuple[str, str]:
    snapped_start = snap_time(start)
    snapped_end = snap_time(end)
    if parse_time(snapped_end) <= parse_time(snapped_start):
        raise ValidationError("End time must be after start time")
    return snapped_start, snapped_end


def _start_minutes(item: TimetableBlock | FixedEvent | PreviewItem) -> int:
    return parse_time(item.start)


def _require_kind(kind: str) -> str:
    if kind not in BLOCK_KINDS:
        raise ValidationError(f"Invalid block kind '{kind}'")
    return kind


def _require_timetable(
    db: Database,
    user_id: int,
    timetable_id: int,
    conn: sqlite3.Connection | None = None,
) -> Timetable:
    timetable = db.get_timetable(timetable_id, conn=conn)
    if timetable is None or timetable.user_id != user_id:
        raise NotFoundError("Timetable not found")
    return timetable


def _require_subject(
    db: Database,
    user_id: int,
    subject_id: int,
    conn: sqlite3.Connection | None = None,
) -> Subject:
    subject = db.get_subject(subject_id, conn=conn)
    if subject is None or subject.user_id != user_id:
        raise NotFoundError("Subject not found")
    return subject


def find_conflict(
    blocks: Iterable[TimetableBlock],
    start: str,
    end: str,
    scope: DayScope,
    exclude_id: int | None = None,
) -> TimetableBlock | None:
    start_min = parse_time(start)
    end_min = parse_time(end)
    for block in blocks:
        if block.id == exclude_id:
            continue
        if not scope.same_day_applicable(block.day_scope):
            continue
        if overlaps(start_min, end_min, parse_time(block.start), parse_time(block.end)):
            return block
    return None


# ---------------------------------------------------------------------------
# timetables
# ---------------------------------------------------------------------------


def get_user_timetable(db: Database, user_id: int) -> Timetable | None:
    return db.get_first_timetable(user_id)


def _timetable_updates(
    db: Database,
    user_id: int,
    fields: dict[str, Any],
    conn: sqlite3.Connection,
) -> dict[str, Any]:
    unknown = set(fields) - TIMETABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown timetable fields: {', '.join(sorted(unknown))}")

    updates: dict[str, Any] = {}
    if "title" in fields:
        updates["title"] = require_text(fields["title"], "title")
    if "day_start" in fields:
        updates["day_start"] = snap_time(fields["day_start"])
    if "day_end" in fields:
        updates["day_end"] = snap_time(fields["day_end"])
    if "break_default_minutes" in fields:
        updates["break_default_minutes"] = require_minutes(
            fields["break_default_minutes"], "break_default_minutes", 1, 240
        )
    if "rotate_last_block" in fields:
        updates["rotate_last_block"] = bool(fields["rotate_last_block"])
    if "weak_subject_ids" in fields:
        weak_ids = tuple(int(sid) for sid in fields["weak_subject_ids"] or ())
        for sid in weak_ids:
            _require_subject(db, user_id, sid, conn=conn)
        updates["weak_subject_ids"] = weak_ids
    return updates


def upsert_timetable(
    db: Database,
    user_id: int,
    timetable_id: int | None = None,
    **fields: Any,
) -> Timetable:
    with db.transaction() as conn:
        updates = _timetable_updates(db, user_id, fields, conn)
        if timetable_id is None:
            # one timetable per user: patch the existing one instead of adding another
            existing = db.get_first_timetable(user_id, conn=conn)
            timetable_id = existing.id if existing else None
        if timetable_id is not None:
            current = _require_timetable(db, user_id, timetable_id, conn=conn)
            day_start = updates.get("day_start", current.day_start)
            day_end = updates.get("day_end", current.day_end)
        else:
            day_start = updates.get("day_start", DEFAULT_DAY_START)
            day_end = updates.get("day_end", DEFAULT_DAY_END)
        if parse_time(day_end) <= parse_time(day_start):
            raise ValidationError("Day end must be after day start")

        if timetable_id is not None:
            db.update_timetable_fields(timetable_id, updates, conn=conn)
            result = db.get_timetable(timetable_id, conn=conn)
        else:
            result = db.add_timetable(
                user_id=user_id,
                title=updates.get("title", DEFAULT_TIMETABLE_TITLE),
                day_start=day_start,
                day_end=day_end,
                break_default_minutes=updates.get("break_default_minutes", DEFAULT_BREAK_DEFAULT_MINUTES),
                rotate_last_block=updates.get("rotate_last_block", True),
                weak_subject_ids=updates.get("weak_subject_ids", ()),
                conn=conn,
            )
    assert result is not None
    return result


def ensure_default_timetable(db: Database, user_id: int) -> int:
    """Return the user's timetable id, seeding a sample schedule on first use.

    Seeds three subjects (only when the user has none), three study blocks
    plus one break, and a sample fixed event (only when the user has none).
    """
    with db.transaction() as conn:
        existing = db.get_first_timetable(user_id, conn=conn)
        if existing is not None:
            return existing.id

        timetable = db.add_timetable(
            user_id=user_id,
            title=DEFAULT_TIMETABLE_TITLE,
            day_start=DEFAULT_DAY_START,
            day_end=DEFAULT_DAY_END,
            break_default_minutes=DEFAULT_BREAK_DEFAULT_MINUTES,
            rotate_last_block=True,
            conn=conn,
        )

        subjects = db.list_subjects(user_id, conn=conn)
        if not subjects:
            subjects = [db.add_subject(user_id, name, color, conn=conn) for name, color in DEFAULT_SUBJECTS]

        for subject_index, start, end in DEFAULT_BLOCKS:
            if subject_index is None:
                db.add_block(
                    timetable.id,
                    kind="break",
                    color=DEFAULT_BLOCK_COLOR,
                    start=start,
                    end=end,
                    label=BREAK_LABEL,
                    conn=conn,
                )
                continue
            if subject_index >= len(subjects):
                continue
            subject = subjects[subject_index]
            db.add_block(
                timetable.id,
                kind="study",
                color=subject.color,
                start=start,
                end=end,
                subject_id=subject.id,
                label=subject.name,
                conn=conn,
            )

        if not db.list_fixed_events(user_id, conn=conn):
            label, start, end, color = DEFAULT_FIXED_EVENT
            db.add_fixed_event(user_id, label, start, end, color, conn=conn)

    logger.info("seeded default timetable user_id=%s timetable_id=%s", user_id, timetable.id)
    return timetable.id


# ---------------------------------------------------------------------------
# blocks
# ---------------------------------------------------------------------------


def list_blocks(db: Database, user_id: int, timetable_id: int) -> list[TimetableBlock]:
    _require_timetable(db, user_id, timetable_id)
    return sorted(db.list_blocks(timetable_id), key=_start_minutes)


def _insert_block(
    db: Database,
    conn: sqlite3.Connection,
    user_id: int,
    timetable_id: int,
    kind: str,
    start: str,
    end: str,
    subject_id: int | None,
    label: str | None,
    color: str | None,
    scope: DayScope,
    locked: bool,
) -> TimetableBlock:
    _require_timetable(db, user_id, timetable_id, conn=conn)

    conflict = find_conflict(db.list_blocks(timetable_id, conn=conn), start, end, scope)
    if conflict is not None:
        raise ConflictError("Block overlaps with existing block")

    subject = _require_subject(db, user_id, subject_id, conn=conn) if subject_id is not None else None
    if color is None and subject is not None:
        color = subject.color
    if label is None:
        if kind == "break":
            label = BREAK_LABEL
        elif kind == "study" and subject is not None:
            label = subject.name

    block = db.add_block(
        timetable_id,
        kind=kind,
        color=color or DEFAULT_BLOCK_COLOR,
        start=start,
        end=end,
        subject_id=subject_id,
        label=label,
        day_of_week=scope.day,
        locked=locked,
        conn=conn,
    )
    logger.info(
        "created block user_id=%s timetable_id=%s block_id=%s window=%s-%s day=%s",
        user_id,
        timetable_id,
        block.id,
        start,
        end,
        scope.day or "any",
    )
    return block


def create_block(
    db: Database,
    user_id: int,
    timetable_id: int,
    kind: str,
    start: str,
    end: str,
    subject_id: int | None = None,
    label: str | None = None,
    color: str | None = None,
    day_of_week: str | None = None,
    locked: bool = False,
) -> TimetableBlock:
    _require_kind(kind)
    scope = DayScope.from_optional(day_of_week)
    snapped_start, snapped_end = _snap_window(start, end)
    if color is not None:
        color = require_color(color)
    with db.transaction() as conn:
        return _insert_block(
            db, conn, user_id, timetable_id, kind, snapped_start, snapped_end,
            subject_id, label, color, scope, locked,
        )


def create_block_with_optional_new_subject(
    db: Database,
    user_id: int,
    timetable_id: int,
    kind: str,
    start: str,
    end: str,
    subject_id: int | None = None,
    new_subject_name: str | None = None,
    new_subject_color: str | None = None,
    label: str | None = None,
    color: str | None = None,
    day_of_week: str | None = None,
) -> tuple[TimetableBlock, Subject | None]:
    """Create a block, first creating its subject when a new name is given.

    Both inserts share one transaction: a conflicting block leaves no
    orphaned subject behind.
    """
    _require_kind(kind)
    scope = DayScope.from_optional(day_of_week)
    snapped_start, snapped_end = _snap_window(start, end)
    if color is not None:
        color = require_color(color)

    new_subject: Subject | None = None
    with db.transaction() as conn:
        if new_subject_name is not None:
            if subject_id is not None:
                raise ValidationError("Pass either subject_id or new_subject_name, not both")
            new_subject = db.add_subject(
                user_id,
                require_text(new_subject_name, "subject name", max_length=80),
                require_color(new_subject_color or DEFAULT_BLOCK_COLOR),
                conn=conn,
            )
            subject_id = new_subject.id
        block = _insert_block(
            db, conn, user_id, timetable_id, kind, snapped_start, snapped_end,
            subject_id, label, color, scope, False,
        )
    return block, new_subject


def update_block(db: Database, user_id: int, block_id: int, **changes: Any) -> TimetableBlock:
    unknown = set(changes) - BLOCK_FIELDS
    if unknown:
        raise ValidationError(f"Unknown block fields: {', '.join(sorted(unknown))}")

    with db.transaction() as conn:
        block = db.get_block(block_id, conn=conn)
        if block is None or db.get_block_owner(block_id, conn=conn) != user_id:
            raise NotFoundError("Block not found")

        updates: dict[str, Any] = {}
        if "kind" in changes:
            updates["kind"] = _require_kind(changes["kind"])
        if changes.get("start") is not None:
            updates["start"] = snap_time(changes["start"])
        if changes.get("end") is not None:
            updates["end"] = snap_time(changes["end"])
        if "day_of_week" in changes:
            updates["day_of_week"] = DayScope.from_optional(changes["day_of_week"]).day

        if {"start", "end", "day_of_week"} & set(changes):
            new_start = updates.get("start", block.start)
            new_end = updates.get("end", block.end)
            new_scope = DayScope(updates["day_of_week"]) if "day_of_week" in updates else block.day_scope
            if parse_time(new_end) <= parse_time(new_start):
                raise ValidationError("End time must be after start time")
            others = db.list_blocks(block.timetable_id, conn=conn)
            if find_conflict(others, new_start, new_end, new_scope, exclude_id=block_id) is not None:
                raise ConflictError("Block would overlap with existing block")

        subject: Subject | None = None
        if "subject_id" in changes:
            if changes["subject_id"] is not None:
                subject = _require_subject(db, user_id, int(changes["subject_id"]), conn=conn)
            updates["subject_id"] = subject.id if subject else None
        if "label" in changes:
            updates["label"] = changes["label"]
        if changes.get("color") is not None:
            updates["color"] = require_color(changes["color"])
        elif subject is not None:
            updates["color"] = subject.color
        if "locked" in changes:
            updates["locked"] = bool(changes["locked"])

        db.update_block_fields(block_id, updates, conn=conn)
        updated = db.get_block(block_id, conn=conn)
    assert updated is not None
    logger.info("updated block user_id=%s block_id=%s fields=%s", user_id, block_id, sorted(updates))
    return updated


def delete_block(db: Database, user_id: int, block_id: int) -> None:
    if db.get_block_owner(block_id) != user_id:
        raise NotFoundError("Block not found")
    db.delete_block(block_id)
    logger.info("deleted block user_id=%s block_id=%s", user_id, block_id)


def drag_block_window(
    original_start: int,
    original_end: int,
    delta_minutes: float,
    day_start: int,
    day_end: int,
    handle: str | None = None,
) -> tuple[int, int]:
    """Compute a block's new window after dragging or resizing it.

    ``handle`` is ``"top"`` or ``"bottom"`` for a resize, ``None`` to move the
    whole block. Blocks stay inside the day and keep at least five minutes.
    """
    delta = snap_to_five_minutes(delta_minutes)
    new_start, new_end = original_start, original_end

    if handle == "top":
        new_start = max(day_start, original_start + delta)
        new_start = min(new_start, original_end - SNAP_MINUTES)
    elif handle == "bottom":
        new_end = min(day_end, original_end + delta)
        new_end = max(new_end, original_start + SNAP_MINUTES)
    elif handle is None:
        duration = original_end - original_start
        new_start = max(day_start, min(day_end - duration, original_start + delta))
        new_end = new_start + duration
    else:
        raise ValidationError(f"Invalid resize handle '{handle}'")
    return new_start, new_end


def apply_block_drag(
    db: Database,
    user_id: int,
    block_id: int,
    delta_minutes: float,
    handle: str | None = None,
) -> TimetableBlock:
    block = db.get_block(block_id)
    if block is None or db.get_block_owner(block_id) != user_id:
        raise NotFoundError("Block not found")
    if block.locked:
        raise ConflictError("Block is locked")
    timetable = _require_timetable(db, user_id, block.timetable_id)

    new_start, new_end = drag_block_window(
        parse_time(block.start),
        parse_time(block.end),
        delta_minutes,
        parse_time(timetable.day_start),
        parse_time(timetable.day_end),
        handle=handle,
    )
    return update_block(db, user_id, block_id, start=format_time(new_start), end=format_time(new_end))


# ---------------------------------------------------------------------------
# fixed events
# ---------------------------------------------------------------------------


def list_fixed_events(db: Database, user_id: int) -> list[FixedEvent]:
    return sorted(db.list_fixed_events(user_id), key=_start_minutes)


def upsert_fixed_event(
    db: Database,
    user_id: int,
    label: str,
    start: str,
    end: str,
    color: str | None = None,
    day_of_week: str | None = None,
    event_id: int | None = None,
) -> FixedEvent:
    # fixed events are never checked for overlap
    cleaned_label = require_text(label, "label")
    snapped_start, snapped_end = _snap_window(start, end)
    resolved_color = require_color(color) if color else DEFAULT_EVENT_COLOR
    scope = DayScope.from_optional(day_of_week)

    if event_id is not None:
        with db.transaction() as conn:
            existing = db.get_fixed_event(event_id, conn=conn)
            if existing is None or existing.user_id != user_id:
                raise NotFoundError("Fixed event not found")
            return db.replace_fixed_event(
                event_id, cleaned_label, snapped_start, snapped_end, resolved_color, scope.day, conn=conn
            )
    return db.add_fixed_event(user_id, cleaned_label, snapped_start, snapped_end, resolved_color, scope.day)


def delete_fixed_event(db: Database, user_id: int, event_id: int) -> None:
    if not db.delete_fixed_event(user_id, event_id):
        raise NotFoundError("Fixed event not found")


# ---------------------------------------------------------------------------
# preview
# ---------------------------------------------------------------------------


def rotation_subject_id(weak_subject_ids: tuple[int, ...] | list[int], today: date) -> int | None:
    if not weak_subject_ids:
        return None
    return weak_subject_ids[day_of_year(today) % len(weak_subject_ids)]


def _block_item(block: TimetableBlock) -> PreviewItem:
    return PreviewItem(
        item_type="block",
        id=block.id,
        kind=block.kind,
        subject_id=block.subject_id,
        label=block.label,
        color=block.color,
        start=block.start,
        end=block.end,
        day_of_week=block.day_scope.day,
    )


def _event_item(event: FixedEvent) -> PreviewItem:
    return PreviewItem(
        item_type="event",
        id=event.id,
        kind=None,
        subject_id=None,
        label=event.label,
        color=event.color,
        start=event.start,
        end=event.end,
        day_of_week=event.day_scope.day,
    )


def preview_for_today(
    db: Database,
    user_id: int,
    timetable_id: int,
    today: date,
    day_of_week: str | None = None,
) -> list[PreviewItem]:
    """Blocks and fixed events for ``today`` as one list sorted by start.

    With rotation enabled the latest study block shows the weak subject
    picked by day of year. Only the returned items change; nothing is
    written back.
    """
    timetable = _require_timetable(db, user_id, timetable_id)
    blocks = db.list_blocks(timetable_id)
    events = db.list_fixed_events(user_id)
    if day_of_week is not None:
        day = DayScope.specific(day_of_week).day
        assert day is not None
        blocks = [b for b in blocks if b.day_scope.applies_on(day)]
        events = [e for e in events if e.day_scope.applies_on(day)]

    items = [_block_item(b) for b in blocks]

    weak_id = rotation_subject_id(timetable.weak_subject_ids, today) if timetable.rotate_last_block else None
    study_items = [item for item in items if item.kind == "study"]
    if weak_id is not None and study_items:
        last_study = max(study_items, key=_start_minutes)
        weak_subject = db.get_subject(weak_id)
        if weak_subject is not None:
            rotated = replace(
                last_study,
                subject_id=weak_subject.id,
                label=f"{weak_subject.name}{ROTATION_SUFFIX}",
                color=weak_subject.color,
                rotated=True,
            )
            items = [rotated if item.id == last_study.id else item for item in items]

    items.extend(_event_item(e) for e in events)
    return sorted(items, key=_start_minutes)

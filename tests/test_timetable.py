from __future__ import annotations

from datetime import date

import pytest

from study_tracker.db import Database
from study_tracker.errors import ConflictError, NotFoundError, ValidationError
from study_tracker.service import create_subject, list_subjects
from study_tracker.timetable import (
    apply_block_drag,
    create_block,
    create_block_with_optional_new_subject,
    delete_block,
    delete_fixed_event,
    drag_block_window,
    ensure_default_timetable,
    list_blocks,
    list_fixed_events,
    preview_for_today,
    rotation_subject_id,
    update_block,
    upsert_fixed_event,
    upsert_timetable,
)


def _setup(tmp_path) -> tuple[Database, int]:
    db = Database(tmp_path / "app.db")
    timetable = upsert_timetable(db, 1)
    return db, timetable.id


def test_default_timetable_is_seeded_once(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    tid = ensure_default_timetable(db, 1)
    assert ensure_default_timetable(db, 1) == tid

    subjects = list_subjects(db, 1)
    assert [(s.name, s.color) for s in subjects] == [
        ("Mathematics", "#3b82f6"),
        ("Physics", "#10b981"),
        ("English", "#f59e0b"),
    ]

    blocks = list_blocks(db, 1, tid)
    assert [(b.label, b.start, b.end) for b in blocks] == [
        ("Mathematics", "18:30", "20:00"),
        ("Break", "20:00", "20:30"),
        ("Physics", "20:30", "22:00"),
        ("English", "22:00", "23:30"),
    ]
    assert blocks[1].kind == "break"
    assert blocks[1].color == "#6b7280"

    events = list_fixed_events(db, 1)
    assert [(e.label, e.start, e.end, e.color) for e in events] == [("Isha Namaz", "20:00", "20:15", "#8b5cf6")]


def test_default_timetable_reuses_existing_subjects(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    bio = create_subject(db, 1, "Biology", "#22c55e")
    tid = ensure_default_timetable(db, 1)

    assert [s.name for s in list_subjects(db, 1)] == ["Biology"]
    study = [b for b in list_blocks(db, 1, tid) if b.kind == "study"]
    # only one subject available for the three study slots
    assert [(b.subject_id, b.start) for b in study] == [(bio.id, "18:30")]


def test_overlapping_block_is_rejected(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    create_block(db, 1, tid, "study", "09:00", "10:00")

    with pytest.raises(ConflictError, match="Block overlaps with existing block"):
        create_block(db, 1, tid, "study", "09:30", "10:30")
    assert len(list_blocks(db, 1, tid)) == 1


def test_touching_blocks_are_allowed(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    create_block(db, 1, tid, "study", "09:00", "10:00")
    create_block(db, 1, tid, "break", "10:00", "10:30")

    blocks = list_blocks(db, 1, tid)
    assert [(b.start, b.end) for b in blocks] == [("09:00", "10:00"), ("10:00", "10:30")]
    assert blocks[1].label == "Break"


def test_blocks_on_different_days_do_not_collide(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    create_block(db, 1, tid, "study", "09:00", "10:00", day_of_week="mon")
    create_block(db, 1, tid, "study", "09:00", "10:00", day_of_week="tue")

    # an unscoped block collides with every scoped one
    with pytest.raises(ConflictError):
        create_block(db, 1, tid, "study", "09:30", "10:30")


def test_scoped_block_collides_with_unscoped_block(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    create_block(db, 1, tid, "study", "09:00", "10:00")
    with pytest.raises(ConflictError):
        create_block(db, 1, tid, "study", "09:30", "10:30", day_of_week="wed")


def test_block_times_are_snapped(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    block = create_block(db, 1, tid, "study", "09:02", "10:03")
    assert (block.start, block.end) == ("09:00", "10:05")


def test_block_window_must_be_positive(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    with pytest.raises(ValidationError):
        create_block(db, 1, tid, "study", "10:00", "09:00")
    with pytest.raises(ValidationError):
        create_block(db, 1, tid, "study", "10:01", "10:02")


def test_block_takes_subject_color_and_name(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    math = create_subject(db, 1, "Mathematics", "#3B82F6")
    block = create_block(db, 1, tid, "study", "09:00", "10:00", subject_id=math.id)
    assert block.color == "#3b82f6"
    assert block.label == "Mathematics"

    plain = create_block(db, 1, tid, "study", "11:00", "12:00")
    assert plain.color == "#6b7280"
    assert plain.label is None


def test_block_operations_check_ownership(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    block = create_block(db, 1, tid, "study", "09:00", "10:00")

    with pytest.raises(NotFoundError):
        create_block(db, 2, tid, "study", "11:00", "12:00")
    with pytest.raises(NotFoundError):
        update_block(db, 2, block.id, label="mine now")
    with pytest.raises(NotFoundError):
        delete_block(db, 2, block.id)

    other_subject = create_subject(db, 2, "Chemistry", "#ef4444")
    with pytest.raises(NotFoundError):
        create_block(db, 1, tid, "study", "11:00", "12:00", subject_id=other_subject.id)


def test_update_block_excludes_itself_from_overlap(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    block = create_block(db, 1, tid, "study", "09:00", "10:00")
    create_block(db, 1, tid, "study", "11:00", "12:00")

    moved = update_block(db, 1, block.id, start="09:30", end="10:30")
    assert (moved.start, moved.end) == ("09:30", "10:30")

    with pytest.raises(ConflictError, match="Block would overlap with existing block"):
        update_block(db, 1, block.id, end="11:30")


def test_update_block_day_change_is_checked(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    block = create_block(db, 1, tid, "study", "09:00", "10:00", day_of_week="mon")
    create_block(db, 1, tid, "study", "09:00", "10:00", day_of_week="tue")

    with pytest.raises(ConflictError):
        update_block(db, 1, block.id, day_of_week="tue")
    with pytest.raises(ConflictError):
        update_block(db, 1, block.id, day_of_week=None)

    moved = update_block(db, 1, block.id, day_of_week="fri")
    assert moved.day_scope.day == "fri"


def test_update_block_subject_refreshes_color(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    physics = create_subject(db, 1, "Physics", "#10b981")
    block = create_block(db, 1, tid, "study", "09:00", "10:00")

    updated = update_block(db, 1, block.id, subject_id=physics.id)
    assert updated.subject_id == physics.id
    assert updated.color == "#10b981"

    explicit = update_block(db, 1, block.id, subject_id=physics.id, color="#000000")
    assert explicit.color == "#000000"


def test_delete_block(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    block = create_block(db, 1, tid, "study", "09:00", "10:00")
    delete_block(db, 1, block.id)
    assert list_blocks(db, 1, tid) == []
    with pytest.raises(NotFoundError):
        delete_block(db, 1, block.id)


def test_new_subject_is_rolled_back_when_block_conflicts(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    create_block(db, 1, tid, "study", "09:00", "10:00")

    with pytest.raises(ConflictError):
        create_block_with_optional_new_subject(
            db, 1, tid, "study", "09:30", "10:30",
            new_subject_name="Chemistry",
            new_subject_color="#ef4444",
        )
    assert list_subjects(db, 1) == []

    block, subject = create_block_with_optional_new_subject(
        db, 1, tid, "study", "10:00", "11:00",
        new_subject_name="Chemistry",
        new_subject_color="#ef4444",
    )
    assert subject is not None
    assert block.subject_id == subject.id
    assert block.label == "Chemistry"
    assert block.color == "#ef4444"


def test_fixed_events_skip_overlap_checks(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    create_block(db, 1, tid, "study", "20:00", "21:00")

    first = upsert_fixed_event(db, 1, "Dinner", "20:00", "20:30")
    second = upsert_fixed_event(db, 1, "Call", "20:10", "20:40", color="#111111", day_of_week="sat")
    assert first.color == "#8b5cf6"
    assert second.day_scope.day == "sat"

    edited = upsert_fixed_event(db, 1, "Late dinner", "20:32", "21:00", event_id=first.id)
    assert edited.id == first.id
    assert (edited.label, edited.start) == ("Late dinner", "20:30")
    assert [e.label for e in list_fixed_events(db, 1)] == ["Call", "Late dinner"]

    with pytest.raises(NotFoundError):
        upsert_fixed_event(db, 2, "Stolen", "08:00", "09:00", event_id=first.id)
    with pytest.raises(NotFoundError):
        delete_fixed_event(db, 2, first.id)
    delete_fixed_event(db, 1, first.id)
    assert [e.label for e in list_fixed_events(db, 1)] == ["Call"]


def test_editing_deleted_fixed_event_is_not_found(tmp_path, monkeypatch) -> None:
    db, _ = _setup(tmp_path)
    event = upsert_fixed_event(db, 1, "Dinner", "20:00", "20:30")

    seen: list[object] = []
    original = db.replace_fixed_event

    def replace(*args, **kwargs):
        seen.append(kwargs.get("conn"))
        return original(*args, **kwargs)

    monkeypatch.setattr(db, "replace_fixed_event", replace)
    upsert_fixed_event(db, 1, "Supper", "20:00", "20:30", event_id=event.id)
    # ownership check and write share one transaction
    assert seen and seen[0] is not None

    delete_fixed_event(db, 1, event.id)
    with pytest.raises(NotFoundError):
        upsert_fixed_event(db, 1, "Supper", "20:00", "20:30", event_id=event.id)
    assert list_fixed_events(db, 1) == []


def test_upsert_timetable_patches_existing(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    math = create_subject(db, 1, "Mathematics", "#3b82f6")

    updated = upsert_timetable(db, 1, title="Exam prep", weak_subject_ids=[math.id])
    assert updated.id == tid
    assert updated.title == "Exam prep"
    assert updated.weak_subject_ids == (math.id,)

    with pytest.raises(ValidationError):
        upsert_timetable(db, 1, tid, day_start="22:00", day_end="08:00")
    with pytest.raises(NotFoundError):
        upsert_timetable(db, 2, tid, title="Not yours")
    with pytest.raises(NotFoundError):
        upsert_timetable(db, 1, tid, weak_subject_ids=[999])


def test_rotation_subject_follows_day_of_year() -> None:
    # 2026-02-09 is day 40
    assert rotation_subject_id((11, 22, 33), date(2026, 2, 9)) == 22
    assert rotation_subject_id((11, 22, 33), date(2026, 2, 10)) == 33
    assert rotation_subject_id((), date(2026, 2, 9)) is None


def test_rotation_cycles_through_every_weak_subject() -> None:
    # 2026-02-08 is day 39 of the year, a multiple of three
    days = [date(2026, 2, 8), date(2026, 2, 9), date(2026, 2, 10)]
    assert [rotation_subject_id((11, 22, 33), d) for d in days] == [11, 22, 33]


def test_preview_rotates_last_study_block_without_persisting(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    math = create_subject(db, 1, "Mathematics", "#3b82f6")
    physics = create_subject(db, 1, "Physics", "#10b981")
    english = create_subject(db, 1, "English", "#f59e0b")
    upsert_timetable(db, 1, tid, weak_subject_ids=[english.id, math.id])

    create_block(db, 1, tid, "study", "22:00", "23:30", subject_id=physics.id)
    create_block(db, 1, tid, "study", "18:30", "20:00", subject_id=math.id)
    create_block(db, 1, tid, "break", "20:00", "20:30")
    upsert_fixed_event(db, 1, "Isha Namaz", "20:00", "20:15")

    items = preview_for_today(db, 1, tid, date(2026, 2, 9))
    assert [(i.item_type, i.start) for i in items] == [
        ("block", "18:30"),
        ("block", "20:00"),
        ("event", "20:00"),
        ("block", "22:00"),
    ]
    last = items[-1]
    assert last.rotated is True
    assert last.subject_id == english.id
    assert last.label == "English (Rotation)"
    assert last.color == "#f59e0b"

    stored = [b for b in list_blocks(db, 1, tid) if b.start == "22:00"][0]
    assert stored.subject_id == physics.id
    assert stored.label == "Physics"


def test_preview_without_rotation(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    math = create_subject(db, 1, "Mathematics", "#3b82f6")
    upsert_timetable(db, 1, tid, weak_subject_ids=[math.id], rotate_last_block=False)
    create_block(db, 1, tid, "study", "18:30", "20:00")

    items = preview_for_today(db, 1, tid, date(2026, 2, 9))
    assert [i.rotated for i in items] == [False]
    assert items[0].subject_id is None


def test_preview_day_filter(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    create_block(db, 1, tid, "study", "09:00", "10:00", day_of_week="mon")
    create_block(db, 1, tid, "study", "09:00", "10:00", day_of_week="tue")
    upsert_fixed_event(db, 1, "Gym", "07:00", "08:00", day_of_week="tue")
    upsert_fixed_event(db, 1, "Prayer", "13:00", "13:15")

    monday = preview_for_today(db, 1, tid, date(2026, 2, 9), day_of_week="mon")
    assert [(i.label, i.day_of_week) for i in monday] == [(None, "mon"), ("Prayer", None)]
    assert len(preview_for_today(db, 1, tid, date(2026, 2, 9))) == 4


def test_drag_window_moves_and_clamps() -> None:
    day_start, day_end = 390, 1440
    assert drag_block_window(600, 660, 32, day_start, day_end) == (630, 690)
    assert drag_block_window(600, 660, 2000, day_start, day_end) == (1380, 1440)
    assert drag_block_window(600, 660, -2000, day_start, day_end) == (390, 450)


def test_drag_window_resizes_from_handles() -> None:
    day_start, day_end = 390, 1440
    assert drag_block_window(600, 660, -30, day_start, day_end, handle="top") == (570, 660)
    assert drag_block_window(600, 660, 500, day_start, day_end, handle="top") == (655, 660)
    assert drag_block_window(600, 660, -1000, day_start, day_end, handle="top") == (390, 660)
    assert drag_block_window(600, 660, 15, day_start, day_end, handle="bottom") == (600, 675)
    assert drag_block_window(600, 660, -500, day_start, day_end, handle="bottom") == (600, 605)
    with pytest.raises(ValidationError):
        drag_block_window(600, 660, 5, day_start, day_end, handle="middle")


def test_apply_drag_respects_lock_and_overlaps(tmp_path) -> None:
    db, tid = _setup(tmp_path)
    block = create_block(db, 1, tid, "study", "09:00", "10:00")
    create_block(db, 1, tid, "study", "10:30", "11:00")

    moved = apply_block_drag(db, 1, block.id, 15)
    assert (moved.start, moved.end) == ("09:15", "10:15")

    with pytest.raises(ConflictError):
        apply_block_drag(db, 1, block.id, 30)

    update_block(db, 1, block.id, locked=True)
    with pytest.raises(ConflictError, match="locked"):
        apply_block_drag(db, 1, block.id, -15)

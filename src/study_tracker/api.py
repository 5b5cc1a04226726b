from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Literal

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from study_tracker import service, stats, timetable
from study_tracker.ai_proxy import chat
from study_tracker.config import Settings, load_settings
from study_tracker.db import Database, FixedEvent, TimetableBlock
from study_tracker.errors import (
    AiProxyError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    StudyTrackerError,
    ValidationError,
)
from study_tracker.logging_setup import setup_logging
from study_tracker.motivation import daily_motivation
from study_tracker.time_utils import now_local, parse_date

Clock = Callable[[], datetime]

_STATUS_BY_ERROR: tuple[tuple[type[StudyTrackerError], int], ...] = (
    (AuthenticationError, 401),
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def _require_user(request: Request) -> int:
    raw = (request.headers.get("x-user-id") or "").strip()
    if not raw:
        raise AuthenticationError("Not authenticated")
    try:
        return int(raw)
    except ValueError as exc:
        raise AuthenticationError("Invalid user id") from exc


def _block_json(block: TimetableBlock) -> dict[str, Any]:
    data = asdict(block)
    data["day_of_week"] = data.pop("day_scope")["day"]
    return data


def _event_json(event: FixedEvent) -> dict[str, Any]:
    data = asdict(event)
    data["day_of_week"] = data.pop("day_scope")["day"]
    return data


class SessionRequest(BaseModel):
    duration: int
    session_type: Literal["focus", "break"] = Field(alias="type")
    completed: bool = True
    subject: str | None = None
    notes: str | None = None

    model_config = {"populate_by_name": True}


class ManualSessionRequest(SessionRequest):
    date: str


class ProfileRequest(BaseModel):
    name: str | None = None
    email: str | None = None


class SettingsRequest(BaseModel):
    focus_duration: int | None = None
    break_duration: int | None = None


class DailyGoalRequest(BaseModel):
    target_sessions: int
    target_minutes: int


class LifeGoalRequest(BaseModel):
    title: str
    description: str | None = None
    target_date: str | None = None


class LifeGoalUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    target_date: str | None = None


class CompleteRequest(BaseModel):
    completed: bool = True


class SubjectRequest(BaseModel):
    name: str
    color: str


class TimetableRequest(BaseModel):
    timetable_id: int | None = None
    title: str | None = None
    day_start: str | None = None
    day_end: str | None = None
    break_default_minutes: int | None = None
    rotate_last_block: bool | None = None
    weak_subject_ids: list[int] | None = None


class BlockRequest(BaseModel):
    kind: Literal["study", "break", "fixed"]
    start: str
    end: str
    subject_id: int | None = None
    new_subject_name: str | None = None
    new_subject_color: str | None = None
    label: str | None = None
    color: str | None = None
    day_of_week: str | None = None


class BlockUpdateRequest(BaseModel):
    kind: Literal["study", "break", "fixed"] | None = None
    subject_id: int | None = None
    label: str | None = None
    color: str | None = None
    start: str | None = None
    end: str | None = None
    day_of_week: str | None = None
    locked: bool | None = None


class DragRequest(BaseModel):
    delta_minutes: float
    handle: Literal["top", "bottom"] | None = None


class FixedEventRequest(BaseModel):
    event_id: int | None = None
    label: str
    start: str
    end: str
    color: str | None = None
    day_of_week: str | None = None


class ChatMessage(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage]
    model: str | None = None
    max_tokens: int | None = None


def build_app(
    db: Database,
    settings: Settings,
    clock: Clock | None = None,
    http_client: httpx.Client | None = None,
) -> FastAPI:
    app = FastAPI(title="Study Tracker", version="1.0.0")

    def now() -> datetime:
        return clock() if clock else now_local(settings.tz)

    def _day(raw: str | None) -> date:
        return parse_date(raw) if raw else now().date()

    @app.exception_handler(StudyTrackerError)
    async def handle_domain_error(request: Request, exc: StudyTrackerError) -> JSONResponse:
        status = 500
        if isinstance(exc, AiProxyError):
            status = exc.status_code
        else:
            for error_type, code in _STATUS_BY_ERROR:
                if isinstance(exc, error_type):
                    status = code
                    break
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    # -- user & settings ----------------------------------------------------

    @app.get("/api/me")
    def api_me(request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        return {"user": asdict(service.get_or_create_user(db, user_id, now()))}

    @app.patch("/api/me")
    def api_update_profile(request: Request, payload: ProfileRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        user = service.update_user_profile(db, user_id, now(), name=payload.name, email=payload.email)
        return {"user": asdict(user)}

    @app.patch("/api/me/settings")
    def api_update_settings(request: Request, payload: SettingsRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        user = service.update_user_settings(
            db,
            user_id,
            now(),
            focus_duration=payload.focus_duration,
            break_duration=payload.break_duration,
        )
        return {"user": asdict(user)}

    # -- sessions -----------------------------------------------------------

    @app.post("/api/sessions")
    def api_record_session(request: Request, payload: SessionRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        outcome = service.record_session(
            db,
            user_id,
            duration=payload.duration,
            session_type=payload.session_type,
            completed=payload.completed,
            now=now(),
            subject=payload.subject,
            notes=payload.notes,
        )
        return asdict(outcome)

    @app.post("/api/sessions/manual")
    def api_manual_session(request: Request, payload: ManualSessionRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        outcome = service.create_manual_session(
            db,
            user_id,
            duration=payload.duration,
            session_date=payload.date,
            session_type=payload.session_type,
            completed=payload.completed,
            now=now(),
            subject=payload.subject,
            notes=payload.notes,
        )
        return asdict(outcome)

    @app.get("/api/sessions")
    def api_sessions(request: Request, day: str | None = None) -> dict[str, Any]:
        user_id = _require_user(request)
        rows = service.get_sessions_for_date(db, user_id, _day(day))
        return {"sessions": [asdict(s) for s in rows]}

    @app.get("/api/sessions/week")
    def api_weekly_sessions(request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        rows = service.get_weekly_sessions(db, user_id, now().date())
        return {"sessions": [asdict(s) for s in rows]}

    # -- goals --------------------------------------------------------------

    @app.put("/api/goals/daily")
    def api_set_daily_goal(request: Request, payload: DailyGoalRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        goal = service.set_daily_goal(
            db, user_id, payload.target_sessions, payload.target_minutes, now().date()
        )
        return {"goal": asdict(goal)}

    @app.get("/api/goals/daily")
    def api_daily_goal(request: Request, day: str | None = None) -> dict[str, Any]:
        user_id = _require_user(request)
        goal = service.get_daily_goal(db, user_id, _day(day))
        return {"goal": asdict(goal) if goal else None}

    @app.get("/api/life-goals")
    def api_life_goals(request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        return {"goals": [asdict(g) for g in service.list_life_goals(db, user_id)]}

    @app.post("/api/life-goals")
    def api_create_life_goal(request: Request, payload: LifeGoalRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        goal = service.create_life_goal(
            db,
            user_id,
            payload.title,
            now(),
            description=payload.description,
            target_date=payload.target_date,
        )
        return {"goal": asdict(goal)}

    @app.patch("/api/life-goals/{goal_id}")
    def api_update_life_goal(goal_id: int, request: Request, payload: LifeGoalUpdateRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        goal = service.update_life_goal(db, user_id, goal_id, **payload.model_dump(exclude_unset=True))
        return {"goal": asdict(goal)}

    @app.post("/api/life-goals/{goal_id}/complete")
    def api_complete_life_goal(goal_id: int, request: Request, payload: CompleteRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        goal = service.set_life_goal_completed(db, user_id, goal_id, payload.completed)
        return {"goal": asdict(goal)}

    @app.delete("/api/life-goals/{goal_id}")
    def api_delete_life_goal(goal_id: int, request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        service.delete_life_goal(db, user_id, goal_id)
        return {"ok": True}

    # -- subjects -----------------------------------------------------------

    @app.get("/api/subjects")
    def api_subjects(request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        return {"subjects": [asdict(s) for s in service.list_subjects(db, user_id)]}

    @app.post("/api/subjects")
    def api_create_subject(request: Request, payload: SubjectRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        subject = service.create_subject(db, user_id, payload.name, payload.color)
        return {"subject": asdict(subject)}

    # -- timetable ----------------------------------------------------------

    @app.get("/api/timetable")
    def api_timetable(request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        current = timetable.get_user_timetable(db, user_id)
        return {"timetable": asdict(current) if current else None}

    @app.post("/api/timetable/default")
    def api_default_timetable(request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        return {"timetable_id": timetable.ensure_default_timetable(db, user_id)}

    @app.put("/api/timetable")
    def api_upsert_timetable(request: Request, payload: TimetableRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        fields = payload.model_dump(exclude_unset=True)
        timetable_id = fields.pop("timetable_id", None)
        result = timetable.upsert_timetable(db, user_id, timetable_id, **fields)
        return {"timetable": asdict(result)}

    @app.get("/api/timetable/{timetable_id}/blocks")
    def api_blocks(timetable_id: int, request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        return {"blocks": [_block_json(b) for b in timetable.list_blocks(db, user_id, timetable_id)]}

    @app.post("/api/timetable/{timetable_id}/blocks")
    def api_create_block(timetable_id: int, request: Request, payload: BlockRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        block, new_subject = timetable.create_block_with_optional_new_subject(
            db,
            user_id,
            timetable_id,
            kind=payload.kind,
            start=payload.start,
            end=payload.end,
            subject_id=payload.subject_id,
            new_subject_name=payload.new_subject_name,
            new_subject_color=payload.new_subject_color,
            label=payload.label,
            color=payload.color,
            day_of_week=payload.day_of_week,
        )
        return {"block": _block_json(block), "subject": asdict(new_subject) if new_subject else None}

    @app.get("/api/timetable/{timetable_id}/preview")
    def api_preview(timetable_id: int, request: Request, day_of_week: str | None = None) -> dict[str, Any]:
        user_id = _require_user(request)
        items = timetable.preview_for_today(db, user_id, timetable_id, now().date(), day_of_week=day_of_week)
        return {"items": [asdict(item) for item in items]}

    @app.patch("/api/blocks/{block_id}")
    def api_update_block(block_id: int, request: Request, payload: BlockUpdateRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        block = timetable.update_block(db, user_id, block_id, **payload.model_dump(exclude_unset=True))
        return {"block": _block_json(block)}

    @app.post("/api/blocks/{block_id}/drag")
    def api_drag_block(block_id: int, request: Request, payload: DragRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        block = timetable.apply_block_drag(db, user_id, block_id, payload.delta_minutes, handle=payload.handle)
        return {"block": _block_json(block)}

    @app.delete("/api/blocks/{block_id}")
    def api_delete_block(block_id: int, request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        timetable.delete_block(db, user_id, block_id)
        return {"ok": True}

    @app.get("/api/fixed-events")
    def api_fixed_events(request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        return {"events": [_event_json(e) for e in timetable.list_fixed_events(db, user_id)]}

    @app.put("/api/fixed-events")
    def api_upsert_fixed_event(request: Request, payload: FixedEventRequest) -> dict[str, Any]:
        user_id = _require_user(request)
        event = timetable.upsert_fixed_event(
            db,
            user_id,
            label=payload.label,
            start=payload.start,
            end=payload.end,
            color=payload.color,
            day_of_week=payload.day_of_week,
            event_id=payload.event_id,
        )
        return {"event": _event_json(event)}

    @app.delete("/api/fixed-events/{event_id}")
    def api_delete_fixed_event(event_id: int, request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        timetable.delete_fixed_event(db, user_id, event_id)
        return {"ok": True}

    # -- stats & motivation -------------------------------------------------

    @app.get("/api/stats/dashboard")
    def api_dashboard(request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        return asdict(stats.compute_dashboard(db, user_id, now().date()))

    @app.get("/api/stats/ratio")
    def api_ratio(request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        sessions = service.get_sessions_for_date(db, user_id, now().date())
        return asdict(stats.study_break_ratio(sessions))

    @app.get("/api/stats/weekly")
    def api_weekly(request: Request) -> dict[str, Any]:
        user_id = _require_user(request)
        today = now().date()
        return asdict(stats.weekly_insights(service.get_weekly_sessions(db, user_id, today), today))

    @app.get("/api/motivation")
    def api_motivation() -> dict[str, Any]:
        return asdict(daily_motivation(now().date()))

    # -- ai -----------------------------------------------------------------

    @app.post("/api/ai/chat")
    def api_chat(request: Request, payload: ChatRequest) -> dict[str, Any]:
        _require_user(request)
        content = chat(
            [m.model_dump() for m in payload.messages],
            api_key=settings.openrouter_api_key,
            config=settings.ai,
            model=payload.model,
            max_tokens=payload.max_tokens,
            client=http_client,
        )
        return {"content": content}

    return app


def run_api() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    db = Database(settings.database_path)
    app = build_app(db, settings)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)

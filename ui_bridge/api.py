"""
UI bridge API.

Lets a rendering layer (or a test harness) drive the engine over HTTP:
- Read API: the mounted screen's phase snapshot, stored events
- Write API: show a screen, invoke a manual action on the mounted phase

Emits auditable events: ui.action_received / ui.action_applied.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from logging_setup import get_logger, Component as LogComponent
from observability.event_store import event_store
from observability.events import Component as ObsComponent, EventEmitter, Severity
from voice_engine.engine import VoiceEngine, get_engine
from voice_engine.errors import ActionNotAvailable, EngineNotStarted
from voice_engine.phases import SCREENS


router = APIRouter(prefix="/ui", tags=["ui"])
emitter = EventEmitter(ObsComponent.UI_BRIDGE)
logger = get_logger(LogComponent.UI_BRIDGE)

# Screens the bridge may show without a voice flow
PASSIVE_SCREENS = ("settings", "chapters")

# action name -> phase method
ACTIONS = {
    "select": "on_manual_select",
    "skip": "on_skip",
    "switch_to_typing": "on_switch_to_typing",
    "continue": "on_continue",
    "back": "on_back",
}


class ActionRequest(BaseModel):
    value: Optional[Any] = Field(None, description="Selected value for 'select' (language id, name, yes/no, option)")


class ScreenResponse(BaseModel):
    screen: Optional[str] = None
    route: Optional[str] = None
    phase: Optional[Dict[str, Any]] = None


def _new_correlation_id() -> str:
    return f"ui_{int(time.time() * 1000)}"


def _engine() -> VoiceEngine:
    try:
        return get_engine()
    except EngineNotStarted:
        raise HTTPException(status_code=503, detail="engine_not_started")


def _screen_response(engine: VoiceEngine) -> ScreenResponse:
    return ScreenResponse(
        screen=engine.screen,
        route=engine.route,
        phase=engine.phase.snapshot() if engine.phase is not None else None,
    )


@router.get("/screen", response_model=ScreenResponse)
async def get_screen() -> ScreenResponse:
    """Mounted screen and its phase snapshot."""
    return _screen_response(_engine())


@router.post("/screen/{name}", response_model=ScreenResponse)
async def show_screen(name: str) -> ScreenResponse:
    """Unmount the current screen and mount `name`."""
    if name not in SCREENS and name not in PASSIVE_SCREENS:
        raise HTTPException(status_code=404, detail=f"Unknown screen: {name}")
    engine = _engine()
    engine.show(name)
    logger.info("Screen shown via bridge", screen=name)
    return _screen_response(engine)


@router.post("/actions/{action}", response_model=ScreenResponse)
async def invoke_action(action: str, req: Optional[ActionRequest] = None) -> ScreenResponse:
    """
    Invoke a manual action on the mounted phase.

    409 when the phase does not offer the action right now, 400 for an
    invalid value.
    """
    engine = _engine()
    phase = engine.phase
    if phase is None:
        raise HTTPException(status_code=409, detail="no_voice_screen_mounted")

    method_name = ACTIONS.get(action)
    handler = getattr(phase, method_name, None) if method_name else None
    if handler is None:
        raise HTTPException(status_code=404, detail=f"Unknown action: {action}")

    correlation_id = _new_correlation_id()
    emitter.emit(
        "ui.action_received",
        session_id=phase.session_id,
        severity=Severity.INFO,
        correlation_id=correlation_id,
        action=action,
        screen=phase.screen,
    )

    try:
        if action == "select":
            handler((req or ActionRequest()).value)
        else:
            handler()
    except ActionNotAvailable as e:
        _applied(phase.session_id, correlation_id, action, "rejected", Severity.WARN, error_class=type(e).__name__)
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        _applied(phase.session_id, correlation_id, action, "rejected", Severity.WARN, error_class=type(e).__name__)
        raise HTTPException(status_code=400, detail=str(e))

    _applied(phase.session_id, correlation_id, action, "ok", Severity.INFO)
    return _screen_response(engine)


def _applied(session_id: str, correlation_id: str, action: str, result: str, severity: Severity, **kwargs: Any) -> None:
    emitter.emit(
        "ui.action_applied",
        session_id=session_id,
        severity=severity,
        correlation_id=correlation_id,
        action=action,
        result=result,
        **kwargs,
    )


# --- Read API ---


def _parse_since(since: str) -> datetime:
    # Query strings may turn "+" into a space
    cleaned = since.replace(" ", "+").replace("Z", "+00:00")
    parsed = datetime.fromisoformat(cleaned)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@router.get("/events")
async def get_events(
    session_id: Optional[str] = Query(None, description="Filter by screen session"),
    event_type: Optional[str] = Query(None, description="Filter by event_type; a trailing '.' matches a prefix"),
    component: Optional[str] = Query(None, description="Filter by component"),
    correlation_id: Optional[str] = Query(None, description="Filter by turn / command id"),
    since: Optional[str] = Query(None, description="ISO timestamp (inclusive)"),
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Max events to return"),
) -> dict:
    """Query stored events, oldest first."""
    since_dt: Optional[datetime] = None
    if since:
        try:
            since_dt = _parse_since(since)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid since timestamp: {since}")

    events = event_store.query(
        session_id=session_id,
        event_type=event_type,
        component=component,
        correlation_id=correlation_id,
        since=since_dt,
        limit=limit,
    )
    return {
        "events": events,
        "count": len(events),
        "stats": event_store.get_stats(),
    }

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
import redis

from overlay.api.deps import get_session
from overlay.api.models import (
    CommandResponse,
    DialogueRequest,
    DialogueResponse,
    EnterRequest,
    HostTransitionRequest,
    OverlayEventEntry,
    OverlayEventList,
    OverlayStatus,
    TransitionResponse,
)
from overlay.controller import OverlayLifecycleController
from overlay.core.events import EventType
from overlay.core.records import Vector3
from overlay.infra.redis_client import redis_available
from overlay.interception import TransitionInfo
from overlay.session import OverlaySession
from overlay.streams import EventStream, read_recent
from overlay.websocket_hub import hub

router = APIRouter()


def _rejection_reason(controller: OverlayLifecycleController, event_type: EventType) -> str:
    for event in reversed(controller.history):
        if event.type == event_type:
            return str(event.payload.get("reason", "rejected"))
    return "rejected"


def _status(session: OverlaySession) -> OverlayStatus:
    c = session.controller
    pending = c.pending_entry
    return OverlayStatus(
        session_id=session.session_id,
        state=c.state,
        active=c.is_active(),
        scene=session.host.active_scene,
        content_id=c.current_content_id,
        pending_target=pending.target_content_id if pending else None,
        return_context=c.return_context,
        disabled_interactions=list(c.disabled_interactions),
        accepting_input=session.host.control.accepting_input,
    )


@router.websocket("/ws/overlay")
async def overlay_updates_ws(websocket: WebSocket, session: OverlaySession = Depends(get_session)) -> None:
    sid = session.session_id
    await hub.connect(sid, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(sid, websocket)
    except Exception:
        await hub.disconnect(sid, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck(session: OverlaySession = Depends(get_session)) -> dict[str, str]:
    return {"status": "ok", "redis": "up" if redis_available(session.r) else "down"}


@router.get("/overlay", response_model=OverlayStatus)
async def get_overlay_route(session: OverlaySession = Depends(get_session)) -> OverlayStatus:
    return _status(session)


@router.post("/overlay/enter", response_model=CommandResponse, status_code=status.HTTP_202_ACCEPTED)
async def enter_overlay_route(
    payload: EnterRequest,
    session: OverlaySession = Depends(get_session),
) -> CommandResponse:
    c = session.controller
    content_id = payload.content_id or c.settings.default_content_id
    spawn = payload.spawn_position or Vector3.from_tuple(c.settings.default_spawn)

    if not c.request_enter(content_id, spawn, target_content_id=payload.target_content_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_rejection_reason(c, "ENTER_REJECTED"))
    return CommandResponse(accepted=True, state=c.state)


@router.post("/overlay/exit", response_model=CommandResponse, status_code=status.HTTP_202_ACCEPTED)
async def exit_overlay_route(session: OverlaySession = Depends(get_session)) -> CommandResponse:
    c = session.controller
    if not c.request_exit():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_rejection_reason(c, "EXIT_REJECTED"))
    return CommandResponse(accepted=True, state=c.state)


@router.post("/host/transition", response_model=TransitionResponse)
async def host_transition_route(
    payload: HostTransitionRequest,
    session: OverlaySession = Depends(get_session),
) -> TransitionResponse:
    """Debug endpoint: fire a native host transition through the guard."""

    info = session.host.begin_scene_transition(
        TransitionInfo(
            target=payload.target,
            entry_gate=payload.entry_gate,
            origin=payload.origin,
            respawning=payload.respawning,
        )
    )
    return TransitionResponse(
        requested_target=payload.target,
        effective_target=info.target or session.host.active_scene,
        scene=session.host.active_scene,
        state=session.controller.state,
    )


@router.post("/host/death", response_model=TransitionResponse)
async def host_death_route(session: OverlaySession = Depends(get_session)) -> TransitionResponse:
    respawn = str(session.host.store.get("respawn_scene") or "")
    info = session.host.kill_player()
    return TransitionResponse(
        requested_target=respawn,
        effective_target=info.target or session.host.active_scene,
        scene=session.host.active_scene,
        state=session.controller.state,
    )


@router.post("/host/dialogue", response_model=DialogueResponse)
async def host_dialogue_route(
    payload: DialogueRequest,
    session: OverlaySession = Depends(get_session),
) -> DialogueResponse:
    triggered = session.trigger.on_state_entered(payload.state_name)
    return DialogueResponse(triggered=triggered, state=session.controller.state)


@router.post("/host/title", response_model=OverlayStatus)
async def host_title_route(session: OverlaySession = Depends(get_session)) -> OverlayStatus:
    session.host.return_to_title()
    return _status(session)


@router.get("/overlay/events", response_model=OverlayEventList)
async def list_events_route(count: int = 20, session: OverlaySession = Depends(get_session)) -> OverlayEventList:
    """Recent lifecycle events, from the Redis stream when one is attached."""

    stream = EventStream(session_id=session.session_id)
    if session.r is None:
        history = list(session.controller.history)[-count:] if count > 0 else []
        events = [
            OverlayEventEntry(id=str(i), type=e.type, state=e.state, ts=e.ts, fields=e.as_fields())
            for i, e in enumerate(history)
        ]
        return OverlayEventList(stream=stream.key, events=events)

    try:
        entries = read_recent(r=session.r, stream=stream, count=count)
    except redis.RedisError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e

    events = []
    for mid, fields in entries:
        ts = fields.get("ts")
        events.append(
            OverlayEventEntry(
                id=mid,
                type=fields.get("type", ""),
                state=fields.get("state", ""),
                ts=datetime.fromisoformat(ts) if ts else None,
                fields=fields,
            )
        )
    return OverlayEventList(stream=stream.key, events=events)

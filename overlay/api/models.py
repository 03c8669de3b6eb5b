from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from overlay.core.records import OverlayState, ReturnContext, Vector3


class EnterRequest(BaseModel):
    content_id: str | None = Field(default=None, min_length=1)
    spawn_position: Vector3 | None = None
    # Scene the session must arrive at; defaults to content_id.
    target_content_id: str | None = None


class CommandResponse(BaseModel):
    accepted: bool
    state: OverlayState


class OverlayStatus(BaseModel):
    session_id: str
    state: OverlayState
    active: bool
    scene: str
    content_id: str | None = None
    pending_target: str | None = None
    return_context: ReturnContext
    disabled_interactions: list[str] = Field(default_factory=list)
    accepting_input: bool


class HostTransitionRequest(BaseModel):
    target: str = ""
    entry_gate: str = ""
    origin: Literal["host", "death", "dialogue"] = "host"
    respawning: bool = False


class TransitionResponse(BaseModel):
    requested_target: str
    effective_target: str
    scene: str
    state: OverlayState


class DialogueRequest(BaseModel):
    state_name: str = Field(..., min_length=1)


class DialogueResponse(BaseModel):
    triggered: bool
    state: OverlayState


class OverlayEventEntry(BaseModel):
    id: str
    type: str
    state: str
    ts: datetime | None = None
    fields: dict[str, str] = Field(default_factory=dict)


class OverlayEventList(BaseModel):
    stream: str
    events: list[OverlayEventEntry] = Field(default_factory=list)

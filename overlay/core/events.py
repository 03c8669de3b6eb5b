from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal[
    "STATE_CHANGED",
    "ENTER_REJECTED",
    "ENTER_FAILED",
    "CONTENT_ARRIVED",
    "RECONCILE_STEP_FAILED",
    "EXIT_REJECTED",
    "TRANSITION_INTERCEPTED",
    "CLEANUP_DONE",
    "RETURNED",
    "SESSION_RESET",
]


@dataclass(frozen=True, slots=True)
class OverlayEvent:
    type: EventType
    state: str
    payload: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, type: EventType, state: str, payload: dict[str, Any] | None = None) -> "OverlayEvent":
        return OverlayEvent(type=type, state=state, payload=dict(payload or {}), ts=datetime.now(timezone.utc))

    def as_fields(self) -> dict[str, str]:
        """Flatten into string fields for Redis Streams / websocket payloads."""

        fields = {"type": self.type, "state": self.state, "ts": self.ts.isoformat()}
        for k, v in self.payload.items():
            fields[str(k)] = "" if v is None else str(v)
        return fields

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from overlay.host.ports import SessionSnapshotStore


def _now() -> datetime:
    return datetime.now(tz=UTC)


class OverlayState(StrEnum):
    idle = "idle"
    entering = "entering"
    active = "active"
    exiting = "exiting"


class Vector3(BaseModel):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @staticmethod
    def from_tuple(values: tuple[float, float, float] | list[float]) -> "Vector3":
        x, y, z = values
        return Vector3(x=float(x), y=float(y), z=float(z))

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


class ReturnContext(BaseModel):
    """Where the session resumes after leaving the overlay.

    Built in one step by `capture()` and only ever replaced wholesale; a record
    is either fully set with `valid=True` or it is not usable at all.
    """

    return_content_id: str = ""
    return_position: Vector3 = Field(default_factory=Vector3)
    captured_at: datetime | None = None
    valid: bool = False

    @staticmethod
    def empty() -> "ReturnContext":
        return ReturnContext()

    @staticmethod
    def capture(*, content_id: str, position: Vector3) -> "ReturnContext":
        return ReturnContext(
            return_content_id=content_id,
            return_position=position.model_copy(),
            captured_at=_now(),
            valid=True,
        )

    def invalidated(self) -> "ReturnContext":
        return self.model_copy(update={"valid": False})


@dataclass(frozen=True, slots=True)
class PendingEntry:
    """Marks the window between "load requested" and "arrival observed"."""

    target_content_id: str
    pending_flag: bool = True


@dataclass(slots=True)
class SessionFieldSnapshot:
    """Prior values of host session fields frozen for the duration of an overlay."""

    values: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def capture(*, store: "SessionSnapshotStore", fields: tuple[str, ...]) -> "SessionFieldSnapshot":
        return SessionFieldSnapshot(values={name: store.get(name) for name in fields})

    def restore(self, *, store: "SessionSnapshotStore") -> None:
        for name, value in self.values.items():
            store.set(name, value)

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(self.values)

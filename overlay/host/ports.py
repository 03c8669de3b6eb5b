from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from overlay.core.records import Vector3
from overlay.guard import HostEventGuard
from overlay.interception import TransitionInfo

# (old scene, new scene)
SceneListener = Callable[[str, str], None]


@dataclass(frozen=True, slots=True)
class LoadResult:
    status: Literal["ready", "failed"]
    handle: str | None = None
    reason: str = ""

    @staticmethod
    def ready(handle: str) -> "LoadResult":
        return LoadResult(status="ready", handle=handle)

    @staticmethod
    def failed(reason: str) -> "LoadResult":
        return LoadResult(status="failed", reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == "ready"


class ContentLoader(Protocol):
    async def load(self, content_id: str) -> LoadResult:  # pragma: no cover
        """Make the content's root objects resolvable; returns the existing handle if resident."""
        ...

    def unload(self, handle: str) -> None:  # pragma: no cover
        ...


class SessionSnapshotStore(Protocol):
    def get(self, field_id: str) -> Any:  # pragma: no cover
        ...

    def set(self, field_id: str, value: Any) -> None:  # pragma: no cover
        ...


class ControlSurface(Protocol):
    def suspend_control(self) -> None:  # pragma: no cover
        ...

    def resume_control(self) -> None:  # pragma: no cover
        ...


class PlayerAdapter(Protocol):
    @property
    def position(self) -> Vector3:  # pragma: no cover
        ...

    def has_animator(self) -> bool:  # pragma: no cover
        ...

    def play_animation(self, clip: str) -> None:  # pragma: no cover
        ...

    def scene_init(self, spawn: Vector3) -> None:  # pragma: no cover
        ...


class AudioRouting(Protocol):
    def host_mixers(self) -> dict[str, str | None]:  # pragma: no cover
        """Host mixer name -> its output group (None means the master bus)."""
        ...

    def content_mixers(self) -> list[str]:  # pragma: no cover
        """Mixers referenced by the loaded content that the host does not own."""
        ...

    def graft(self, content_mixer: str, output_group: str | None) -> None:  # pragma: no cover
        ...


class CameraAdapter(Protocol):
    def snap_to(self, position: Vector3) -> None:  # pragma: no cover
        ...


class InteractionRegistry(Protocol):
    def content_interactions(self) -> list[str]:  # pragma: no cover
        ...

    def deactivate(self, handle: str) -> None:  # pragma: no cover
        ...

    def reactivate(self, handle: str) -> None:  # pragma: no cover
        ...


class ScreenFader(Protocol):
    def fade_out(self) -> None:  # pragma: no cover
        ...

    def fade_in(self) -> None:  # pragma: no cover
        ...


class PersistentObjectSpace(Protocol):
    def root_names(self) -> list[str]:  # pragma: no cover
        ...

    def destroy(self, name: str) -> None:  # pragma: no cover
        ...


class RendererSwitch(Protocol):
    def set_renderer_enabled(self, path: str, enabled: bool) -> bool:  # pragma: no cover
        """Returns False when nothing lives at `path`."""
        ...


class SceneMetadata(Protocol):
    def ensure_memory_zone(self) -> bool:  # pragma: no cover
        """Returns True when an existing scene manager was reused."""
        ...


class Hud(Protocol):
    def show(self) -> None:  # pragma: no cover
        ...


class HostSession(Protocol):
    """Everything the overlay controller needs from the running host."""

    guard: HostEventGuard
    loader: ContentLoader
    store: SessionSnapshotStore
    control: ControlSurface
    audio: AudioRouting
    camera: CameraAdapter
    interactions: InteractionRegistry
    fader: ScreenFader
    persistent: PersistentObjectSpace
    renderers: RendererSwitch
    scene_metadata: SceneMetadata
    hud: Hud

    @property
    def player(self) -> PlayerAdapter | None:  # pragma: no cover
        ...

    @property
    def active_scene(self) -> str:  # pragma: no cover
        ...

    @property
    def has_finished_entering_scene(self) -> bool:  # pragma: no cover
        ...

    def begin_scene_transition(self, info: TransitionInfo) -> TransitionInfo:  # pragma: no cover
        """Native transition entry point; runs the guard's pre-hooks first."""
        ...

    def add_scene_listener(self, listener: SceneListener) -> None:  # pragma: no cover
        ...

    def remove_scene_listener(self, listener: SceneListener) -> None:  # pragma: no cover
        ...

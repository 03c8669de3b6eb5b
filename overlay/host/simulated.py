from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from overlay.core.records import Vector3
from overlay.guard import SCENE_MANAGER_GLOBAL_WRITES, HostEventGuard
from overlay.host.loader import InMemoryContentLoader
from overlay.host.ports import ContentLoader, SceneListener, SessionSnapshotStore
from overlay.interception import TransitionInfo
from overlay.session_store import InMemorySessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SceneSpec:
    """What a scene brings with it when the session arrives there."""

    interactions: tuple[str, ...] = ()
    mixers: tuple[str, ...] = ()
    has_scene_manager: bool = False


@dataclass(slots=True)
class SimulatedPlayer:
    position: Vector3 = field(default_factory=Vector3)
    animator: bool = True
    clips: list[str] = field(default_factory=list)
    scene_inits: int = 0

    def has_animator(self) -> bool:
        return self.animator

    def play_animation(self, clip: str) -> None:
        self.clips.append(clip)

    def scene_init(self, spawn: Vector3) -> None:
        self.position = spawn.model_copy()
        self.scene_inits += 1


@dataclass(slots=True)
class SimulatedControl:
    accepting_input: bool = True
    suspend_calls: int = 0
    resume_calls: int = 0

    def suspend_control(self) -> None:
        self.suspend_calls += 1
        self.accepting_input = False

    def resume_control(self) -> None:
        self.resume_calls += 1
        self.accepting_input = True


@dataclass(slots=True)
class SimulatedAudio:
    # Host mixer name -> output group (None = master bus).
    host: dict[str, str | None] = field(default_factory=dict)
    content: list[str] = field(default_factory=list)
    grafted: dict[str, str | None] = field(default_factory=dict)

    def host_mixers(self) -> dict[str, str | None]:
        return dict(self.host)

    def content_mixers(self) -> list[str]:
        return list(self.content)

    def graft(self, content_mixer: str, output_group: str | None) -> None:
        self.grafted[content_mixer] = output_group


@dataclass(slots=True)
class SimulatedCamera:
    position: Vector3 = field(default_factory=Vector3)

    def snap_to(self, position: Vector3) -> None:
        self.position = position.model_copy()


@dataclass(slots=True)
class SimulatedInteractions:
    present: list[str] = field(default_factory=list)
    inactive: set[str] = field(default_factory=set)

    def content_interactions(self) -> list[str]:
        return [h for h in self.present if h not in self.inactive]

    def deactivate(self, handle: str) -> None:
        self.inactive.add(handle)

    def reactivate(self, handle: str) -> None:
        self.inactive.discard(handle)


@dataclass(slots=True)
class SimulatedFader:
    calls: list[str] = field(default_factory=list)

    def fade_out(self) -> None:
        self.calls.append("out")

    def fade_in(self) -> None:
        self.calls.append("in")

    @property
    def is_dark(self) -> bool:
        return bool(self.calls) and self.calls[-1] == "out"


@dataclass(slots=True)
class SimulatedPersistentSpace:
    names: list[str] = field(default_factory=list)

    def root_names(self) -> list[str]:
        return list(self.names)

    def destroy(self, name: str) -> None:
        if name in self.names:
            self.names.remove(name)


@dataclass(slots=True)
class SimulatedRenderers:
    enabled: dict[str, bool] = field(default_factory=dict)

    def set_renderer_enabled(self, path: str, enabled: bool) -> bool:
        if path not in self.enabled:
            return False
        self.enabled[path] = enabled
        return True


@dataclass(slots=True)
class SimulatedHud:
    shown: int = 0

    def show(self) -> None:
        self.shown += 1


class SimulatedSceneMetadata:
    def __init__(self, host: "SimulatedHost") -> None:
        self._host = host
        self.zone: str | None = None
        self.created = 0

    def ensure_memory_zone(self) -> bool:
        spec = self._host.scene_spec
        reused = spec.has_scene_manager
        if not reused:
            self.created += 1
        self.zone = "memory"
        # A fresh scene manager starts up and tries to push lighting/zone globals.
        self._host.ambient_update()
        return reused


class SimulatedHost:
    """Deterministic in-process host session.

    Scene changes are synchronous: `begin_scene_transition` runs the guard's
    pre-hooks, moves to the (possibly retargeted) scene and notifies listeners.
    """

    def __init__(
        self,
        *,
        scene: str = "Town",
        player_position: tuple[float, float, float] = (0.0, 0.0, 0.0),
        scenes: dict[str, SceneSpec] | None = None,
        loader: ContentLoader | None = None,
        store: SessionSnapshotStore | None = None,
        renderers: dict[str, bool] | None = None,
        host_mixers: dict[str, str | None] | None = None,
        auto_finish_entering: bool = True,
    ) -> None:
        self.guard = HostEventGuard()
        self.loader: ContentLoader = loader or InMemoryContentLoader()
        self.store: SessionSnapshotStore = store or InMemorySessionStore()
        self.control = SimulatedControl()
        self.audio = SimulatedAudio(host=dict(host_mixers or {}))
        self.camera = SimulatedCamera()
        self.interactions = SimulatedInteractions()
        self.fader = SimulatedFader()
        self.persistent = SimulatedPersistentSpace()
        self.renderers = SimulatedRenderers(enabled=dict(renderers or {}))
        self.scene_metadata = SimulatedSceneMetadata(self)
        self.hud = SimulatedHud()

        self.scenes: dict[str, SceneSpec] = dict(scenes or {})
        self.auto_finish_entering = auto_finish_entering
        self.transitions: list[TransitionInfo] = []
        self.ambient_writes = 0

        self._player: SimulatedPlayer | None = SimulatedPlayer(position=Vector3.from_tuple(player_position))
        self._scene = scene
        self._finished_entering = True
        self._listeners: list[SceneListener] = []
        self._apply_scene_spec()

    # --- HostSession ---

    @property
    def player(self) -> SimulatedPlayer | None:
        return self._player

    @property
    def active_scene(self) -> str:
        return self._scene

    @property
    def has_finished_entering_scene(self) -> bool:
        return self._finished_entering

    @property
    def scene_spec(self) -> SceneSpec:
        return self.scenes.get(self._scene, SceneSpec())

    def add_scene_listener(self, listener: SceneListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_scene_listener(self, listener: SceneListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def begin_scene_transition(self, info: TransitionInfo) -> TransitionInfo:
        info = self.guard.before_transition(info)
        self.transitions.append(replace(info))

        target = info.target
        if not target:
            # Native behavior with no target: reload the current scene.
            target = self._scene
        logger.info("[host] transition (%s) %s -> %s", info.origin, self._scene, target)

        self._finished_entering = False
        self.change_scene(target)
        if self.auto_finish_entering:
            self._finished_entering = True
        return info

    # --- simulation helpers ---

    def change_scene(self, new_scene: str) -> None:
        old = self._scene
        self._scene = new_scene
        self._apply_scene_spec()
        for listener in list(self._listeners):
            listener(old, new_scene)

    def finish_entering(self) -> None:
        self._finished_entering = True

    def remove_player(self) -> None:
        self._player = None

    def spawn_player(self, position: tuple[float, float, float] = (0.0, 0.0, 0.0)) -> None:
        self._player = SimulatedPlayer(position=Vector3.from_tuple(position))

    def kill_player(self) -> TransitionInfo:
        respawn = self.store.get("respawn_scene")
        return self.begin_scene_transition(
            TransitionInfo(target=str(respawn or ""), origin="death", respawning=True)
        )

    def return_to_title(self) -> None:
        self.change_scene("Menu_Title")

    def ambient_update(self) -> bool:
        if self.guard.is_suppressed(SCENE_MANAGER_GLOBAL_WRITES):
            return False
        self.ambient_writes += 1
        return True

    def leak_persistent(self, *names: str) -> None:
        self.persistent.names.extend(names)

    def _apply_scene_spec(self) -> None:
        spec = self.scene_spec
        self.interactions.present = list(spec.interactions)
        self.interactions.inactive = set()
        self.audio.content = list(spec.mixers)

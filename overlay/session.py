from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

import redis

from overlay.controller import OverlayLifecycleController
from overlay.core.events import OverlayEvent
from overlay.host.loader import InMemoryContentLoader
from overlay.host.ports import SessionSnapshotStore
from overlay.host.simulated import SceneSpec, SimulatedHost
from overlay.session_store import InMemorySessionStore, RedisSessionStore
from overlay.settings import OverlaySettings, settings_from_env
from overlay.streams import EventPublisher
from overlay.triggers import ReturnOnDialogueTrigger
from overlay.websocket_hub import hub

logger = logging.getLogger(__name__)

HOME_SCENE = "Town"

DEV_HOST_MIXERS: dict[str, str | None] = {
    "Actors": "Master/Actors",
    "Music": "Master/Music",
    "Atmos": "Master/Atmos",
}


@dataclass(slots=True)
class OverlaySession:
    session_id: str
    host: SimulatedHost
    controller: OverlayLifecycleController
    trigger: ReturnOnDialogueTrigger
    r: redis.Redis | None = None


_SESSION: OverlaySession | None = None


def build_session(
    *,
    r: redis.Redis | None = None,
    settings: OverlaySettings | None = None,
    session_id: str | None = None,
) -> OverlaySession:
    """Wire a simulated host session to a fresh controller.

    Session fields live in Redis when a client is given, otherwise in memory.
    """

    settings = settings or settings_from_env()
    sid = session_id or str(uuid.uuid4())

    store: SessionSnapshotStore
    if r is not None:
        store = RedisSessionStore(r=r, session_id=sid)
    else:
        store = InMemorySessionStore()
    store.set("respawn_scene", HOME_SCENE)
    store.set("respawn_marker", "Death Respawn Marker")
    store.set("respawn_type", 1)

    content = settings.default_content_id
    host = SimulatedHost(
        scene=HOME_SCENE,
        scenes={
            HOME_SCENE: SceneSpec(has_scene_manager=True),
            content: SceneSpec(
                interactions=("door_dreamEnter",),
                mixers=("Actors", "Music", "Atmos", "Unknown FX"),
            ),
        },
        loader=InMemoryContentLoader(known={content}),
        store=store,
        renderers={path: True for path in settings.interfering_renderers},
        host_mixers=DEV_HOST_MIXERS,
    )
    controller = OverlayLifecycleController(host=host, settings=settings)
    trigger = ReturnOnDialogueTrigger(controller)
    controller.add_listener(EventPublisher(session_id=sid, r=r, hub=hub))

    def _rearm(event: OverlayEvent) -> None:
        if event.type == "CONTENT_ARRIVED":
            trigger.reset()

    controller.add_listener(_rearm)

    logger.info("[session] %s ready (redis=%s)", sid, r is not None)
    return OverlaySession(session_id=sid, host=host, controller=controller, trigger=trigger, r=r)


def init_session(*, r: redis.Redis | None = None, settings: OverlaySettings | None = None) -> OverlaySession:
    """Create the process-wide session once.

    Safe to call multiple times; subsequent calls return the existing session.
    """

    global _SESSION
    if _SESSION is None:
        _SESSION = build_session(r=r, settings=settings)
    return _SESSION


def has_session() -> bool:
    return _SESSION is not None


def get_session() -> OverlaySession:
    if _SESSION is None:
        raise RuntimeError("Session not initialized. Call init_session() at startup.")
    return _SESSION


def reset_session() -> None:
    """Dispose the current session (if any) and forget it."""

    global _SESSION
    if _SESSION is not None:
        _SESSION.controller.dispose()
    _SESSION = None

from __future__ import annotations

from collections.abc import Generator

import fakeredis
import pytest

from overlay.controller import OverlayLifecycleController
from overlay.host.loader import InMemoryContentLoader
from overlay.host.simulated import SceneSpec, SimulatedHost
from overlay.settings import OverlaySettings

HOME = "Town"
CONTENT = "GG_Radiance"
SPAWN = (62.07, 21.6402, 0.004)
MASKER = "_GameCameras/CameraParent/tk2dCamera/Masker Blackout"


def fast_settings(**overrides: object) -> OverlaySettings:
    """Zero-length animations/fades so tests only wait on the event loop."""

    values: dict[str, object] = {
        "kneel_seconds": 0.0,
        "prostrate_seconds": 0.0,
        "fade_out_seconds": 0.0,
        "fade_in_seconds": 0.0,
        "frame_seconds": 0.0,
        "load_timeout_seconds": 1.0,
        "finished_entering_timeout_seconds": 0.2,
    }
    values.update(overrides)
    return OverlaySettings(**values)  # type: ignore[arg-type]


def make_host(*, loader: InMemoryContentLoader | None = None, **kwargs: object) -> SimulatedHost:
    params: dict[str, object] = {
        "scene": HOME,
        "player_position": (10.0, 5.0, 0.0),
        "scenes": {
            HOME: SceneSpec(has_scene_manager=True),
            CONTENT: SceneSpec(
                interactions=("door_dreamEnter", "Dream Enter Trigger"),
                mixers=("Actors", "Music", "Unknown FX"),
            ),
        },
        "loader": loader or InMemoryContentLoader(known={CONTENT}),
        "renderers": {MASKER: True},
        "host_mixers": {"Actors": "Master/Actors", "Music": "Master/Music"},
    }
    params.update(kwargs)
    host = SimulatedHost(**params)  # type: ignore[arg-type]
    host.store.set("respawn_scene", HOME)
    host.store.set("respawn_marker", "Death Respawn Marker")
    host.store.set("respawn_type", 1)
    return host


@pytest.fixture()
def host() -> SimulatedHost:
    return make_host()


@pytest.fixture()
def controller(host: SimulatedHost) -> Generator[OverlayLifecycleController, None, None]:
    c = OverlayLifecycleController(host=host, settings=fast_settings())
    yield c
    c.dispose()


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def client_and_session(r: fakeredis.FakeRedis):
    """FastAPI TestClient wired to a session backed by fakeredis.

    The session is installed before the app starts so startup does not touch a real Redis.
    """

    from fastapi.testclient import TestClient

    from overlay.main import app
    from overlay.session import init_session, reset_session

    reset_session()
    session = init_session(r=r, settings=fast_settings())
    with TestClient(app) as c:
        yield c, session
    reset_session()

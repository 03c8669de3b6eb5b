from __future__ import annotations

import time

from fastapi.testclient import TestClient

from overlay.session import OverlaySession


def _wait_for_state(client: TestClient, state: str, *, timeout: float = 2.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        data = client.get("/overlay").json()
        if data["state"] == state:
            return data
        if time.monotonic() > deadline:
            raise AssertionError(f"overlay never reached {state!r}: {data}")
        time.sleep(0.01)


def test_healthcheck_and_info(client_and_session: tuple[TestClient, OverlaySession]) -> None:
    client, _ = client_and_session

    assert client.get("/healthcheck").json() == {"status": "ok", "redis": "up"}
    assert client.get("/info").json()["name"] == "overlay-lifecycle"


def test_enter_then_exit_over_http(client_and_session: tuple[TestClient, OverlaySession]) -> None:
    client, session = client_and_session

    status0 = client.get("/overlay").json()
    assert status0["state"] == "idle"
    assert status0["scene"] == "Town"
    assert status0["return_context"]["valid"] is False

    resp = client.post("/overlay/enter", json={"spawn_position": {"x": 62.07, "y": 21.6402, "z": 0.004}})
    assert resp.status_code == 202
    assert resp.json()["accepted"] is True

    data = _wait_for_state(client, "active")
    assert data["scene"] == "GG_Radiance"
    assert data["content_id"] == "GG_Radiance"
    assert data["return_context"]["return_content_id"] == "Town"
    assert data["return_context"]["valid"] is True
    assert data["disabled_interactions"] == ["door_dreamEnter"]

    # Re-entrant enter is a conflict, not a queue.
    again = client.post("/overlay/enter", json={})
    assert again.status_code == 409
    assert "not allowed" in again.json()["detail"]

    resp2 = client.post("/overlay/exit")
    assert resp2.status_code == 202

    data2 = _wait_for_state(client, "idle")
    assert data2["scene"] == "Town"
    assert data2["return_context"]["valid"] is False

    assert session.host.store.get("respawn_scene") == "Town"


def test_exit_when_idle_is_conflict(client_and_session: tuple[TestClient, OverlaySession]) -> None:
    client, _ = client_and_session

    resp = client.post("/overlay/exit")
    assert resp.status_code == 409
    assert "not allowed in state 'idle'" in resp.json()["detail"]


def test_enter_validation_error(client_and_session: tuple[TestClient, OverlaySession]) -> None:
    client, _ = client_and_session

    resp = client.post("/overlay/enter", json={"content_id": ""})
    assert resp.status_code == 422


def test_host_transition_is_redirected_while_active(client_and_session: tuple[TestClient, OverlaySession]) -> None:
    client, _ = client_and_session

    assert client.post("/overlay/enter", json={}).status_code == 202
    _wait_for_state(client, "active")

    resp = client.post("/host/transition", json={"target": ""})
    assert resp.status_code == 200
    body = resp.json()
    assert body["requested_target"] == ""
    assert body["effective_target"] == "Town"
    assert body["scene"] == "Town"

    _wait_for_state(client, "idle")


def test_host_transition_passes_through_when_idle(client_and_session: tuple[TestClient, OverlaySession]) -> None:
    client, _ = client_and_session

    body = client.post("/host/transition", json={"target": "Crossroads_04"}).json()
    assert body["effective_target"] == "Crossroads_04"
    assert body["state"] == "idle"


def test_death_inside_overlay_returns_home(client_and_session: tuple[TestClient, OverlaySession]) -> None:
    client, _ = client_and_session

    client.post("/overlay/enter", json={})
    _wait_for_state(client, "active")

    body = client.post("/host/death").json()
    assert body["effective_target"] == "Town"

    _wait_for_state(client, "idle")


def test_dialogue_trigger_over_http(client_and_session: tuple[TestClient, OverlaySession]) -> None:
    client, _ = client_and_session

    client.post("/overlay/enter", json={})
    _wait_for_state(client, "active")

    assert client.post("/host/dialogue", json={"state_name": "Godseeker Dialogue"}).json()["triggered"] is True
    _wait_for_state(client, "idle")


def test_title_resets_session(client_and_session: tuple[TestClient, OverlaySession]) -> None:
    client, _ = client_and_session

    client.post("/overlay/enter", json={})
    _wait_for_state(client, "active")

    data = client.post("/host/title").json()
    assert data["state"] == "idle"
    assert data["scene"] == "Menu_Title"


def test_events_endpoint_reads_redis_stream(client_and_session: tuple[TestClient, OverlaySession]) -> None:
    client, session = client_and_session

    client.post("/overlay/enter", json={})
    _wait_for_state(client, "active")

    data = client.get("/overlay/events", params={"count": 50}).json()
    assert data["stream"] == f"overlay:events:{session.session_id}"
    types = [e["type"] for e in data["events"]]
    assert types[0] == "STATE_CHANGED"
    assert "CONTENT_ARRIVED" in types

    assert session.r is not None
    assert session.r.xlen(data["stream"]) == len(types)

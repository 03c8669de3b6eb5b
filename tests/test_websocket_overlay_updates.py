from __future__ import annotations

from fastapi.testclient import TestClient

from overlay.session import OverlaySession


def test_ws_overlay_updates_broadcast(client_and_session: tuple[TestClient, OverlaySession]) -> None:
    client, session = client_and_session

    with client.websocket_connect("/ws/overlay") as ws:
        res = client.post("/overlay/enter", json={})
        assert res.status_code == 202

        msg = ws.receive_json()
        assert msg["type"] == "overlay_event"
        assert msg["session_id"] == session.session_id
        assert msg["event"]["type"] == "STATE_CHANGED"
        assert msg["event"]["event"] == "request_enter"
        assert msg["event"]["target"] == "entering"

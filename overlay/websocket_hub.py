from __future__ import annotations

import asyncio
from collections import defaultdict

from fastapi import WebSocket


class OverlayWebSocketHub:
    """In-process WebSocket pub/sub keyed by session_id.

    Contract:
      - assign a connection to a session via `connect(session_id, websocket)`.
      - broadcast lifecycle events with `broadcast(session_id, payload)`.

    Payloads should be JSON-serializable dicts.
    """

    def __init__(self) -> None:
        self._by_session: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        # Register before accepting so no event published right after the handshake is missed.
        async with self._lock:
            self._by_session[session_id].add(websocket)
        await websocket.accept()

    async def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            conns = self._by_session.get(session_id)
            if not conns:
                return
            conns.discard(websocket)
            if not conns:
                self._by_session.pop(session_id, None)

    async def broadcast(self, session_id: str, payload: dict[str, object]) -> None:
        async with self._lock:
            conns = list(self._by_session.get(session_id, set()))

        if not conns:
            return

        dead: list[WebSocket] = []
        for ws in conns:
            try:
                await ws.send_json(payload)
            except Exception:
                dead.append(ws)

        if dead:
            async with self._lock:
                for ws in dead:
                    self._by_session.get(session_id, set()).discard(ws)


hub = OverlayWebSocketHub()

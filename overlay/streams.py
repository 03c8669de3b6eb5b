from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Mapping, cast

import redis

from overlay.core.events import OverlayEvent
from overlay.websocket_hub import OverlayWebSocketHub

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EventStream:
    session_id: str

    @property
    def key(self) -> str:
        return f"overlay:events:{self.session_id}"


def publish_to_stream(*, r: redis.Redis, stream: EventStream, fields: Mapping[str, str], maxlen: int = 1000) -> str:
    """Append an entry to the session's lifecycle event stream."""

    # redis-py stubs expect field/value unions; we only ever write string fields/values.
    stream_id = r.xadd(stream.key, {str(k): str(v) for k, v in fields.items()}, maxlen=maxlen, approximate=True)
    return cast(str, stream_id)


def read_recent(*, r: redis.Redis, stream: EventStream, count: int = 20) -> list[tuple[str, dict[str, str]]]:
    """Newest-last slice of the stream."""

    entries = r.xrevrange(stream.key, count=count)
    return [(cast(str, mid), cast(dict[str, str], fields)) for mid, fields in reversed(entries)]


class EventPublisher:
    """Controller listener: mirrors every lifecycle event to Redis and websocket subscribers.

    Redis publishing is synchronous; websocket broadcast is scheduled on the running
    loop when there is one. Neither may break the controller, so failures are logged.
    """

    def __init__(self, *, session_id: str, r: redis.Redis | None, hub: OverlayWebSocketHub | None) -> None:
        self.stream = EventStream(session_id=session_id)
        self._r = r
        self._hub = hub
        self._pending: set[asyncio.Task[None]] = set()

    def __call__(self, event: OverlayEvent) -> None:
        fields = event.as_fields()

        if self._r is not None:
            try:
                publish_to_stream(r=self._r, stream=self.stream, fields=fields)
            except redis.RedisError as e:
                logger.warning("[overlay] could not publish %s to %s: %s", event.type, self.stream.key, e)

        if self._hub is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        payload: dict[str, object] = {"type": "overlay_event", "session_id": self.stream.session_id, "event": fields}
        task = loop.create_task(self._hub.broadcast(self.stream.session_id, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

from __future__ import annotations

import fakeredis
import redis

from overlay.core.events import OverlayEvent
from overlay.streams import EventPublisher, EventStream, publish_to_stream, read_recent


def test_publish_and_read_recent(r: fakeredis.FakeRedis) -> None:
    stream = EventStream(session_id="s1")
    assert stream.key == "overlay:events:s1"

    for i in range(3):
        publish_to_stream(r=r, stream=stream, fields={"type": "STATE_CHANGED", "n": str(i)})

    entries = read_recent(r=r, stream=stream, count=2)
    assert [f["n"] for _, f in entries] == ["1", "2"]


def test_publisher_writes_flat_fields_without_running_loop(r: fakeredis.FakeRedis) -> None:
    pub = EventPublisher(session_id="s1", r=r, hub=None)

    pub(OverlayEvent.now(type="CLEANUP_DONE", state="exiting", payload={"reason": "request_exit", "x": None}))

    (_, fields), = r.xrange("overlay:events:s1")
    assert fields["type"] == "CLEANUP_DONE"
    assert fields["state"] == "exiting"
    assert fields["reason"] == "request_exit"
    assert fields["x"] == ""
    assert fields["ts"]


def test_publisher_survives_redis_errors() -> None:
    class _Down:
        def xadd(self, *args: object, **kwargs: object) -> str:
            raise redis.ConnectionError("down")

    pub = EventPublisher(session_id="s1", r=_Down(), hub=None)  # type: ignore[arg-type]
    pub(OverlayEvent.now(type="RETURNED", state="idle"))

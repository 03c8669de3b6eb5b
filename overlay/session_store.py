from __future__ import annotations

import json
from typing import Any

import redis


SESSION_KEY_PREFIX = "overlay:session:"  # + {session_id}


def _session_key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


class InMemorySessionStore:
    """Dict-backed host session fields. Missing fields read as None."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._fields: dict[str, Any] = dict(initial or {})

    def get(self, field_id: str) -> Any:
        return self._fields.get(field_id)

    def set(self, field_id: str, value: Any) -> None:
        self._fields[field_id] = value

    def as_dict(self) -> dict[str, Any]:
        return dict(self._fields)


class RedisSessionStore:
    """Host session fields kept in a Redis hash, one JSON-encoded value per field.

    Expects a client created with `decode_responses=True`.
    """

    def __init__(self, *, r: redis.Redis, session_id: str) -> None:
        self._r = r
        self.session_id = session_id

    @property
    def key(self) -> str:
        return _session_key(self.session_id)

    def get(self, field_id: str) -> Any:
        raw = self._r.hget(self.key, field_id)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, field_id: str, value: Any) -> None:
        self._r.hset(self.key, field_id, json.dumps(value))

    def as_dict(self) -> dict[str, Any]:
        raw = self._r.hgetall(self.key)
        return {str(k): json.loads(v) for k, v in raw.items()}

    def clear(self) -> None:
        self._r.delete(self.key)

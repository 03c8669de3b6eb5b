from __future__ import annotations

import os

import redis


def get_redis_url() -> str:
    return os.environ.get("OVERLAY_REDIS_URL") or os.environ.get("REDIS_URL", "redis://localhost:6379/0")


def create_redis(url: str | None = None) -> redis.Redis:
    # decode_responses=True: session fields and stream entries are JSON/str, never bytes.
    return redis.Redis.from_url(url or get_redis_url(), decode_responses=True)


def redis_available(r: redis.Redis | None) -> bool:
    if r is None:
        return False
    try:
        return bool(r.ping())
    except redis.RedisError:
        return False

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


class SuspensionTimeout(TimeoutError):
    def __init__(self, name: str, timeout: float) -> None:
        super().__init__(f"Suspension point '{name}' timed out after {timeout:.2f}s")
        self.name = name
        self.timeout = timeout


@dataclass(frozen=True, slots=True)
class SuspensionPoint:
    """A named place where the entry/exit pipelines yield to the event loop.

    Each point carries its own timeout so the bounded waits can be exercised
    one at a time. `timeout=None` means "wait as long as it takes".
    """

    name: str
    timeout: float | None = None

    async def wait(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise SuspensionTimeout(self.name, self.timeout or 0.0) from e

    async def sleep(self, seconds: float) -> None:
        """Fixed-duration wait (animations, fades, a single frame)."""

        await self.wait(asyncio.sleep(max(0.0, seconds)))

    async def poll_until(self, predicate: Callable[[], bool], *, frame_seconds: float) -> bool:
        """Poll once per frame until `predicate()` holds.

        Returns False when the timeout expires instead of raising; callers use this
        where availability matters more than a precise confirmation.
        """

        loop = asyncio.get_running_loop()
        deadline = None if self.timeout is None else loop.time() + self.timeout

        while not predicate():
            if deadline is not None and loop.time() >= deadline:
                return False
            await asyncio.sleep(frame_seconds)
        return True

from __future__ import annotations

import asyncio
import logging

from overlay.host.ports import LoadResult

logger = logging.getLogger(__name__)


class InMemoryContentLoader:
    """Stand-in for the bundle loader: content ids become "resident" after a delay.

    Knobs for exercising the controller:
    - `delay_seconds`: how long a fresh load takes.
    - `fail_reason`: when set, every load of a non-resident id fails with it.
    - `hang`: when True, loads never complete (timeout path).
    Loading an already resident id returns the existing handle immediately.
    """

    def __init__(
        self,
        *,
        known: set[str] | None = None,
        delay_seconds: float = 0.0,
        fail_reason: str | None = None,
        hang: bool = False,
    ) -> None:
        self.known = set(known) if known is not None else None
        self.delay_seconds = delay_seconds
        self.fail_reason = fail_reason
        self.hang = hang
        self.load_calls: list[str] = []
        self._resident: dict[str, str] = {}
        self.is_preloaded = False

    async def preload(self, content_ids: list[str]) -> None:
        for content_id in content_ids:
            await self.load(content_id)
        self.is_preloaded = True
        logger.info("[loader] preload complete (%d items)", len(content_ids))

    async def load(self, content_id: str) -> LoadResult:
        self.load_calls.append(content_id)

        handle = self._resident.get(content_id)
        if handle is not None:
            return LoadResult.ready(handle)

        if self.hang:
            await asyncio.Event().wait()

        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        if self.fail_reason is not None:
            return LoadResult.failed(self.fail_reason)
        if self.known is not None and content_id not in self.known:
            return LoadResult.failed(f"unknown content '{content_id}'")

        handle = f"bundle:{content_id}"
        self._resident[content_id] = handle
        logger.info("[loader] %s resident as %s", content_id, handle)
        return LoadResult.ready(handle)

    def unload(self, handle: str) -> None:
        for content_id, h in list(self._resident.items()):
            if h == handle:
                del self._resident[content_id]
                logger.info("[loader] unloaded %s", content_id)

    def is_resident(self, content_id: str) -> bool:
        return content_id in self._resident

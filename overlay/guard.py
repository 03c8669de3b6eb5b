from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from overlay.interception import HookDecision, TransitionInfo

logger = logging.getLogger(__name__)

TransitionHook = Callable[[TransitionInfo], HookDecision]

# Ambient scene updates that write lighting/map-zone globals.
SCENE_MANAGER_GLOBAL_WRITES = "scene_manager_global_writes"


class HostEventGuard:
    """Pre-hook registry in front of the host's native scene-transition entry point.

    Contract:
      - hooks run synchronously, in registration order, before the native transition.
      - a hook returns `HookDecision.proceed()` or `HookDecision.proceed_with_target(target)`;
        a modified target is written into the `TransitionInfo` seen by later hooks
        and by the host.
      - the host never skips its own transition; hooks can only retarget it.

    Also owns suppress flags that the host checks before letting ambient
    subsystems write global state.
    """

    def __init__(self) -> None:
        self._hooks: list[TransitionHook] = []
        self._suppressed: Counter[str] = Counter()

    def register(self, hook: TransitionHook) -> None:
        if hook not in self._hooks:
            self._hooks.append(hook)

    def unregister(self, hook: TransitionHook) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    @property
    def hook_count(self) -> int:
        return len(self._hooks)

    def before_transition(self, info: TransitionInfo) -> TransitionInfo:
        for hook in list(self._hooks):
            decision = hook(info)
            if decision.modified:
                logger.info("[guard] transition retargeted: %r -> %r", info.target, decision.target)
            decision.apply(info)
        return info

    @contextmanager
    def suppress(self, subsystem: str) -> Iterator[None]:
        self._suppressed[subsystem] += 1
        try:
            yield
        finally:
            self._suppressed[subsystem] -= 1
            if self._suppressed[subsystem] <= 0:
                del self._suppressed[subsystem]

    def is_suppressed(self, subsystem: str) -> bool:
        return self._suppressed.get(subsystem, 0) > 0

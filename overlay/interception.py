"""Interception policy for host-native transitions.

`decide()` is a pure function of (overlay state, return context, attempted transition).
The controller runs cleanup around it; the policy itself only says whether the
transition goes ahead unchanged or with a rewritten target. The host's own
transition machinery always performs the actual move.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from overlay.core.records import OverlayState, ReturnContext

TransitionOrigin = Literal["host", "death", "exit", "dialogue", "loader"]


@dataclass(slots=True)
class TransitionInfo:
    target: str
    entry_gate: str = ""
    origin: TransitionOrigin = "host"
    respawning: bool = False

    @property
    def has_target(self) -> bool:
        return bool(self.target and self.target.strip())


@dataclass(frozen=True, slots=True)
class HookDecision:
    action: Literal["proceed", "proceed_with_target"]
    target: str | None = None

    @staticmethod
    def proceed() -> "HookDecision":
        return HookDecision(action="proceed")

    @staticmethod
    def proceed_with_target(target: str) -> "HookDecision":
        return HookDecision(action="proceed_with_target", target=target)

    @property
    def modified(self) -> bool:
        return self.action == "proceed_with_target"

    def apply(self, info: TransitionInfo) -> TransitionInfo:
        if self.modified and self.target is not None:
            info.target = self.target
        return info


def decide(*, state: OverlayState, return_context: ReturnContext, info: TransitionInfo) -> HookDecision:
    if state != OverlayState.active:
        return HookDecision.proceed()

    # Cleanup always runs; redirect only when the host left the target unset.
    if not info.has_target and return_context.valid:
        return HookDecision.proceed_with_target(return_context.return_content_id)

    return HookDecision.proceed()


def effective_target(*, decision: HookDecision, info: TransitionInfo) -> str:
    if decision.modified and decision.target is not None:
        return decision.target
    return info.target

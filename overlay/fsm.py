from __future__ import annotations

import logging

from statemachine import State, StateMachine

from overlay.core.records import OverlayState

logger = logging.getLogger(__name__)


class OverlayFSM(StateMachine):
    """Transition guard for the overlay lifecycle.

    The controller owns all side effects; this machine only decides which moves
    are legal:
    - idle -> entering -> active -> exiting -> idle
    - entering -> idle when the load fails or times out
    Anything else raises `TransitionNotAllowed`.
    """

    idle = State(OverlayState.idle.value, value=OverlayState.idle.value, initial=True)
    entering = State(OverlayState.entering.value, value=OverlayState.entering.value)
    active = State(OverlayState.active.value, value=OverlayState.active.value)
    exiting = State(OverlayState.exiting.value, value=OverlayState.exiting.value)

    request_enter = idle.to(entering)
    arrived = entering.to(active)
    load_failed = entering.to(idle)
    request_exit = active.to(exiting)
    host_transition = active.to(exiting)
    returned = exiting.to(idle)

    def after_transition(self, event: str, source: State, target: State) -> None:
        logger.info("[overlay] %s: %s -> %s", event, source.id, target.id)

    @property
    def overlay_state(self) -> OverlayState:
        return OverlayState(str(self.current_state_value))

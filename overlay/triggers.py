from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_RETURN_STATE = "Godseeker Dialogue"


class ExitCapable(Protocol):
    def is_active(self) -> bool:  # pragma: no cover
        ...

    def request_exit(self) -> bool:  # pragma: no cover
        ...


class ReturnOnDialogueTrigger:
    """Sends the session home when the content's scripting reaches a dialogue state.

    Fires at most once per arming; `reset()` re-arms it for the next visit.
    """

    def __init__(self, controller: ExitCapable, *, state_name: str = DEFAULT_RETURN_STATE) -> None:
        self._controller = controller
        self.state_name = state_name
        self._triggered = False

    @property
    def triggered(self) -> bool:
        return self._triggered

    def on_state_entered(self, state_name: str) -> bool:
        if state_name != self.state_name:
            return False

        if self._triggered:
            logger.debug("[trigger] return already triggered, ignoring %r", state_name)
            return False

        if not self._controller.is_active():
            logger.debug("[trigger] overlay not active, ignoring %r", state_name)
            return False

        self._triggered = True
        logger.info("[trigger] %r reached, returning to the original scene", state_name)
        return self._controller.request_exit()

    def reset(self) -> None:
        self._triggered = False

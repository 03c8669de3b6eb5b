from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from overlay.core.records import OverlayState
from overlay.fsm import OverlayFSM


def test_fsm_starts_idle() -> None:
    assert OverlayFSM().overlay_state == OverlayState.idle


def test_fsm_full_cycle() -> None:
    fsm = OverlayFSM()
    fsm.send("request_enter")
    assert fsm.overlay_state == OverlayState.entering
    fsm.send("arrived")
    assert fsm.overlay_state == OverlayState.active
    fsm.send("request_exit")
    assert fsm.overlay_state == OverlayState.exiting
    fsm.send("returned")
    assert fsm.overlay_state == OverlayState.idle


def test_fsm_load_failure_returns_to_idle() -> None:
    fsm = OverlayFSM()
    fsm.send("request_enter")
    fsm.send("load_failed")
    assert fsm.overlay_state == OverlayState.idle


def test_fsm_host_transition_only_from_active() -> None:
    fsm = OverlayFSM()
    with pytest.raises(TransitionNotAllowed):
        fsm.send("host_transition")

    fsm.send("request_enter")
    fsm.send("arrived")
    fsm.send("host_transition")
    assert fsm.overlay_state == OverlayState.exiting


@pytest.mark.parametrize(
    "events, illegal",
    [
        ([], "arrived"),
        ([], "request_exit"),
        ([], "returned"),
        (["request_enter"], "request_enter"),
        (["request_enter"], "request_exit"),
        (["request_enter", "arrived"], "request_enter"),
        (["request_enter", "arrived", "request_exit"], "request_exit"),
    ],
)
def test_fsm_rejects_illegal_moves(events: list[str], illegal: str) -> None:
    fsm = OverlayFSM()
    for e in events:
        fsm.send(e)
    before = fsm.overlay_state

    with pytest.raises(TransitionNotAllowed):
        fsm.send(illegal)

    assert fsm.overlay_state == before

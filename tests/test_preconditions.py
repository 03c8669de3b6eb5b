from __future__ import annotations

import pytest

from overlay.core.records import OverlayState, PendingEntry, ReturnContext, Vector3
from overlay.preconditions import PreconditionRejected, RequestContext, pipeline_for


def _ctx(
    operation: str,
    *,
    state: OverlayState = OverlayState.idle,
    pending: PendingEntry | None = None,
    return_context: ReturnContext | None = None,
    player_present: bool = True,
    host_scene: str = "Town",
) -> RequestContext:
    return RequestContext(
        operation=operation,
        state=state,
        pending_entry=pending,
        return_context=return_context or ReturnContext.empty(),
        player_present=player_present,
        host_scene=host_scene,
    )


def test_enter_allowed_from_idle_with_player() -> None:
    pipeline_for("enter").validate(ctx=_ctx("enter"))


@pytest.mark.parametrize("state", [OverlayState.entering, OverlayState.active, OverlayState.exiting])
def test_enter_rejected_outside_idle(state: OverlayState) -> None:
    with pytest.raises(PreconditionRejected) as e:
        pipeline_for("enter").validate(ctx=_ctx("enter", state=state))

    assert "not allowed" in str(e.value)
    assert state.value in str(e.value)


def test_enter_rejected_while_entry_pending() -> None:
    with pytest.raises(PreconditionRejected) as e:
        pipeline_for("enter").validate(ctx=_ctx("enter", pending=PendingEntry(target_content_id="GG_Radiance")))

    assert "GG_Radiance" in str(e.value)


def test_enter_rejected_without_player() -> None:
    with pytest.raises(PreconditionRejected, match="no active player"):
        pipeline_for("enter").validate(ctx=_ctx("enter", player_present=False))


def test_exit_requires_active_and_valid_return() -> None:
    valid = ReturnContext.capture(content_id="Town", position=Vector3())
    pipeline_for("exit").validate(ctx=_ctx("exit", state=OverlayState.active, return_context=valid))

    with pytest.raises(PreconditionRejected, match="no valid return context"):
        pipeline_for("exit").validate(
            ctx=_ctx("exit", state=OverlayState.active, return_context=valid.invalidated())
        )

    with pytest.raises(PreconditionRejected, match="not allowed"):
        pipeline_for("exit").validate(ctx=_ctx("exit", state=OverlayState.idle, return_context=valid))


def test_rejection_is_a_value_error() -> None:
    assert issubclass(PreconditionRejected, ValueError)


def test_unknown_operation() -> None:
    with pytest.raises(ValueError, match="Unknown operation"):
        pipeline_for("teleport")


def test_exit_rejected_without_host_session() -> None:
    valid = ReturnContext.capture(content_id="Town", position=Vector3())

    with pytest.raises(PreconditionRejected, match="no host session"):
        pipeline_for("exit").validate(
            ctx=_ctx("exit", state=OverlayState.active, return_context=valid, host_scene="")
        )

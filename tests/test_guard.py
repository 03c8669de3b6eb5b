from __future__ import annotations

from overlay.guard import SCENE_MANAGER_GLOBAL_WRITES, HostEventGuard
from overlay.interception import HookDecision, TransitionInfo


def test_hooks_run_in_order_and_see_retargeted_info() -> None:
    guard = HostEventGuard()
    seen: list[str] = []

    def first(info: TransitionInfo) -> HookDecision:
        seen.append(f"first:{info.target}")
        return HookDecision.proceed_with_target("Town")

    def second(info: TransitionInfo) -> HookDecision:
        seen.append(f"second:{info.target}")
        return HookDecision.proceed()

    guard.register(first)
    guard.register(second)
    guard.register(first)
    assert guard.hook_count == 2

    info = guard.before_transition(TransitionInfo(target=""))

    assert info.target == "Town"
    assert seen == ["first:", "second:Town"]


def test_unregister() -> None:
    guard = HostEventGuard()

    def hook(info: TransitionInfo) -> HookDecision:
        return HookDecision.proceed_with_target("Elsewhere")

    guard.register(hook)
    guard.unregister(hook)
    guard.unregister(hook)

    assert guard.before_transition(TransitionInfo(target="A")).target == "A"


def test_suppress_is_scoped_and_nests() -> None:
    guard = HostEventGuard()
    assert not guard.is_suppressed(SCENE_MANAGER_GLOBAL_WRITES)

    with guard.suppress(SCENE_MANAGER_GLOBAL_WRITES):
        with guard.suppress(SCENE_MANAGER_GLOBAL_WRITES):
            assert guard.is_suppressed(SCENE_MANAGER_GLOBAL_WRITES)
        assert guard.is_suppressed(SCENE_MANAGER_GLOBAL_WRITES)

    assert not guard.is_suppressed(SCENE_MANAGER_GLOBAL_WRITES)


def test_suppress_released_on_error() -> None:
    guard = HostEventGuard()
    try:
        with guard.suppress("x"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert not guard.is_suppressed("x")

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from typing import Any, Literal

from statemachine.exceptions import TransitionNotAllowed

from overlay.core.events import EventType, OverlayEvent
from overlay.core.records import OverlayState, PendingEntry, ReturnContext, SessionFieldSnapshot, Vector3
from overlay.core.suspension import SuspensionPoint, SuspensionTimeout
from overlay.fsm import OverlayFSM
from overlay.guard import SCENE_MANAGER_GLOBAL_WRITES
from overlay.host.ports import HostSession
from overlay.interception import HookDecision, TransitionInfo, decide, effective_target
from overlay.preconditions import PreconditionRejected, RequestContext, pipeline_for
from overlay.reconcile import MissingCollaboratorError, ReconcileContext, run_reconciliation
from overlay.settings import OverlaySettings

logger = logging.getLogger(__name__)

OverlayListener = Callable[[OverlayEvent], None]
CleanupReason = Literal["request_exit", "host_transition"]


class ContentLoadError(RuntimeError):
    pass


class OverlayLifecycleController:
    """Drives a running session into an overlay area and back.

    Contract:
      - one instance per host session; `dispose()` when the session itself ends.
      - all calls happen on a single asyncio event loop. `request_enter` and
        `request_exit` answer synchronously (True = accepted) and continue in
        background tasks (`entry_task`, `exit_task`).
      - the controller is the only writer of its state, return context and
        disabled-interaction registry. Other components read through
        `is_active()` / `status()`.
      - host transitions fired while active are routed through
        `on_host_transition_attempt`, which is registered on the host's guard.
    """

    def __init__(self, *, host: HostSession, settings: OverlaySettings | None = None) -> None:
        self._host = host
        self._settings = settings or OverlaySettings()
        self._fsm = OverlayFSM()

        self._return = ReturnContext.empty()
        self._pending: PendingEntry | None = None
        self._snapshot: SessionFieldSnapshot | None = None
        self._disabled_interactions: list[str] = []
        self._disabled_renderers: list[str] = []

        self._content_id: str | None = None
        self._target_content_id = ""
        self._spawn = Vector3()
        self._exit_target: str | None = None

        self._arrival = asyncio.Event()
        self._control_suspended = False
        self._faded_out = False

        self._entry_task: asyncio.Task[None] | None = None
        self._exit_task: asyncio.Task[None] | None = None

        self._listeners: list[OverlayListener] = []
        self.history: deque[OverlayEvent] = deque(maxlen=200)

        self._host.guard.register(self.on_host_transition_attempt)
        self._host.add_scene_listener(self.on_scene_changed)
        logger.info("[overlay] controller ready (scene=%s)", self._host.active_scene)

    # ------------------------------------------------------------------
    # Read-only query surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> OverlayState:
        return self._fsm.overlay_state

    def is_active(self) -> bool:
        return self.state == OverlayState.active

    @property
    def return_context(self) -> ReturnContext:
        return self._return

    @property
    def pending_entry(self) -> PendingEntry | None:
        return self._pending

    @property
    def current_content_id(self) -> str | None:
        return self._content_id

    @property
    def disabled_interactions(self) -> tuple[str, ...]:
        return tuple(self._disabled_interactions)

    @property
    def entry_task(self) -> asyncio.Task[None] | None:
        return self._entry_task

    @property
    def exit_task(self) -> asyncio.Task[None] | None:
        return self._exit_task

    @property
    def settings(self) -> OverlaySettings:
        return self._settings

    def status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "active": self.is_active(),
            "content_id": self._content_id,
            "pending_target": self._pending.target_content_id if self._pending else None,
            "return_context": self._return.model_dump(mode="json"),
            "disabled_interactions": list(self._disabled_interactions),
        }

    def add_listener(self, listener: OverlayListener) -> None:
        self._listeners.append(listener)

    async def settle(self) -> None:
        """Wait for any in-flight entry/exit pipeline to finish."""

        for task in (self._entry_task, self._exit_task):
            if task is not None and not task.done():
                await asyncio.gather(task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Enter
    # ------------------------------------------------------------------

    def request_enter(
        self,
        content_id: str,
        spawn_position: Vector3 | tuple[float, float, float],
        target_content_id: str | None = None,
    ) -> bool:
        """Start entering `content_id`. Must be called from inside the running event loop."""

        try:
            pipeline_for("enter").validate(ctx=self._request_context("enter"))
        except PreconditionRejected as e:
            logger.warning("[overlay] enter rejected: %s", e)
            self._emit("ENTER_REJECTED", content_id=content_id, reason=str(e))
            return False

        player = self._host.player
        if player is None:
            logger.warning("[overlay] enter rejected: player vanished during validation")
            self._emit("ENTER_REJECTED", content_id=content_id, reason="no active player")
            return False

        spawn = spawn_position if isinstance(spawn_position, Vector3) else Vector3.from_tuple(spawn_position)
        target = target_content_id or content_id

        try:
            snapshot = SessionFieldSnapshot.capture(store=self._host.store, fields=self._settings.snapshot_fields)
        except Exception as e:
            logger.warning("[overlay] enter aborted: could not snapshot session fields: %s", e)
            self._emit("ENTER_FAILED", content_id=content_id, reason=f"session snapshot failed: {e}")
            return False

        # Captured before the first suspension point so it reflects the pre-overlay session
        # even if the load later fails.
        self._return = ReturnContext.capture(content_id=self._host.active_scene, position=player.position)
        self._snapshot = snapshot
        self._target_content_id = target
        self._spawn = spawn
        self._arrival.clear()
        self._faded_out = False

        logger.info(
            "[overlay] entering %s (target=%s) from %s at %s",
            content_id,
            target,
            self._return.return_content_id,
            self._return.return_position.as_tuple(),
        )

        self._send("request_enter")
        self._suspend_control()
        self._entry_task = asyncio.get_running_loop().create_task(
            self._run_entry(content_id=content_id, target=target), name=f"overlay-enter:{content_id}"
        )
        return True

    async def _run_entry(self, *, content_id: str, target: str) -> None:
        try:
            await self._play_entry_animation()

            self._pending = PendingEntry(target_content_id=target)

            self._fade_out()
            await SuspensionPoint("fade_out").sleep(self._settings.fade_out_seconds)

            await self._load_and_arrive(content_id=content_id, target=target)
        except asyncio.CancelledError:
            raise
        except (SuspensionTimeout, ContentLoadError, MissingCollaboratorError) as e:
            self._fail_entry(str(e))
            return
        except Exception as e:
            logger.exception("[overlay] unexpected error while entering %s", content_id)
            self._fail_entry(f"unexpected error: {e}")
            return

        await self._activate(content_id=content_id)

    async def _play_entry_animation(self) -> None:
        player = self._host.player
        if player is None:
            raise MissingCollaboratorError("player vanished before the entry animation")

        point = SuspensionPoint("entry_animation")
        if player.has_animator():
            player.play_animation(self._settings.kneel_clip)
            await point.sleep(self._settings.kneel_seconds)
            player.play_animation(self._settings.prostrate_clip)
            await point.sleep(self._settings.prostrate_seconds)
        else:
            await point.sleep(self._settings.entry_animation_seconds)

    async def _load_and_arrive(self, *, content_id: str, target: str) -> None:
        loop = asyncio.get_running_loop()
        budget = self._settings.load_timeout_seconds
        deadline = loop.time() + budget

        result = await SuspensionPoint("content_load", timeout=budget).wait(self._host.loader.load(content_id))
        if not result.ok:
            raise ContentLoadError(f"load of '{content_id}' failed: {result.reason or 'unknown reason'}")

        logger.info("[overlay] content %s ready (handle=%s)", content_id, result.handle)

        if self._host.active_scene == target:
            # Already there (e.g. respawned inside the content); no scene change will be reported.
            logger.info("[overlay] already in %s, treating as arrived", target)
            self._arrival.set()
        elif not self._arrival.is_set():
            # Entry transitions are not intercepted: the overlay is not active yet.
            self._host.begin_scene_transition(TransitionInfo(target=target, origin="loader"))

        if not self._arrival.is_set():
            remaining = max(0.0, deadline - loop.time())
            await SuspensionPoint("arrival", timeout=remaining).wait(self._arrival.wait())

    def _fail_entry(self, reason: str) -> None:
        logger.warning("[overlay] entry failed, returning control: %s", reason)
        self._pending = None
        self._return = self._return.invalidated()
        self._snapshot = None
        self._target_content_id = ""
        if self._faded_out:
            self._fade_in()
        self._send("load_failed")
        self._resume_control()
        self._emit("ENTER_FAILED", reason=reason)

    async def _activate(self, *, content_id: str) -> None:
        self._pending = None
        self._content_id = content_id
        self._send("arrived")
        self._emit("CONTENT_ARRIVED", content_id=content_id, scene=self._host.active_scene)

        ctx = ReconcileContext(
            host=self._host,
            spawn=self._spawn,
            interfering_renderers=self._settings.interfering_renderers,
        )
        with self._host.guard.suppress(SCENE_MANAGER_GLOBAL_WRITES):
            outcomes = run_reconciliation(ctx=ctx)
        self._disabled_interactions = ctx.disabled_interactions
        self._disabled_renderers = ctx.disabled_renderers
        for outcome in outcomes:
            if not outcome.ok:
                self._emit("RECONCILE_STEP_FAILED", step=outcome.step, reason=outcome.detail)

        self._apply_respawn_overrides()

        try:
            await SuspensionPoint("settle_frame").sleep(self._settings.frame_seconds)
            self._fade_in()
            await SuspensionPoint("fade_in").sleep(self._settings.fade_in_seconds)
        finally:
            # An interception during the waits leaves control to the exit path.
            if self.state == OverlayState.active:
                self._resume_control()

        if self.state == OverlayState.active:
            logger.info("[overlay] overlay %s active", content_id)

    def _apply_respawn_overrides(self) -> None:
        for name, value in self._settings.respawn_overrides.items():
            try:
                self._host.store.set(name, value)
            except Exception as e:
                logger.warning("[overlay] could not apply respawn override %s: %s", name, e)

    # ------------------------------------------------------------------
    # Exit
    # ------------------------------------------------------------------

    def request_exit(self) -> bool:
        try:
            pipeline_for("exit").validate(ctx=self._request_context("exit"))
        except PreconditionRejected as e:
            logger.warning("[overlay] exit rejected: %s", e)
            self._emit("EXIT_REJECTED", reason=str(e))
            return False

        target = self._return.return_content_id
        logger.info("[overlay] leaving %s, returning to %s", self._content_id, target)

        self._exit_target = target
        self._suspend_control()
        self.cleanup(reason="request_exit")

        info = TransitionInfo(target=target, entry_gate=self._settings.return_entry_gate, origin="exit")
        try:
            self._host.begin_scene_transition(info)
        except Exception as e:
            logger.error("[overlay] host transition to %s failed: %s; finalizing anyway", target, e)
            self._schedule_finalize()
        return True

    def on_host_transition_attempt(self, info: TransitionInfo) -> HookDecision:
        """Pre-hook run by the host before any native scene transition."""

        state = self.state
        decision = decide(state=state, return_context=self._return, info=info)
        if state != OverlayState.active:
            return decision

        self._exit_target = effective_target(decision=decision, info=info)
        logger.info(
            "[overlay] host transition while active (origin=%s, target=%r, respawning=%s) -> %s",
            info.origin,
            info.target,
            info.respawning,
            self._exit_target,
        )

        self._suspend_control()
        self.cleanup(reason="host_transition")
        self._emit(
            "TRANSITION_INTERCEPTED",
            origin=info.origin,
            requested_target=info.target,
            effective_target=self._exit_target,
            redirected=decision.modified,
            respawning=info.respawning,
        )
        return decision

    def cleanup(self, *, reason: CleanupReason = "host_transition") -> bool:
        """Reset overlay bookkeeping and reclaim overlay-owned resources.

        Idempotent: a no-op unless the overlay is active. Never starts a transition;
        that is the caller's job. Content stays resident so a re-entry can reuse it.
        """

        if self.state != OverlayState.active:
            return False

        self._send(reason)
        self._content_id = None

        for handle in self._disabled_interactions:
            try:
                self._host.interactions.reactivate(handle)
            except Exception as e:
                logger.warning("[overlay] could not reactivate interaction %s: %s", handle, e)
        self._disabled_interactions = []

        for path in self._disabled_renderers:
            try:
                self._host.renderers.set_renderer_enabled(path, True)
            except Exception as e:
                logger.warning("[overlay] could not re-enable renderer %s: %s", path, e)
        self._disabled_renderers = []

        destroyed = self._destroy_leftovers()
        self._emit("CLEANUP_DONE", reason=reason, leftovers_destroyed=destroyed)
        return True

    def _destroy_leftovers(self) -> int:
        names = set(self._settings.leftover_object_names)
        if not names:
            return 0

        destroyed = 0
        try:
            for name in self._host.persistent.root_names():
                if name in names:
                    self._host.persistent.destroy(name)
                    destroyed += 1
        except Exception as e:
            logger.warning("[overlay] leftover cleanup incomplete: %s", e)

        if destroyed:
            logger.info("[overlay] destroyed %d leftover objects", destroyed)
        return destroyed

    def _schedule_finalize(self) -> None:
        if self._exit_task is not None and not self._exit_task.done():
            return
        self._exit_task = asyncio.get_running_loop().create_task(self._finalize(), name="overlay-return")

    async def _finalize(self) -> None:
        point = SuspensionPoint("finished_entering", timeout=self._settings.finished_entering_timeout_seconds)
        finished = await point.poll_until(
            lambda: self._host.has_finished_entering_scene,
            frame_seconds=self._settings.frame_seconds,
        )
        if not finished:
            logger.warning("[overlay] host did not confirm scene entry in time; proceeding anyway")

        if self.state != OverlayState.exiting:
            return

        try:
            self._host.hud.show()
        except Exception as e:
            logger.warning("[overlay] could not restore HUD: %s", e)

        if self._snapshot is not None:
            try:
                self._snapshot.restore(store=self._host.store)
            except Exception as e:
                logger.warning("[overlay] could not restore session fields %s: %s", self._snapshot.fields, e)
            self._snapshot = None

        returned_to = self._host.active_scene
        self._return = self._return.invalidated()
        self._disabled_interactions = []
        self._exit_target = None
        self._target_content_id = ""

        self._send("returned")
        self._resume_control()
        self._emit("RETURNED", scene=returned_to, confirmed=finished)
        logger.info("[overlay] returned to %s", returned_to)

    # ------------------------------------------------------------------
    # Host scene notifications / session lifetime
    # ------------------------------------------------------------------

    def on_scene_changed(self, old_scene: str, new_scene: str) -> None:
        if new_scene in self._settings.title_scenes:
            self._reset_state()
            return

        if self._pending is not None and new_scene == self._target_content_id:
            logger.info("[overlay] arrived at %s", new_scene)
            self._arrival.set()
            return

        if self.state == OverlayState.exiting and new_scene in {self._return.return_content_id, self._exit_target}:
            logger.info("[overlay] back at %s (from %s)", new_scene, old_scene)
            self._schedule_finalize()

    def _reset_state(self) -> None:
        for task in (self._entry_task, self._exit_task):
            if task is not None and not task.done():
                task.cancel()
        self._entry_task = None
        self._exit_task = None

        self._fsm = OverlayFSM()
        self._return = ReturnContext.empty()
        self._pending = None
        self._snapshot = None
        self._disabled_interactions = []
        self._disabled_renderers = []
        self._content_id = None
        self._target_content_id = ""
        self._exit_target = None
        self._arrival.clear()
        self._control_suspended = False
        self._faded_out = False

        logger.info("[overlay] state reset")
        self._emit("SESSION_RESET")

    def dispose(self) -> None:
        """Session teardown: everything is discarded regardless of the current state."""

        self._reset_state()
        self._host.guard.unregister(self.on_host_transition_attempt)
        self._host.remove_scene_listener(self.on_scene_changed)
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _request_context(self, operation: str) -> RequestContext:
        return RequestContext(
            operation=operation,
            state=self.state,
            pending_entry=self._pending,
            return_context=self._return,
            player_present=self._host.player is not None,
            host_scene=self._host.active_scene,
        )

    def _send(self, event: str) -> None:
        before = self.state
        try:
            self._fsm.send(event)
        except TransitionNotAllowed:
            logger.error("[overlay] illegal transition '%s' from %s", event, before.value)
            raise
        self._emit("STATE_CHANGED", event=event, source=before.value, target=self.state.value)

    def _suspend_control(self) -> None:
        if self._control_suspended:
            return
        self._host.control.suspend_control()
        self._control_suspended = True

    def _resume_control(self) -> None:
        if not self._control_suspended:
            return
        self._host.control.resume_control()
        self._control_suspended = False

    def _fade_out(self) -> None:
        try:
            self._host.fader.fade_out()
            self._faded_out = True
        except Exception as e:
            logger.warning("[overlay] screen fade-out failed: %s", e)

    def _fade_in(self) -> None:
        try:
            self._host.fader.fade_in()
            self._faded_out = False
        except Exception as e:
            logger.error("[overlay] screen fade-in failed: %s", e)

    def _emit(self, type: EventType, **payload: Any) -> None:
        event = OverlayEvent.now(type=type, state=self.state.value, payload=payload)
        self.history.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("[overlay] listener failed for %s", type)

"""Post-arrival reconciliation of overlay content with the host session.

Steps run in a fixed order (interaction points, audio, scene metadata, renderers,
camera/player) because later ones assume the earlier ones already settled.
None of them is required for basic playability: a failing step is logged and
skipped, and the overlay still becomes active.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from overlay.core.records import Vector3
from overlay.host.ports import HostSession

logger = logging.getLogger(__name__)


class MissingCollaboratorError(RuntimeError):
    """A host object the step depends on is absent."""


@dataclass(slots=True)
class ReconcileContext:
    host: HostSession
    spawn: Vector3
    interfering_renderers: tuple[str, ...] = ()
    # Interaction handles deactivated on entry; handed back to the controller.
    disabled_interactions: list[str] = field(default_factory=list)
    disabled_renderers: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class StepOutcome:
    step: str
    ok: bool
    detail: str = ""


class ReconciliationStep(ABC):
    name: str = "step"

    @abstractmethod
    def apply(self, *, ctx: ReconcileContext) -> str:
        """Run the step; returns a short summary for the log."""
        raise NotImplementedError


class DisableStrayInteractions(ReconciliationStep):
    name = "interactions"

    def apply(self, *, ctx: ReconcileContext) -> str:
        handles = ctx.host.interactions.content_interactions()
        for handle in handles:
            if handle in ctx.disabled_interactions:
                continue
            ctx.host.interactions.deactivate(handle)
            ctx.disabled_interactions.append(handle)
        return f"deactivated={len(ctx.disabled_interactions)}"


class GraftAudioMixers(ReconciliationStep):
    """Route content mixers into same-named host mixers so host volume settings apply."""

    name = "audio"

    def apply(self, *, ctx: ReconcileContext) -> str:
        host_mixers = ctx.host.audio.host_mixers()
        if not host_mixers:
            raise MissingCollaboratorError("host exposes no audio mixers")

        content_mixers = ctx.host.audio.content_mixers()
        if not content_mixers:
            return "nothing to graft"

        grafted = 0
        for mixer in content_mixers:
            if mixer not in host_mixers:
                logger.warning("[overlay] content mixer %r has no same-named host mixer", mixer)
                continue
            ctx.host.audio.graft(mixer, host_mixers[mixer])
            grafted += 1
        return f"grafted={grafted}/{len(content_mixers)}"


class EnsureSceneMetadata(ReconciliationStep):
    name = "scene_metadata"

    def apply(self, *, ctx: ReconcileContext) -> str:
        reused = ctx.host.scene_metadata.ensure_memory_zone()
        return "reused existing scene manager" if reused else "created minimal scene manager"


class DisableInterferingRenderers(ReconciliationStep):
    name = "renderers"

    def apply(self, *, ctx: ReconcileContext) -> str:
        for path in ctx.interfering_renderers:
            if ctx.host.renderers.set_renderer_enabled(path, False):
                ctx.disabled_renderers.append(path)
        return f"disabled={len(ctx.disabled_renderers)}"


class SyncCameraToSpawn(ReconciliationStep):
    name = "camera"

    def apply(self, *, ctx: ReconcileContext) -> str:
        player = ctx.host.player
        if player is None:
            raise MissingCollaboratorError("no active player to place at spawn")
        player.scene_init(ctx.spawn)
        ctx.host.camera.snap_to(ctx.spawn)
        return f"spawn={ctx.spawn.as_tuple()}"


DEFAULT_STEPS: tuple[ReconciliationStep, ...] = (
    DisableStrayInteractions(),
    GraftAudioMixers(),
    EnsureSceneMetadata(),
    DisableInterferingRenderers(),
    SyncCameraToSpawn(),
)


def run_reconciliation(
    *, ctx: ReconcileContext, steps: tuple[ReconciliationStep, ...] = DEFAULT_STEPS
) -> list[StepOutcome]:
    outcomes: list[StepOutcome] = []
    for step in steps:
        try:
            detail = step.apply(ctx=ctx)
        except Exception as e:
            logger.warning("[overlay] reconciliation step '%s' failed: %s", step.name, e)
            outcomes.append(StepOutcome(step=step.name, ok=False, detail=str(e)))
            continue
        logger.info("[overlay] reconciliation step '%s': %s", step.name, detail)
        outcomes.append(StepOutcome(step=step.name, ok=True, detail=detail))
    return outcomes

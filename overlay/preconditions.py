from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from overlay.core.records import OverlayState, PendingEntry, ReturnContext


class PreconditionRejected(ValueError):
    """A request arrived in a state where it cannot be honored; nothing changed."""


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Inputs available to validators.

    Keep this tight and serializable-ish so we can safely log it.
    """

    operation: str
    state: OverlayState
    pending_entry: PendingEntry | None
    return_context: ReturnContext
    player_present: bool
    host_scene: str = ""


class RequestValidator(ABC):
    """A small, composable validation unit for an incoming request."""

    @abstractmethod
    def validate(self, *, ctx: RequestContext) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class StateValidator(RequestValidator):
    allowed_states: frozenset[OverlayState]

    def validate(self, *, ctx: RequestContext) -> None:
        if ctx.state not in self.allowed_states:
            allowed = ",".join(sorted(s.value for s in self.allowed_states))
            raise PreconditionRejected(
                f"Request '{ctx.operation}' not allowed in state '{ctx.state.value}' (allowed: {allowed})"
            )


@dataclass(frozen=True, slots=True)
class NoPendingEntryValidator(RequestValidator):
    """At most one entry may be in flight; a second one is rejected, never queued."""

    def validate(self, *, ctx: RequestContext) -> None:
        if ctx.pending_entry is not None:
            raise PreconditionRejected(
                f"Request '{ctx.operation}' rejected: entry to '{ctx.pending_entry.target_content_id}' is pending"
            )


@dataclass(frozen=True, slots=True)
class PlayerPresentValidator(RequestValidator):
    def validate(self, *, ctx: RequestContext) -> None:
        if not ctx.player_present:
            raise PreconditionRejected(f"Request '{ctx.operation}' rejected: no active player")


@dataclass(frozen=True, slots=True)
class HostSessionValidator(RequestValidator):
    """The host must be in a live scene to carry the session back."""

    def validate(self, *, ctx: RequestContext) -> None:
        if not ctx.host_scene.strip():
            raise PreconditionRejected(f"Request '{ctx.operation}' rejected: no host session")


@dataclass(frozen=True, slots=True)
class ReturnContextValidator(RequestValidator):
    def validate(self, *, ctx: RequestContext) -> None:
        if not ctx.return_context.valid:
            raise PreconditionRejected(f"Request '{ctx.operation}' rejected: no valid return context")


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[RequestValidator, ...]

    def validate(self, *, ctx: RequestContext) -> None:
        for v in self.validators:
            v.validate(ctx=ctx)


DEFAULT_PIPELINES: dict[str, ValidatorPipeline] = {
    "enter": ValidatorPipeline(
        validators=(
            StateValidator(allowed_states=frozenset({OverlayState.idle})),
            NoPendingEntryValidator(),
            PlayerPresentValidator(),
        )
    ),
    "exit": ValidatorPipeline(
        validators=(
            StateValidator(allowed_states=frozenset({OverlayState.active})),
            ReturnContextValidator(),
            HostSessionValidator(),
        )
    ),
}


def pipeline_for(operation: str) -> ValidatorPipeline:
    pipe = DEFAULT_PIPELINES.get(operation)
    if pipe is None:
        raise ValueError(f"Unknown operation: {operation}")
    return pipe

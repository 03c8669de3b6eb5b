from __future__ import annotations

import os
from dataclasses import dataclass, field


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be a number (got {raw!r})") from e


def _csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return tuple(s.strip() for s in raw.split(",") if s.strip())


@dataclass(frozen=True, slots=True)
class OverlaySettings:
    # Entry animation: kneel, then prostrate.
    kneel_seconds: float = 0.8
    prostrate_seconds: float = 1.0
    kneel_clip: str = "Abyss Kneel"
    prostrate_clip: str = "Kneel To Prostrate"

    fade_out_seconds: float = 0.5
    fade_in_seconds: float = 0.5

    # Bounded waits.
    load_timeout_seconds: float = 30.0
    finished_entering_timeout_seconds: float = 5.0

    # One simulated frame.
    frame_seconds: float = 1 / 60

    # Host session fields frozen between capture and restore.
    snapshot_fields: tuple[str, ...] = ("respawn_scene", "respawn_marker", "respawn_type")
    # Temporary overrides written once the overlay is active (restored on return).
    respawn_overrides: dict[str, object] = field(default_factory=dict)

    # Objects the overlay content may leak into the persistent object space.
    leftover_object_names: tuple[str, ...] = (
        "Radiant Nail Comb(Clone)",
        "Radiant Beam R(Clone)",
        "Radiant Beam L(Clone)",
        "Radiant Nail(Clone)",
    )
    # Global renderers that interfere with the overlay content.
    interfering_renderers: tuple[str, ...] = ("_GameCameras/CameraParent/tk2dCamera/Masker Blackout",)

    title_scenes: tuple[str, ...] = ("Menu_Title", "Quit_To_Menu")
    return_entry_gate: str = "_overlay_return"

    default_content_id: str = "GG_Radiance"
    default_spawn: tuple[float, float, float] = (62.07, 21.6402, 0.004)

    @property
    def entry_animation_seconds(self) -> float:
        return self.kneel_seconds + self.prostrate_seconds


def settings_from_env() -> OverlaySettings:
    d = OverlaySettings()
    return OverlaySettings(
        kneel_seconds=_float_env("OVERLAY_KNEEL_SECONDS", d.kneel_seconds),
        prostrate_seconds=_float_env("OVERLAY_PROSTRATE_SECONDS", d.prostrate_seconds),
        fade_out_seconds=_float_env("OVERLAY_FADE_OUT_SECONDS", d.fade_out_seconds),
        fade_in_seconds=_float_env("OVERLAY_FADE_IN_SECONDS", d.fade_in_seconds),
        load_timeout_seconds=_float_env("OVERLAY_LOAD_TIMEOUT_SECONDS", d.load_timeout_seconds),
        finished_entering_timeout_seconds=_float_env(
            "OVERLAY_FINISHED_ENTERING_TIMEOUT_SECONDS", d.finished_entering_timeout_seconds
        ),
        frame_seconds=_float_env("OVERLAY_FRAME_SECONDS", d.frame_seconds),
        snapshot_fields=_csv_env("OVERLAY_SNAPSHOT_FIELDS", d.snapshot_fields),
        leftover_object_names=_csv_env("OVERLAY_LEFTOVER_OBJECTS", d.leftover_object_names),
        interfering_renderers=_csv_env("OVERLAY_INTERFERING_RENDERERS", d.interfering_renderers),
        title_scenes=_csv_env("OVERLAY_TITLE_SCENES", d.title_scenes),
        return_entry_gate=os.environ.get("OVERLAY_RETURN_ENTRY_GATE", d.return_entry_gate),
        default_content_id=os.environ.get("OVERLAY_DEFAULT_CONTENT_ID", d.default_content_id),
    )

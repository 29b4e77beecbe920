"""Session configuration loaded from JSON or built in code."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .lanes import CadenceCurve, LaneMode, SpawnPolicy
from .routing import LaneId, PitchRange, default_pitch_range, lanes_for_mode

__all__ = [
    "CONFIG_ENV_VAR",
    "ConfigError",
    "LaneSettings",
    "SessionConfig",
    "session_config_from_dict",
    "load_session_config",
    "resolve_config_path",
]

CONFIG_ENV_VAR = "NOTE_LANES_CONFIG"


class ConfigError(ValueError):
    """Raised when a session configuration cannot be understood."""


@dataclass
class LaneSettings:
    lives: int = 3
    mode: LaneMode = LaneMode.MELODY
    pitch_range: Optional[PitchRange] = None


@dataclass
class SessionConfig:
    """Everything needed to start a session.

    ``strict_octave`` and the per-lane ``mode`` mirror persisted user settings;
    the engine only reads them.
    """

    dual_lane: bool = False
    level: int = 1
    spawn_policy: SpawnPolicy = SpawnPolicy.QUEUED
    start_delay_ms: float = 2000.0
    movement_speed: float = 100.0
    strict_octave: bool = True
    cadence: CadenceCurve = field(default_factory=CadenceCurve)
    lanes: Dict[LaneId, LaneSettings] = field(default_factory=dict)

    def lane_settings(self, lane_id: LaneId) -> LaneSettings:
        return self.lanes.get(LaneId(lane_id)) or LaneSettings()

    def pitch_range_for(self, lane_id: LaneId) -> PitchRange:
        configured = self.lane_settings(lane_id).pitch_range
        return configured or default_pitch_range(lane_id)

    def active_lanes(self) -> tuple[LaneId, ...]:
        return lanes_for_mode(self.dual_lane)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dual_lane": self.dual_lane,
            "level": self.level,
            "spawn_policy": self.spawn_policy.value,
            "start_delay_ms": self.start_delay_ms,
            "movement_speed": self.movement_speed,
            "strict_octave": self.strict_octave,
            "cadence": {
                "start_ms": self.cadence.start_ms,
                "step_ms": self.cadence.step_ms,
                "floor_ms": self.cadence.floor_ms,
            },
            "lanes": {
                lane_id.value: {
                    "lives": settings.lives,
                    "mode": settings.mode.value,
                    **({"range": settings.pitch_range.to_list()} if settings.pitch_range else {}),
                }
                for lane_id, settings in self.lanes.items()
            },
        }


def _enum_value(enum_cls, raw: Any, what: str):
    try:
        return enum_cls(str(raw).lower())
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ConfigError(f"Unknown {what} {raw!r}; expected one of: {allowed}.") from exc


def _number(raw: Any, cast, what: str):
    if isinstance(raw, bool):
        raise ConfigError(f"{what} must be a number, got {raw!r}.")
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{what} must be a number, got {raw!r}.") from exc


def _flag(raw: Any, what: str) -> bool:
    if not isinstance(raw, bool):
        raise ConfigError(f"{what} must be true or false, got {raw!r}.")
    return raw


def _mapping(raw: Any, what: str) -> Mapping[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{what} must be an object, got {raw!r}.")
    return raw


def _range_from_value(raw: Any) -> Optional[PitchRange]:
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        low, high = raw.get("min"), raw.get("max")
    elif isinstance(raw, (list, tuple)) and len(raw) == 2:
        low, high = raw
    else:
        raise ConfigError(f"Pitch range must be [min, max] or {{'min', 'max'}}, got {raw!r}.")
    try:
        return PitchRange(int(low), int(high))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid pitch range {raw!r}: {exc}") from exc


def _lane_from_dict(raw: Mapping[str, Any]) -> LaneSettings:
    lives = _number(raw.get("lives", 3), int, "Lane lives")
    if lives < 0:
        raise ConfigError("Lane lives cannot be negative.")
    return LaneSettings(
        lives=lives,
        mode=_enum_value(LaneMode, raw.get("mode", "melody"), "lane mode"),
        pitch_range=_range_from_value(raw.get("range")),
    )


def _cadence_from_dict(raw: Any) -> CadenceCurve:
    raw = _mapping(raw, "cadence")
    if not raw:
        return CadenceCurve()
    curve = CadenceCurve(
        start_ms=_number(raw.get("start_ms", 2200.0), float, "Cadence start_ms"),
        step_ms=_number(raw.get("step_ms", 200.0), float, "Cadence step_ms"),
        floor_ms=_number(raw.get("floor_ms", 800.0), float, "Cadence floor_ms"),
    )
    if curve.floor_ms <= 0:
        raise ConfigError("Cadence floor must be positive.")
    return curve


def session_config_from_dict(raw: Mapping[str, Any]) -> SessionConfig:
    """Build a :class:`SessionConfig`; unknown keys are ignored."""

    lanes: Dict[LaneId, LaneSettings] = {}
    for name, lane_raw in _mapping(raw.get("lanes"), "lanes").items():
        lane_id = _enum_value(LaneId, name, "lane")
        lanes[lane_id] = _lane_from_dict(_mapping(lane_raw, f"Lane {name!r}"))

    level = _number(raw.get("level", 1), int, "Level")
    if level < 1:
        raise ConfigError("Level starts at 1.")

    return SessionConfig(
        dual_lane=_flag(raw.get("dual_lane", False), "dual_lane"),
        level=level,
        spawn_policy=_enum_value(SpawnPolicy, raw.get("spawn_policy", "queued"), "spawn policy"),
        start_delay_ms=_number(raw.get("start_delay_ms", 2000.0), float, "start_delay_ms"),
        movement_speed=_number(raw.get("movement_speed", 100.0), float, "movement_speed"),
        strict_octave=_flag(raw.get("strict_octave", True), "strict_octave"),
        cadence=_cadence_from_dict(raw.get("cadence")),
        lanes=lanes,
    )


def load_session_config(path: str | Path) -> SessionConfig:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a JSON object.")
    return session_config_from_dict(raw)


def resolve_config_path(explicit: str | Path | None = None) -> Optional[Path]:
    """Return the config file to load, preferring ``explicit`` over the env var."""

    if explicit:
        return Path(explicit).expanduser()
    env_value = os.environ.get(CONFIG_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser()
    return None

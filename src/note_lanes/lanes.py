"""Per-lane mutable state: lives, target queue, chord window and spawn cadence."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Optional

from .routing import LaneId, PitchRange
from .targets import Target, TargetGenerator

__all__ = [
    "CHORD_CADENCE_MULTIPLIER",
    "LaneMode",
    "SpawnPolicy",
    "CadenceCurve",
    "ChordWindow",
    "LaneState",
]

# Chords spawn 25% slower than melody notes at the same level.
CHORD_CADENCE_MULTIPLIER = 1.25


class LaneMode(str, Enum):
    MELODY = "melody"
    CHORD = "chord"


class SpawnPolicy(str, Enum):
    QUEUED = "queued"
    ONE_AT_A_TIME = "one-at-a-time"


@dataclass(frozen=True)
class CadenceCurve:
    """Spawn interval as a function of level, shrinking down to a floor."""

    start_ms: float = 2200.0
    step_ms: float = 200.0
    floor_ms: float = 800.0

    def spawn_interval_ms(self, level: int) -> float:
        return max(self.floor_ms, self.start_ms - (max(1, level) - 1) * self.step_ms)

    def chord_interval_ms(self, level: int) -> float:
        return self.spawn_interval_ms(level) * CHORD_CADENCE_MULTIPLIER


@dataclass
class ChordWindow:
    target_id: str
    started_at_ms: float
    collected: set[int] = field(default_factory=set)


@dataclass
class LaneState:
    """Everything the engine tracks for a single lane.

    ``queue[0]`` is the only target eligible for matching. ``enabled`` is
    derived from ``lives`` so a lane cannot be re-enabled without a reset.
    """

    lane_id: LaneId
    mode: LaneMode
    lives: int
    pitch_range: PitchRange
    spawn_policy: SpawnPolicy = SpawnPolicy.QUEUED
    cadence: CadenceCurve = field(default_factory=CadenceCurve)
    movement_speed: float = 100.0
    generator: TargetGenerator = field(default_factory=TargetGenerator)
    queue: Deque[Target] = field(default_factory=deque)
    chord_window: Optional[ChordWindow] = None
    next_spawn_at_ms: float = 0.0
    held: set[int] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.lane_id = LaneId(self.lane_id)
        self.mode = LaneMode(self.mode)
        self.spawn_policy = SpawnPolicy(self.spawn_policy)
        self.lives = max(0, int(self.lives))

    @property
    def enabled(self) -> bool:
        return self.lives > 0

    @property
    def head(self) -> Optional[Target]:
        return self.queue[0] if self.queue else None

    def push(self, target: Target) -> None:
        self.queue.append(target)

    def pop_head(self) -> Optional[Target]:
        if not self.queue:
            return None
        target = self.queue.popleft()
        self.chord_window = None
        return target

    def lose_life(self) -> int:
        self.lives = max(0, self.lives - 1)
        return self.lives

    def spawn_interval_ms(self, level: int) -> float:
        if self.mode is LaneMode.CHORD:
            return self.cadence.chord_interval_ms(level)
        return self.cadence.spawn_interval_ms(level)

    def next_target(self) -> Target:
        return self.generator.next_target(self.mode.value, self.pitch_range)

    def to_dict(self) -> dict[str, object]:
        head = self.head
        return {
            "lane": self.lane_id.value,
            "mode": self.mode.value,
            "lives": self.lives,
            "enabled": self.enabled,
            "queued": len(self.queue),
            "head": head.to_dict() if head is not None else None,
            "held": sorted(self.held),
            "window_collected": sorted(self.chord_window.collected) if self.chord_window else [],
            "range": self.pitch_range.to_list(),
        }

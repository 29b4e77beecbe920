"""Map incoming pitches to lanes and describe each lane's playable range."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

__all__ = [
    "SPLIT_POINT",
    "LaneId",
    "PitchRange",
    "route",
    "lanes_for_mode",
    "default_pitch_range",
]

# Highest pitch routed to the primary lane in dual-lane mode (B3).
SPLIT_POINT = 59


class LaneId(str, Enum):
    PRIMARY = "bass"
    SECONDARY = "treble"
    DEFAULT = "mono"


@dataclass(frozen=True)
class PitchRange:
    """Inclusive MIDI pitch range ``[low, high]``."""

    low: int
    high: int

    def __post_init__(self) -> None:
        if self.low > self.high:
            raise ValueError(f"Pitch range low ({self.low}) is above high ({self.high}).")

    def __contains__(self, pitch: object) -> bool:
        return isinstance(pitch, int) and self.low <= pitch <= self.high

    def clamp(self, pitch: int) -> int:
        return max(self.low, min(self.high, pitch))

    def random_pitch(self, rng: random.Random) -> int:
        return rng.randint(self.low, self.high)

    @property
    def span(self) -> int:
        return self.high - self.low

    def to_list(self) -> list[int]:
        return [self.low, self.high]


_DEFAULT_RANGES = {
    LaneId.PRIMARY: PitchRange(21, SPLIT_POINT),
    LaneId.SECONDARY: PitchRange(SPLIT_POINT + 1, 96),
    LaneId.DEFAULT: PitchRange(36, 84),
}


def route(pitch: int, dual_lane: bool) -> LaneId:
    """Return the lane that evaluates ``pitch``.

    With dual-lane mode off every pitch goes to :attr:`LaneId.DEFAULT`. With it
    on, pitches up to and including :data:`SPLIT_POINT` go to the primary
    (bass) lane and everything above to the secondary (treble) lane.
    """

    if not dual_lane:
        return LaneId.DEFAULT
    return LaneId.PRIMARY if pitch <= SPLIT_POINT else LaneId.SECONDARY


def lanes_for_mode(dual_lane: bool) -> Tuple[LaneId, ...]:
    if dual_lane:
        return (LaneId.PRIMARY, LaneId.SECONDARY)
    return (LaneId.DEFAULT,)


def default_pitch_range(lane_id: LaneId) -> PitchRange:
    return _DEFAULT_RANGES[LaneId(lane_id)]

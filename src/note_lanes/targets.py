"""Melody and chord targets plus the range-safe generator that produces them."""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Union

import pretty_midi

from .routing import PitchRange

__all__ = [
    "MELODY_STEPS",
    "TRIAD_INTERVALS",
    "Melody",
    "Chord",
    "Target",
    "TargetGenerator",
    "new_target_id",
    "build_triad",
    "fold_into_range",
]

# Signed semitone steps applied to the seed pitch; small steps dominate.
MELODY_STEPS = (-2, -2, -1, -1, 1, 1, 2, 2, 3, -3)

TRIAD_INTERVALS = {
    "major": (0, 4, 7),
    "minor": (0, 3, 7),
}


def new_target_id() -> str:
    return uuid.uuid4().hex


def _pitch_name(pitch: int) -> str:
    return pretty_midi.note_number_to_name(pitch)


@dataclass(frozen=True)
class Melody:
    """A single note the player must hit exactly."""

    pitch: int
    id: str = field(default_factory=new_target_id)

    kind = "melody"

    @property
    def pitches(self) -> frozenset[int]:
        return frozenset({self.pitch})

    @property
    def label(self) -> str:
        return _pitch_name(self.pitch)

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "id": self.id, "pitches": [self.pitch], "label": self.label}


@dataclass(frozen=True)
class Chord:
    """A set of pitches that must all be collected inside the chord window."""

    pitches: frozenset[int]
    id: str = field(default_factory=new_target_id)

    kind = "chord"

    def __post_init__(self) -> None:
        # Accept any iterable of pitches; duplicates collapse.
        object.__setattr__(self, "pitches", frozenset(int(p) for p in self.pitches))

    @property
    def label(self) -> str:
        if not self.pitches:
            return "(empty)"
        return "-".join(_pitch_name(p) for p in sorted(self.pitches))

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "id": self.id, "pitches": sorted(self.pitches), "label": self.label}


Target = Union[Melody, Chord]


def build_triad(root: int, quality: str) -> List[int]:
    return [root + interval for interval in TRIAD_INTERVALS[quality]]


def fold_into_range(pitch: int, pitch_range: PitchRange) -> Optional[int]:
    """Shift ``pitch`` by octaves until it lies in ``pitch_range``.

    Returns ``None`` when no octave of the pitch class fits, which can only
    happen for ranges narrower than an octave.
    """

    while pitch < pitch_range.low:
        pitch += 12
    while pitch > pitch_range.high:
        pitch -= 12
    if pitch in pitch_range:
        return pitch
    return None


class TargetGenerator:
    """Produce the next target for one lane.

    The generator remembers the last melody pitch it produced so consecutive
    melody targets move like a phrase instead of jumping around the range.
    """

    def __init__(self, rng: random.Random | None = None, *, steps: Sequence[int] = MELODY_STEPS) -> None:
        self._rng = rng or random.Random()
        self._steps = tuple(steps)
        self.last_melody_pitch: Optional[int] = None

    def next_melody(self, pitch_range: PitchRange) -> Melody:
        if self.last_melody_pitch is not None:
            seed = self.last_melody_pitch
        else:
            seed = pitch_range.random_pitch(self._rng)
        pitch = pitch_range.clamp(seed + self._rng.choice(self._steps))
        self.last_melody_pitch = pitch
        return Melody(pitch=pitch)

    def next_chord(self, pitch_range: PitchRange) -> Chord:
        root = self._rng.randint(pitch_range.low, pitch_range.low + min(pitch_range.span, 12))
        quality = self._rng.choice(sorted(TRIAD_INTERVALS))
        return Chord(pitches=_fit_tones(build_triad(root, quality), pitch_range))

    def next_target(self, mode: str, pitch_range: PitchRange) -> Target:
        if mode == "chord":
            return self.next_chord(pitch_range)
        return self.next_melody(pitch_range)


def _fit_tones(tones: Iterable[int], pitch_range: PitchRange) -> frozenset[int]:
    fitted = (fold_into_range(tone, pitch_range) for tone in tones)
    return frozenset(tone for tone in fitted if tone is not None)

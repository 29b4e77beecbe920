"""Recorded takes: timed note-on streams stored as MIDI or CSV files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List

import pandas as pd
import pretty_midi

__all__ = [
    "NoteOnEvent",
    "TakeFormatError",
    "load_take",
    "take_from_pretty_midi",
    "take_to_pretty_midi",
    "take_to_dataframe",
    "save_take",
]

TAKE_COLUMNS = ["time_ms", "pitch", "velocity"]
_NOTE_LENGTH_S = 0.25


class TakeFormatError(RuntimeError):
    """Raised when a take file cannot be read."""


@dataclass(frozen=True)
class NoteOnEvent:
    time_ms: float
    pitch: int
    velocity: int = 96


def take_from_pretty_midi(midi: pretty_midi.PrettyMIDI) -> List[NoteOnEvent]:
    events = [
        NoteOnEvent(time_ms=float(note.start) * 1000.0, pitch=int(note.pitch), velocity=int(note.velocity))
        for instrument in midi.instruments
        if not instrument.is_drum
        for note in instrument.notes
    ]
    return sorted(events, key=lambda ev: (ev.time_ms, ev.pitch))


def _take_from_csv(path: Path) -> List[NoteOnEvent]:
    try:
        frame = pd.read_csv(path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise TakeFormatError(f"Unable to parse CSV take {path}: {exc}") from exc
    missing = {"time_ms", "pitch"} - set(frame.columns)
    if missing:
        raise TakeFormatError(f"{path} is missing column(s): {', '.join(sorted(missing))}.")
    if "velocity" not in frame.columns:
        frame["velocity"] = 96
    try:
        frame = frame.astype({"time_ms": float, "pitch": float, "velocity": float})
    except (TypeError, ValueError) as exc:
        raise TakeFormatError(f"{path} has non-numeric cells: {exc}") from exc
    if frame[TAKE_COLUMNS].isna().any().any():
        raise TakeFormatError(f"{path} has blank cells.")
    frame = frame.sort_values(["time_ms", "pitch"], kind="stable")
    return [
        NoteOnEvent(time_ms=float(row.time_ms), pitch=int(row.pitch), velocity=int(row.velocity))
        for row in frame.itertuples(index=False)
    ]


def load_take(path: str | Path) -> List[NoteOnEvent]:
    """Read a take from ``.mid``/``.midi`` (note starts) or ``.csv`` (``time_ms,pitch[,velocity]``)."""

    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in {".mid", ".midi"}:
        try:
            midi = pretty_midi.PrettyMIDI(str(path))
        except (OSError, ValueError, EOFError) as exc:
            raise TakeFormatError(f"Unable to read MIDI take {path}: {exc}") from exc
        return take_from_pretty_midi(midi)
    if suffix == ".csv":
        return _take_from_csv(path)
    raise TakeFormatError(f"Unsupported take format '{suffix}'. Use .mid, .midi or .csv.")


def take_to_dataframe(events: Iterable[NoteOnEvent]) -> pd.DataFrame:
    data = [{"time_ms": ev.time_ms, "pitch": ev.pitch, "velocity": ev.velocity} for ev in events]
    if not data:
        return pd.DataFrame(columns=TAKE_COLUMNS)
    return pd.DataFrame(data, columns=TAKE_COLUMNS)


def take_to_pretty_midi(events: Iterable[NoteOnEvent], *, program: int = 0) -> pretty_midi.PrettyMIDI:
    midi = pretty_midi.PrettyMIDI()
    instrument = pretty_midi.Instrument(program=program, name="Take")
    for event in events:
        start = event.time_ms / 1000.0
        instrument.notes.append(
            pretty_midi.Note(
                velocity=max(1, min(127, event.velocity)),
                pitch=event.pitch,
                start=start,
                end=start + _NOTE_LENGTH_S,
            )
        )
    midi.instruments.append(instrument)
    return midi


def save_take(events: Iterable[NoteOnEvent], path: str | Path) -> Path:
    path = Path(path)
    events = list(events)
    suffix = path.suffix.lower()
    if suffix in {".mid", ".midi"}:
        take_to_pretty_midi(events).write(str(path))
    elif suffix == ".csv":
        take_to_dataframe(events).to_csv(path, index=False)
    else:
        raise TakeFormatError(f"Unsupported take format '{suffix}'. Use .mid, .midi or .csv.")
    return path

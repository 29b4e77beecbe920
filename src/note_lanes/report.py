"""Record engine notifications and summarise a practice session."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np
import pandas as pd

from .events import EngineListener, FailReason, GameOverReason
from .routing import LaneId
from .targets import Target
from .timers import Clock

__all__ = ["EVENT_COLUMNS", "EngineEvent", "SessionRecorder", "summarize"]

EVENT_COLUMNS = ["time_ms", "kind", "lane", "target_id", "target", "reason", "lives"]


@dataclass
class EngineEvent:
    """One timestamped notification as seen by the recorder."""

    time_ms: float
    kind: str
    lane: Optional[str] = None
    target_id: Optional[str] = None
    target: Optional[str] = None
    reason: Optional[str] = None
    lives: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


class SessionRecorder(EngineListener):
    """Listener that keeps an in-memory log of everything the engine reports."""

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._events: List[EngineEvent] = []

    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self._events)

    @property
    def events(self) -> List[EngineEvent]:
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

    def _record(self, kind: str, lane: LaneId | None = None, target: Target | None = None, **extra: Any) -> None:
        self._events.append(
            EngineEvent(
                time_ms=float(self._clock()),
                kind=kind,
                lane=lane.value if lane is not None else None,
                target_id=target.id if target is not None else None,
                target=target.label if target is not None else None,
                **extra,
            )
        )

    def on_target_spawned(self, lane: LaneId, target: Target) -> None:
        self._record("spawn", lane, target)

    def on_success(self, lane: LaneId, target: Target) -> None:
        self._record("success", lane, target)

    def on_fail(self, lane: LaneId, target: Target, reason: FailReason) -> None:
        self._record("fail", lane, target, reason=reason.value)

    def on_lives_changed(self, lane: LaneId, lives: int) -> None:
        self._record("lives", lane, lives=lives)

    def on_lane_disabled(self, lane: LaneId) -> None:
        self._record("lane-disabled", lane)

    def on_game_over(self, reason: GameOverReason) -> None:
        self._record("game-over", reason=reason.value)

    def to_dataframe(self) -> pd.DataFrame:
        data = [event.to_dict() for event in self._events]
        if not data:
            return pd.DataFrame(columns=EVENT_COLUMNS)
        return pd.DataFrame(data, columns=EVENT_COLUMNS)


def summarize(frame: pd.DataFrame) -> pd.DataFrame:
    """Per-lane outcome table for a recorded session.

    Columns: ``successes``, ``fails``, ``accuracy`` (0..1, NaN with no
    resolutions), one ``fail:<reason>`` column per failure reason and
    ``median_resolve_ms``, the median time from spawn to resolution.
    """

    reasons = [reason.value for reason in FailReason]
    columns = ["successes", "fails", "accuracy", *[f"fail:{r}" for r in reasons], "median_resolve_ms"]
    lanes = [lane for lane in frame["lane"].dropna().unique()] if not frame.empty else []
    if not lanes:
        return pd.DataFrame(columns=columns)

    spawns = frame[frame["kind"] == "spawn"][["target_id", "time_ms"]].rename(columns={"time_ms": "spawned_ms"})
    resolved = frame[frame["kind"].isin(["success", "fail"])]
    merged = resolved.merge(spawns, on="target_id", how="left")
    merged["resolve_ms"] = merged["time_ms"] - merged["spawned_ms"]

    rows = []
    for lane in lanes:
        lane_rows = merged[merged["lane"] == lane]
        successes = int((lane_rows["kind"] == "success").sum())
        fails = int((lane_rows["kind"] == "fail").sum())
        total = successes + fails
        latencies = lane_rows["resolve_ms"].dropna().to_numpy(dtype=float)
        row: dict[str, Any] = {
            "lane": lane,
            "successes": successes,
            "fails": fails,
            "accuracy": successes / total if total else np.nan,
            "median_resolve_ms": float(np.median(latencies)) if latencies.size else np.nan,
        }
        for reason in reasons:
            row[f"fail:{reason}"] = int((lane_rows["reason"] == reason).sum())
        rows.append(row)
    return pd.DataFrame(rows).set_index("lane")[columns]

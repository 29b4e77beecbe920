from __future__ import annotations

import random
from types import SimpleNamespace

import pytest

from note_lanes.config import LaneSettings, SessionConfig
from note_lanes.engine import LaneEngine
from note_lanes.events import EngineListener
from note_lanes.lanes import LaneMode, SpawnPolicy
from note_lanes.routing import LaneId, lanes_for_mode
from note_lanes.timers import ManualClock, TimerQueue


class EventLog(EngineListener):
    """Capture engine notifications as plain tuples."""

    def __init__(self) -> None:
        self.events: list[tuple] = []

    def on_target_spawned(self, lane, target):
        self.events.append(("spawn", lane, target.id))

    def on_success(self, lane, target):
        self.events.append(("success", lane, target.id))

    def on_fail(self, lane, target, reason):
        self.events.append(("fail", lane, target.id, reason.value))

    def on_lives_changed(self, lane, lives):
        self.events.append(("lives", lane, lives))

    def on_lane_disabled(self, lane):
        self.events.append(("disabled", lane))

    def on_game_over(self, reason):
        self.events.append(("game-over", reason.value))

    def of_kind(self, kind: str) -> list[tuple]:
        return [event for event in self.events if event[0] == kind]


def make_config(
    *,
    dual_lane: bool = False,
    lives: int = 3,
    modes: dict[LaneId, LaneMode] | None = None,
    policy: SpawnPolicy = SpawnPolicy.QUEUED,
    strict_octave: bool = True,
    start_delay_ms: float = 60_000.0,
) -> SessionConfig:
    modes = modes or {}
    lanes = {
        lane_id: LaneSettings(lives=lives, mode=modes.get(lane_id, LaneMode.MELODY))
        for lane_id in lanes_for_mode(dual_lane)
    }
    return SessionConfig(
        dual_lane=dual_lane,
        spawn_policy=policy,
        strict_octave=strict_octave,
        start_delay_ms=start_delay_ms,
        lanes=lanes,
    )


@pytest.fixture
def make_engine():
    """Build an engine on a manual clock; queued lanes stay empty unless ticked late."""

    def _make(seed: int = 7, **config_kwargs) -> SimpleNamespace:
        clock = ManualClock()
        timers = TimerQueue(clock)
        log = EventLog()
        engine = LaneEngine(
            make_config(**config_kwargs),
            scheduler=timers,
            clock=clock,
            listener=log,
            rng=random.Random(seed),
        )

        def advance(delta_ms: float) -> None:
            clock.advance(delta_ms)
            timers.run_due()

        return SimpleNamespace(engine=engine, clock=clock, timers=timers, log=log, advance=advance)

    return _make

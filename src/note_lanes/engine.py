"""Lane evaluation engine: strict melody rule, chord window rule, lives and spawning."""

from __future__ import annotations

import logging
import random
from typing import Dict, Optional

from .config import SessionConfig
from .events import EngineListener, FailReason, GameOverReason
from .lanes import ChordWindow, LaneState, SpawnPolicy
from .routing import LaneId, route
from .targets import Chord, Melody, Target, TargetGenerator
from .timers import Clock, Scheduler

__all__ = ["WINDOW_MS", "TIMEOUT_SLACK_MS", "LaneEngine"]

logger = logging.getLogger(__name__)

WINDOW_MS = 100.0
# Extra delay before the timeout check so scheduler jitter never fails a chord early.
TIMEOUT_SLACK_MS = 5.0


class LaneEngine:
    """Evaluate note-on events against the head target of each lane.

    The engine is the session context: it owns the lanes, the level and the
    score. It is single-threaded; note-ons and timer callbacks must be
    delivered from the same loop. All outcomes are reported through the
    listener, never raised.
    """

    def __init__(
        self,
        config: SessionConfig,
        *,
        scheduler: Scheduler,
        clock: Clock,
        listener: EngineListener | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self._scheduler = scheduler
        self._clock = clock
        self._listener = listener or EngineListener()
        self._rng = rng or random.Random()
        self.lanes: Dict[LaneId, LaneState] = {}
        self.level = config.level
        self.score = 0
        self.game_over = False
        self.reset()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    @property
    def dual_lane(self) -> bool:
        return self.config.dual_lane

    @property
    def listener(self) -> EngineListener:
        return self._listener

    def reset(self, *, dual_lane: bool | None = None, level: int | None = None) -> None:
        """Rebuild every lane; used at start, on restart and on a mode toggle."""

        if dual_lane is not None:
            self.config.dual_lane = dual_lane
        if level is not None:
            self.set_level(level)
        now = self._clock()
        self.lanes = {}
        for lane_id in self.config.active_lanes():
            settings = self.config.lane_settings(lane_id)
            lane = LaneState(
                lane_id=lane_id,
                mode=settings.mode,
                lives=settings.lives,
                pitch_range=self.config.pitch_range_for(lane_id),
                spawn_policy=self.config.spawn_policy,
                cadence=self.config.cadence,
                movement_speed=self.config.movement_speed,
                generator=TargetGenerator(random.Random(self._rng.random())),
                next_spawn_at_ms=now + self.config.start_delay_ms,
            )
            self.lanes[lane_id] = lane
        self.score = 0
        self.game_over = False
        logger.info(
            "Session reset: lanes=%s level=%d policy=%s",
            ",".join(lane_id.value for lane_id in self.lanes),
            self.level,
            self.config.spawn_policy.value,
        )
        # Lanes configured with zero lives start out disabled.
        for lane in self.lanes.values():
            if not lane.enabled:
                self._listener.on_lane_disabled(lane.lane_id)
        if not any(lane.enabled for lane in self.lanes.values()):
            self._end_game()
            return
        for lane in self.lanes.values():
            if lane.spawn_policy is SpawnPolicy.ONE_AT_A_TIME:
                self._fill_if_empty(lane)

    def set_level(self, level: int) -> None:
        self.level = max(1, int(level))

    def lane(self, lane_id: LaneId) -> LaneState:
        return self.lanes[LaneId(lane_id)]

    def active_target(self, lane_id: LaneId) -> Optional[Target]:
        lane = self.lanes.get(LaneId(lane_id))
        return lane.head if lane is not None else None

    def push_target(self, lane_id: LaneId, target: Target) -> None:
        """Append ``target`` to a lane queue as if the spawner had produced it."""

        lane = self.lane(lane_id)
        lane.push(target)
        self._listener.on_target_spawned(lane.lane_id, target)

    def snapshot(self) -> dict[str, object]:
        return {
            "level": self.level,
            "score": self.score,
            "game_over": self.game_over,
            "dual_lane": self.dual_lane,
            "lanes": [lane.to_dict() for lane in self.lanes.values()],
        }

    # ------------------------------------------------------------------
    # Spawning
    # ------------------------------------------------------------------
    def tick(self, now_ms: float | None = None) -> None:
        """Let the spawner add targets that are due."""

        if self.game_over:
            return
        now = self._clock() if now_ms is None else now_ms
        for lane in self.lanes.values():
            if not lane.enabled:
                continue
            if lane.spawn_policy is SpawnPolicy.ONE_AT_A_TIME:
                self._fill_if_empty(lane)
            elif now >= lane.next_spawn_at_ms:
                self._spawn(lane)
                lane.next_spawn_at_ms = now + lane.spawn_interval_ms(self.level)

    def _spawn(self, lane: LaneState) -> Target:
        target = lane.next_target()
        lane.push(target)
        logger.debug("Spawned %s %s on %s", target.kind, target.label, lane.lane_id.value)
        self._listener.on_target_spawned(lane.lane_id, target)
        return target

    def _fill_if_empty(self, lane: LaneState) -> None:
        if lane.enabled and not self.game_over and lane.head is None:
            self._spawn(lane)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    def on_note_on(self, pitch: int, velocity: int = 64) -> None:
        if velocity <= 0:
            # Running-status note-off.
            self.on_note_off(pitch)
            return

        lane_id = route(pitch, self.dual_lane)
        lane = self.lanes.get(lane_id)
        if lane is None or not lane.enabled:
            return
        lane.held.add(pitch)

        target = lane.head
        if target is None:
            logger.debug("Note %d on empty lane %s ignored", pitch, lane_id.value)
            return

        if isinstance(target, Melody):
            self._evaluate_melody(lane, pitch, target)
        else:
            self._evaluate_chord(lane, pitch, target)

    def on_note_off(self, pitch: int) -> None:
        lane = self.lanes.get(route(pitch, self.dual_lane))
        if lane is not None:
            lane.held.discard(pitch)

    def _melody_matches(self, pitch: int, target: Melody) -> bool:
        if self.config.strict_octave:
            return pitch == target.pitch
        return pitch % 12 == target.pitch % 12

    def _evaluate_melody(self, lane: LaneState, pitch: int, target: Melody) -> None:
        if self._melody_matches(pitch, target):
            self._resolve_success(lane, target)
        else:
            self._resolve_fail(lane, target, FailReason.MELODY_WRONG_NOTE)

    def _evaluate_chord(self, lane: LaneState, pitch: int, target: Chord) -> None:
        if pitch not in target.pitches:
            self._resolve_fail(lane, target, FailReason.CHORD_STRAY)
            return

        window = lane.chord_window
        if window is None or window.target_id != target.id:
            started_at = self._clock()
            window = ChordWindow(target_id=target.id, started_at_ms=started_at)
            lane.chord_window = window
            lane_id, target_id = lane.lane_id, target.id
            self._scheduler.call_later(
                WINDOW_MS + TIMEOUT_SLACK_MS,
                lambda: self._chord_timeout(lane_id, target_id, started_at),
            )

        window.collected.add(pitch)
        if len(window.collected) == len(target.pitches):
            self._resolve_success(lane, target)

    def _chord_timeout(self, lane_id: LaneId, target_id: str, started_at: float) -> None:
        lane = self.lanes.get(lane_id)
        if lane is None or not lane.enabled:
            return
        target = lane.head
        if not isinstance(target, Chord) or target.id != target_id:
            return
        window = lane.chord_window
        if window is None or window.target_id != target_id or window.started_at_ms != started_at:
            return
        if len(window.collected) < len(target.pitches):
            self._resolve_fail(lane, target, FailReason.CHORD_TIMEOUT)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def _resolve_success(self, lane: LaneState, target: Target) -> None:
        lane.pop_head()
        self.score += 1
        logger.info("%s hit %s (score %d)", lane.lane_id.value, target.label, self.score)
        self._listener.on_success(lane.lane_id, target)
        if lane.spawn_policy is SpawnPolicy.ONE_AT_A_TIME:
            self._fill_if_empty(lane)

    def _resolve_fail(self, lane: LaneState, target: Target, reason: FailReason) -> None:
        lives = lane.lose_life()
        lane.pop_head()
        logger.info("%s missed %s (%s), lives=%d", lane.lane_id.value, target.label, reason.value, lives)
        self._listener.on_lives_changed(lane.lane_id, lives)
        self._listener.on_fail(lane.lane_id, target, reason)

        if not lane.enabled:
            logger.info("Lane %s disabled", lane.lane_id.value)
            self._listener.on_lane_disabled(lane.lane_id)
            if not any(other.enabled for other in self.lanes.values()):
                self._end_game()
            return

        if lane.spawn_policy is SpawnPolicy.ONE_AT_A_TIME:
            self._fill_if_empty(lane)

    def _end_game(self) -> None:
        self.game_over = True
        over = GameOverReason.ALL_LANES_DISABLED if self.dual_lane else GameOverReason.SINGLE_LANE_DISABLED
        logger.info("Game over: %s", over.value)
        self._listener.on_game_over(over)

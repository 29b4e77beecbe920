"""Drive a lane engine from a clock: live MIDI, on-screen keys or recorded takes."""

from __future__ import annotations

import logging
import random
import time
from typing import Iterable, List, Optional

from .config import SessionConfig
from .engine import LaneEngine
from .events import EngineListener, ListenerGroup
from .lanes import SpawnPolicy
from .midi_input import MidiInputManager, NoteMessage
from .report import SessionRecorder
from .takes import NoteOnEvent
from .timers import Clock, ManualClock, MonotonicClock, TimerQueue

__all__ = ["PracticeSession", "replay_take", "run_live"]

logger = logging.getLogger(__name__)


class PracticeSession:
    """Own the clock, timer queue, engine and recorder for one practice run.

    Every entry point first fires timers that are already overdue, so chord
    timeouts and spawns are observed in time order. A timer due at exactly
    the same instant as a note-on runs after the note.
    """

    def __init__(
        self,
        config: SessionConfig,
        *,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        listener: EngineListener | None = None,
    ) -> None:
        self.config = config
        self.clock = clock or MonotonicClock()
        self.timers = TimerQueue(self.clock)
        self.recorder = SessionRecorder(self.clock)
        self.listeners = ListenerGroup([self.recorder])
        if listener is not None:
            self.listeners.add(listener)
        self.take: List[NoteOnEvent] = []
        self.engine = LaneEngine(
            config,
            scheduler=self.timers,
            clock=self.clock,
            listener=self.listeners,
            rng=rng,
        )

    @property
    def game_over(self) -> bool:
        return self.engine.game_over

    def note_on(self, pitch: int, velocity: int = 96) -> None:
        now = self.clock()
        self.timers.run_due(now, inclusive=False)
        self.engine.tick(now)
        if velocity > 0:
            self.take.append(NoteOnEvent(time_ms=now, pitch=pitch, velocity=velocity))
        self.engine.on_note_on(pitch, velocity)

    def note_off(self, pitch: int) -> None:
        self.engine.on_note_off(pitch)

    def handle_message(self, message: NoteMessage) -> None:
        if message.is_note_on:
            self.note_on(message.pitch, message.velocity)
        else:
            self.note_off(message.pitch)

    def pump(self) -> None:
        now = self.clock()
        self.timers.run_due(now)
        self.engine.tick(now)

    def restart(self) -> None:
        self.take.clear()
        self.recorder.clear()
        self.engine.reset()

    def toggle_dual_lane(self) -> bool:
        dual_lane = not self.engine.dual_lane
        self.engine.reset(dual_lane=dual_lane)
        return dual_lane

    def set_level(self, level: int) -> None:
        self.engine.set_level(level)

    # ------------------------------------------------------------------
    # Manual clock helpers
    # ------------------------------------------------------------------
    def _manual_clock(self) -> ManualClock:
        if not isinstance(self.clock, ManualClock):
            raise TypeError("Stepping time requires a ManualClock.")
        return self.clock

    def _next_deadline(self) -> Optional[float]:
        deadlines = []
        timer_due = self.timers.next_due_ms()
        if timer_due is not None:
            deadlines.append(timer_due)
        if not self.engine.game_over:
            deadlines.extend(
                lane.next_spawn_at_ms
                for lane in self.engine.lanes.values()
                if lane.enabled and lane.spawn_policy is SpawnPolicy.QUEUED
            )
        return min(deadlines) if deadlines else None

    def advance_to(self, when_ms: float) -> None:
        """Move a manual clock to ``when_ms``, firing what falls strictly before it."""

        clock = self._manual_clock()
        while True:
            upcoming = self._next_deadline()
            if upcoming is None or upcoming >= when_ms:
                break
            clock.set(max(upcoming, clock.now_ms))
            self.pump()
        clock.set(max(when_ms, clock.now_ms))

    def advance(self, delta_ms: float) -> None:
        self.advance_to(self._manual_clock().now_ms + delta_ms)
        self.pump()


def replay_take(
    take: Iterable[NoteOnEvent],
    config: SessionConfig,
    *,
    seed: int | None = None,
    tail_ms: float = 1000.0,
) -> PracticeSession:
    """Play a recorded take through a fresh session on a manual clock."""

    session = PracticeSession(config, clock=ManualClock(), rng=random.Random(seed))
    last_ms = 0.0
    for event in sorted(take, key=lambda ev: ev.time_ms):
        if session.game_over:
            logger.info("Replay stopped at %.0f ms: game over", event.time_ms)
            break
        session.advance_to(event.time_ms)
        session.note_on(event.pitch, event.velocity)
        last_ms = event.time_ms
    if not session.game_over:
        session.advance_to(last_ms + tail_ms)
        session.pump()
    return session


def run_live(
    port_name: str,
    config: SessionConfig,
    *,
    duration_s: float | None = None,
    manager: MidiInputManager | None = None,
    listener: EngineListener | None = None,
    poll_interval: float = 0.005,
) -> PracticeSession:
    """Evaluate notes from a MIDI port until game over or ``duration_s`` elapses."""

    manager = manager or MidiInputManager()
    session = PracticeSession(config, listener=listener)
    manager.start_listening(port_name)
    logger.info("Listening on %s", port_name)
    started = time.monotonic()
    try:
        while not session.game_over:
            manager.drain(session.handle_message)
            session.pump()
            if duration_s is not None and time.monotonic() - started >= duration_s:
                break
            time.sleep(poll_interval)
    except KeyboardInterrupt:
        logger.info("Live session interrupted")
    finally:
        manager.stop_listening()
    return session

"""Outbound notifications emitted by the lane engine."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Iterable, List, Optional

from .routing import LaneId
from .targets import Target

__all__ = [
    "FailReason",
    "GameOverReason",
    "EngineListener",
    "CallbackListener",
    "ListenerGroup",
]


class FailReason(str, Enum):
    MELODY_WRONG_NOTE = "melody-wrong-note"
    CHORD_STRAY = "chord-stray"
    CHORD_TIMEOUT = "chord-timeout"


class GameOverReason(str, Enum):
    ALL_LANES_DISABLED = "piano-both-dead"
    SINGLE_LANE_DISABLED = "mono-dead"


class EngineListener:
    """No-op base for engine observers; override only what you need.

    Every hook is fire-and-forget: the engine ignores return values and has
    already finished mutating lane state when a hook runs.
    """

    def on_target_spawned(self, lane: LaneId, target: Target) -> None:
        pass

    def on_success(self, lane: LaneId, target: Target) -> None:
        pass

    def on_fail(self, lane: LaneId, target: Target, reason: FailReason) -> None:
        pass

    def on_lives_changed(self, lane: LaneId, lives: int) -> None:
        pass

    def on_lane_disabled(self, lane: LaneId) -> None:
        pass

    def on_game_over(self, reason: GameOverReason) -> None:
        pass


class CallbackListener(EngineListener):
    """Adapt plain callables to :class:`EngineListener`."""

    def __init__(
        self,
        *,
        on_target_spawned: Optional[Callable[[LaneId, Target], None]] = None,
        on_success: Optional[Callable[[LaneId, Target], None]] = None,
        on_fail: Optional[Callable[[LaneId, Target, FailReason], None]] = None,
        on_lives_changed: Optional[Callable[[LaneId, int], None]] = None,
        on_lane_disabled: Optional[Callable[[LaneId], None]] = None,
        on_game_over: Optional[Callable[[GameOverReason], None]] = None,
    ) -> None:
        self._spawned = on_target_spawned
        self._success = on_success
        self._fail = on_fail
        self._lives = on_lives_changed
        self._disabled = on_lane_disabled
        self._game_over = on_game_over

    def on_target_spawned(self, lane: LaneId, target: Target) -> None:
        if self._spawned:
            self._spawned(lane, target)

    def on_success(self, lane: LaneId, target: Target) -> None:
        if self._success:
            self._success(lane, target)

    def on_fail(self, lane: LaneId, target: Target, reason: FailReason) -> None:
        if self._fail:
            self._fail(lane, target, reason)

    def on_lives_changed(self, lane: LaneId, lives: int) -> None:
        if self._lives:
            self._lives(lane, lives)

    def on_lane_disabled(self, lane: LaneId) -> None:
        if self._disabled:
            self._disabled(lane)

    def on_game_over(self, reason: GameOverReason) -> None:
        if self._game_over:
            self._game_over(reason)


class ListenerGroup(EngineListener):
    """Forward every notification to several listeners in order."""

    def __init__(self, listeners: Iterable[EngineListener] = ()) -> None:
        self._listeners: List[EngineListener] = list(listeners)

    def add(self, listener: EngineListener) -> None:
        self._listeners.append(listener)

    def on_target_spawned(self, lane: LaneId, target: Target) -> None:
        for listener in self._listeners:
            listener.on_target_spawned(lane, target)

    def on_success(self, lane: LaneId, target: Target) -> None:
        for listener in self._listeners:
            listener.on_success(lane, target)

    def on_fail(self, lane: LaneId, target: Target, reason: FailReason) -> None:
        for listener in self._listeners:
            listener.on_fail(lane, target, reason)

    def on_lives_changed(self, lane: LaneId, lives: int) -> None:
        for listener in self._listeners:
            listener.on_lives_changed(lane, lives)

    def on_lane_disabled(self, lane: LaneId) -> None:
        for listener in self._listeners:
            listener.on_lane_disabled(lane)

    def on_game_over(self, reason: GameOverReason) -> None:
        for listener in self._listeners:
            listener.on_game_over(reason)

"""One-shot timers driven by an explicit clock.

The engine never sleeps or owns a thread. It asks a :class:`Scheduler` to call
something back later, and whoever drives the session drains the queue from
its own loop, so timer callbacks run on the same thread as note handling.
"""

from __future__ import annotations

import heapq
import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, List, Protocol

__all__ = ["Clock", "Scheduler", "ManualClock", "MonotonicClock", "TimerQueue"]

Clock = Callable[[], float]


class Scheduler(Protocol):
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None:
        ...


class ManualClock:
    """Clock that only moves when told to; used for tests and replays."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self.now_ms = float(start_ms)

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, delta_ms: float) -> float:
        if delta_ms < 0:
            raise ValueError("Cannot move a clock backwards.")
        self.now_ms += delta_ms
        return self.now_ms

    def set(self, now_ms: float) -> float:
        if now_ms < self.now_ms:
            raise ValueError("Cannot move a clock backwards.")
        self.now_ms = float(now_ms)
        return self.now_ms


class MonotonicClock:
    """Wall clock in milliseconds, relative to construction."""

    def __init__(self) -> None:
        self._origin = time.monotonic()

    def __call__(self) -> float:
        return (time.monotonic() - self._origin) * 1000.0


@dataclass(order=True)
class _Timer:
    due_ms: float
    seq: int
    callback: Callable[[], None] = field(compare=False)


class TimerQueue:
    """Deadline-ordered queue of one-shot callbacks.

    Timers are never cancelled; a callback that is no longer relevant is
    expected to notice that itself and return without acting.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._heap: List[_Timer] = []
        self._counter = itertools.count()

    @property
    def clock(self) -> Clock:
        return self._clock

    def __len__(self) -> int:
        return len(self._heap)

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None:
        due = self._clock() + max(0.0, float(delay_ms))
        heapq.heappush(self._heap, _Timer(due, next(self._counter), callback))

    def next_due_ms(self) -> float | None:
        return self._heap[0].due_ms if self._heap else None

    def run_due(self, now_ms: float | None = None, *, inclusive: bool = True) -> int:
        """Fire every timer whose deadline has passed and return how many ran.

        With ``inclusive=False`` a timer due exactly at ``now_ms`` is left for
        later, which lets a note-on arriving at the same instant win.
        """

        now = self._clock() if now_ms is None else now_ms
        fired = 0
        while self._heap:
            due = self._heap[0].due_ms
            if due > now or (not inclusive and due == now):
                break
            timer = heapq.heappop(self._heap)
            timer.callback()
            fired += 1
        return fired

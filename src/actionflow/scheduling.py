"""Cancellable timers used for suspension timeouts.

`ThreadingScheduler` fires callbacks on `threading.Timer` threads; the bus
lock serialises them with regular dispatching. `VirtualScheduler` keeps a
manually advanced clock, which makes timeouts deterministic in tests and
simulations.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    def __init__(self, *, name_prefix: str = "actionflow-timer") -> None:
        self._name_prefix = name_prefix
        self._counter = itertools.count(1)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.name = f"{self._name_prefix}-{next(self._counter)}"
        timer.daemon = True
        timer.start()
        return timer


@dataclass(order=True)
class _VirtualTimer:
    deadline: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """A scheduler whose clock only moves when `advance()` is called."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._seq = itertools.count()
        self._timers: list[_VirtualTimer] = []

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _VirtualTimer(deadline=self._now + delay, seq=next(self._seq), callback=callback)
        heapq.heappush(self._timers, timer)
        return timer

    def advance(self, delta: float) -> int:
        """Move the clock forward and run every timer that became due.

        Returns the number of callbacks fired.
        """

        if delta < 0:
            raise ValueError("Cannot move a virtual clock backwards")
        target = self._now + delta
        fired = 0
        while self._timers and self._timers[0].deadline <= target:
            timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = timer.deadline
            timer.callback()
            fired += 1
        self._now = target
        return fired

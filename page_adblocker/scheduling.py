from __future__ import annotations

import heapq
from typing import Any, Callable, List, Optional, Protocol, Tuple


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with ``call_later``; an ``asyncio`` event loop qualifies."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Cancellable: ...


class TimerHandle:
    def __init__(self, when: float, callback: Callable[..., Any], args: Tuple[Any, ...]) -> None:
        self.when = when
        self._callback = callback
        self._args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    def _run(self) -> None:
        self._callback(*self._args)


class ManualScheduler:
    """Virtual-clock scheduler: callbacks run only when time is advanced.

    Runs everything on the caller's thread, in deadline order (FIFO for
    equal deadlines), matching the single-threaded host model.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self._seq = 0
        self._heap: List[Tuple[float, int, TimerHandle]] = []

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        handle = TimerHandle(self._now + max(float(delay), 0.0), callback, args)
        self._seq += 1
        heapq.heappush(self._heap, (handle.when, self._seq, handle))
        return handle

    @property
    def pending_count(self) -> int:
        return sum(1 for _when, _seq, handle in self._heap if not handle.cancelled())

    def next_deadline(self) -> Optional[float]:
        for when, _seq, handle in sorted(self._heap):
            if not handle.cancelled():
                return when
        return None

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every callback that falls due; returns how many ran."""
        deadline = self._now + max(float(seconds), 0.0)
        ran = 0
        while self._heap and self._heap[0][0] <= deadline:
            when, _seq, handle = heapq.heappop(self._heap)
            if handle.cancelled():
                continue
            self._now = max(self._now, when)
            handle._run()
            ran += 1
        self._now = deadline
        return ran

    def run_pending(self) -> int:
        return self.advance(0.0)


__all__ = ["Cancellable", "Scheduler", "TimerHandle", "ManualScheduler"]

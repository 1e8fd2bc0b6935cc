"""
Cancellable timers for delayed actions.

All actions run on the thread that owns the scheduler; there is no locking.
Cancelling a timer that already fired or was already cancelled does nothing.
"""

import asyncio
import heapq
import itertools
from typing import Callable, List, Optional, Tuple


class TimerHandle:
    def __init__(self, due_ms: float, action: Callable[[], None]):
        self.due_ms = due_ms
        self.action = action
        self.cancelled = False
        self.fired = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def __repr__(self):
        state = "cancelled" if self.cancelled else "fired" if self.fired else "pending"
        return f"TimerHandle(due_ms={self.due_ms}, {state})"


class Scheduler:
    """schedule(delay, action) -> handle; cancel(handle)."""

    def schedule(self, delay_ms: float, action: Callable[[], None]) -> TimerHandle:
        raise NotImplementedError

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is None or not handle.pending:
            return
        handle.cancelled = True


class ManualScheduler(Scheduler):
    """
    Virtual-clock scheduler. Time only moves when advance() is called, which
    runs every due action in (due time, scheduling order).
    """

    def __init__(self):
        self.now_ms = 0.0
        self._queue: List[Tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()

    def schedule(self, delay_ms: float, action: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self.now_ms + max(delay_ms, 0), action)
        heapq.heappush(self._queue, (handle.due_ms, next(self._counter), handle))
        return handle

    def pending_count(self) -> int:
        return sum(1 for _, _, handle in self._queue if handle.pending)

    def advance(self, ms: float = 0) -> int:
        """
        Move the clock forward and run what became due.

        Returns:
            Number of actions run
        """
        target = self.now_ms + ms
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due_ms, _, handle = heapq.heappop(self._queue)
            if not handle.pending:
                continue
            self.now_ms = due_ms
            handle.fired = True
            handle.action()
            ran += 1
        self.now_ms = target
        return ran

    def run_pending(self) -> int:
        """Run everything still queued, however far in the future."""
        ran = 0
        while self._queue:
            ran += self.advance(self._queue[0][0] - self.now_ms)
        return ran


class LoopScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop (loop.call_later)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def schedule(self, delay_ms: float, action: Callable[[], None]) -> TimerHandle:
        loop = self.loop
        handle = TimerHandle(loop.time() * 1000 + delay_ms, action)

        def fire():
            if handle.pending:
                handle.fired = True
                action()

        handle.loop_handle = loop.call_later(max(delay_ms, 0) / 1000, fire)
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is None or not handle.pending:
            return
        handle.cancelled = True
        handle.loop_handle.cancel()

"""Schedulers: the single-threaded task queue the store defers work onto.

The store never runs provider callbacks or its outbound callback inline.
It submits them to a Scheduler, which runs them after the current call
returns, first in first out.

- AsyncioScheduler: tasks run on an asyncio event loop.
- ManualScheduler: tasks run when you say so, on a virtual clock. Used by
  tests and by hosts that drive their own loop.

Debouncer sits on top of either: trigger() restarts the delay window, so a
burst of triggers fires fn once.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Callable, Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_soon(self, fn: Callable[[], None]) -> Cancellable: ...

    def call_later(self, delay: float, fn: Callable[[], None]) -> Cancellable: ...


class AsyncioScheduler:
    """Schedules onto an asyncio loop.

    With no loop given, the running loop is looked up at scheduling time, so
    scheduling outside a running loop raises RuntimeError.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def call_soon(self, fn: Callable[[], None]) -> asyncio.Handle:
        return self._get_loop().call_soon(fn)

    def call_later(self, delay: float, fn: Callable[[], None]) -> asyncio.Handle:
        if delay <= 0:
            return self._get_loop().call_soon(fn)
        return self._get_loop().call_later(delay, fn)


class _Task:
    __slots__ = ("due", "seq", "fn", "cancelled")

    def __init__(self, due: float, seq: int, fn: Callable[[], None]) -> None:
        self.due = due
        self.seq = seq
        self.fn = fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: _Task) -> bool:
        return (self.due, self.seq) < (other.due, other.seq)


class ManualScheduler:
    """Deterministic scheduler on a virtual clock.

    Nothing runs until run_pending() or advance() is called. Tasks run in
    (due time, submission order).

    Usage:
        scheduler = ManualScheduler()
        store = Store(on_values, scheduler=scheduler)
        update = store.register({"x": 0}, on_change)
        scheduler.run_pending()   # initial sync fires on_change({"x": 0})
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._queue: list[_Task] = []
        self._seq = itertools.count()

    @property
    def now(self) -> float:
        return self._now

    def call_soon(self, fn: Callable[[], None]) -> _Task:
        return self.call_later(0.0, fn)

    def call_later(self, delay: float, fn: Callable[[], None]) -> _Task:
        task = _Task(self._now + max(delay, 0.0), next(self._seq), fn)
        heapq.heappush(self._queue, task)
        return task

    def run_pending(self) -> int:
        """Run every task due now, including ones scheduled while running.

        Returns the number of tasks run.
        """
        ran = 0
        while self._queue and self._queue[0].due <= self._now:
            task = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            task.fn()
            ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running tasks in due order as it passes them."""
        target = self._now + seconds
        ran = 0
        while self._queue and self._queue[0].due <= target:
            self._now = max(self._now, self._queue[0].due)
            ran += self.run_pending()
        self._now = target
        return ran + self.run_pending()

    def pending_count(self) -> int:
        """Number of queued tasks that have not been cancelled."""
        return sum(1 for task in self._queue if not task.cancelled)


class Debouncer:
    """Collapse bursts of trigger() into one fn() call.

    Each trigger cancels the outstanding task and schedules a new one, so the
    delay window restarts. fn takes no arguments: it reads whatever state is
    current when it fires.
    """

    __slots__ = ("_scheduler", "_fn", "_delay", "_handle")

    def __init__(self, scheduler: Scheduler, fn: Callable[[], None], delay: float = 0.0) -> None:
        self._scheduler = scheduler
        self._fn = fn
        self._delay = delay
        self._handle: Cancellable | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        handle = self._scheduler.call_later(self._delay, self._fire)
        if self._handle is not None:
            self._handle.cancel()
        self._handle = handle

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        """Fire now if a call is pending."""
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def _fire(self) -> None:
        self._handle = None
        self._fn()

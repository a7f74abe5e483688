"""Timer abstraction for debounce and retry scheduling.

:class:`AsyncioScheduler` runs callbacks on the event loop. :class:`ManualScheduler`
keeps a virtual clock so tests can advance time deterministically.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from typing import Awaitable, Callable, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class ScheduledCall(Protocol):
    """Handle returned by :meth:`Scheduler.schedule`."""

    @property
    def cancelled(self) -> bool: ...

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule(self, delay: float, callback: Callback, label: str = "") -> ScheduledCall: ...


# -- asyncio ------------------------------------------------------------------


class _LoopCall:
    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        # Only the pending timer is cancelled; a callback already running is left alone.
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()


class AsyncioScheduler:
    """Schedules coroutine callbacks with ``loop.call_later``."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tasks: set[asyncio.Task[None]] = set()

    def schedule(self, delay: float, callback: Callback, label: str = "") -> _LoopCall:
        loop = self._loop or asyncio.get_running_loop()
        call = _LoopCall()

        def _fire() -> None:
            if call.cancelled:
                return
            task = loop.create_task(callback())
            self._tasks.add(task)
            task.add_done_callback(self._on_done)

        call._handle = loop.call_later(max(0.0, delay), _fire)
        return call

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Scheduled callback failed: %s", task.exception())

    async def drain(self) -> None:
        """Wait for callbacks that are already running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# -- virtual time --------------------------------------------------------------


class _ManualCall:
    def __init__(self, due: float, callback: Callback, label: str) -> None:
        self.due = due
        self.callback = callback
        self.label = label
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualScheduler:
    """Virtual-clock scheduler. Nothing runs until :meth:`advance` is awaited."""

    def __init__(self) -> None:
        self.now = 0.0
        self.fired: list[tuple[float, str]] = []
        self._queue: list[tuple[float, int, _ManualCall]] = []
        self._seq = itertools.count()

    def schedule(self, delay: float, callback: Callback, label: str = "") -> _ManualCall:
        call = _ManualCall(self.now + max(0.0, delay), callback, label)
        heapq.heappush(self._queue, (call.due, next(self._seq), call))
        return call

    @property
    def pending(self) -> list[tuple[float, str]]:
        """(due time, label) of every live timer, earliest first."""
        return [(c.due, c.label) for _, _, c in sorted(self._queue) if not c.cancelled]

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, running every callback that falls due."""
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            _, _, call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self.now = call.due
            self.fired.append((call.due, call.label))
            await call.callback()
        self.now = target

    async def run_all(self, limit: int = 1000) -> None:
        """Run until no timers remain."""
        for _ in range(limit):
            live = [c for _, _, c in self._queue if not c.cancelled]
            if not live:
                return
            await self.advance(min(c.due for c in live) - self.now)
        raise RuntimeError(f"Scheduler still busy after {limit} rounds")

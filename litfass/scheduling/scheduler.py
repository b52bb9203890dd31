"""Coalescing scheduler.

Events are always scheduled to a full wall-clock second (plus an optional
offset) and every event that lands on the same instant runs off one shared
timer. Independently paced display loops therefore switch pages in the same
event-loop turn instead of drifting apart through timer jitter, even after
running for a very long time.
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from ..errors import SchedulerInterrupt

Task = Callable[[], Awaitable[None]]


@dataclass
class ScheduleSlot:
    """Batch of tasks sharing one fire instant."""

    key: float
    fire_delay_ms: float
    tasks: List[Task] = field(default_factory=list)
    completion: Optional["asyncio.Future[None]"] = None


class Scheduler:
    """Timer facility merging near-simultaneous wakeups into one fire event.

    All public methods must be called from the event loop thread.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Initialize the scheduler.

        Args:
            clock: Wall-clock source in seconds since the epoch. Slot keys are
                computed from absolute time so that long runs do not drift.
        """
        self._clock = clock
        self._log = logging.getLogger("scheduler")
        self._slots: Dict[float, ScheduleSlot] = {}
        self._pending: Dict["asyncio.Future[None]", asyncio.Handle] = {}
        self.closed = False

    @property
    def pending_count(self) -> int:
        """Number of armed timers and immediates."""
        return len(self._pending)

    @property
    def slot_count(self) -> int:
        """Number of live (not yet fired) slots."""
        return len(self._slots)

    def now_ms(self) -> float:
        return self._clock() * 1000.0

    def slot_key(self, delay_ms: float, offset_ms: float = 0) -> float:
        """Compute the slot key for a request made now.

        The target is rounded up to the next full second; the offset then
        moves it a known number of milliseconds before or after that boundary.
        """
        target_second = math.ceil((self.now_ms() + delay_ms) / 1000.0)
        return round(target_second + int(offset_ms) / 1000.0, 3)

    def sleep(self, delay_ms: float) -> "asyncio.Future[None]":
        """Return a future resolved after ``delay_ms`` milliseconds.

        A non-positive delay still yields to the loop once before resolving.
        When the scheduler is closed the future fails with
        :class:`SchedulerInterrupt`.
        """
        loop = asyncio.get_running_loop()
        future: "asyncio.Future[None]" = loop.create_future()
        if self.closed:
            future.set_exception(SchedulerInterrupt())
            return future

        def _wake() -> None:
            self._pending.pop(future, None)
            if not future.done():
                future.set_result(None)

        if delay_ms > 0:
            handle: asyncio.Handle = loop.call_later(delay_ms / 1000.0, _wake)
        else:
            handle = loop.call_soon(_wake)
        self._pending[future] = handle
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future: "asyncio.Future[None]") -> None:
        # Cancelled by the awaiting side, drop the timer as well
        handle = self._pending.pop(future, None)
        if handle is not None:
            handle.cancel()

    def schedule_in(self, delay_ms: float, task: Task, offset_ms: float = 0) -> "asyncio.Future[None]":
        """Run ``task`` at the full second after ``delay_ms``, shifted by ``offset_ms``.

        Requests whose keys match share one slot: the task is appended and the
        caller receives the slot's shared completion, which resolves once all
        attached tasks finished.

        Args:
            delay_ms: Minimum delay from now in milliseconds.
            task: Coroutine function executed when the slot fires.
            offset_ms: Shift of the fire instant relative to the full second,
                e.g. ``-half_duration`` to land a transition's midpoint on it.

        Returns:
            The slot's shared completion future.
        """
        if self.closed:
            future: "asyncio.Future[None]" = asyncio.get_running_loop().create_future()
            future.set_exception(SchedulerInterrupt())
            return future

        key = self.slot_key(delay_ms, offset_ms)
        slot = self._slots.get(key)
        if slot is not None and slot.completion is not None:
            slot.tasks.append(task)
            return slot.completion

        slot = ScheduleSlot(key=key, fire_delay_ms=key * 1000.0 - self.now_ms(), tasks=[task])
        self._slots[key] = slot
        completion = asyncio.ensure_future(self._run_slot(slot))
        slot.completion = completion
        self._log.debug("Slot %.3f armed in %.0f ms", key, slot.fire_delay_ms)
        return completion

    async def _run_slot(self, slot: ScheduleSlot) -> None:
        try:
            await self.sleep(slot.fire_delay_ms)
        finally:
            if self._slots.get(slot.key) is slot:
                del self._slots[slot.key]
        tasks = list(slot.tasks)
        # All tasks start within this loop turn
        results = await asyncio.gather(*(task() for task in tasks), return_exceptions=True)
        for result in results:
            if isinstance(result, SchedulerInterrupt):
                continue
            if isinstance(result, BaseException):
                self._log.error("Scheduled task in slot %.3f failed", slot.key, exc_info=result)

    def close(self) -> None:
        """Cancel every pending timer and interrupt everyone waiting on one."""
        self.closed = True
        pending = list(self._pending.items())
        self._pending.clear()
        for future, handle in pending:
            handle.cancel()
            if not future.done():
                future.set_exception(SchedulerInterrupt())
        self._slots.clear()
        if pending:
            self._log.debug("Scheduler closed, interrupted %d pending sleeps", len(pending))

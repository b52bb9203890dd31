from __future__ import annotations

import asyncio
import logging
from typing import Callable

from ..errors import SchedulerInterrupt
from ..scheduling.scheduler import Scheduler

WATCH_INTERVAL_MS = 10_000


class TopologyWatch:
    """Polls the number of attached displays and asks for a restart on change.

    ``run`` returns True when a restart is due (display count changed or a
    restart was requested through :meth:`request_restart`) and False when the
    scheduler was closed underneath it, i.e. on plain shutdown.
    ``count_displays`` blocks on the display server and runs in a worker thread;
    when it raises, the check is skipped until the next wake.

    Requesting a restart only sets a flag that is picked up on the next wake,
    so the shared scheduler, and with it every rotation loop, keeps running
    until the orchestrator tears the run down itself.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        count_displays: Callable[[], int],
        expected_count: int,
        interval_ms: int = WATCH_INTERVAL_MS,
    ) -> None:
        self.scheduler = scheduler
        self.count_displays = count_displays
        self.expected_count = expected_count
        self.interval_ms = interval_ms
        self.restart_requested = False
        self._log = logging.getLogger("topology")

    def request_restart(self) -> None:
        self.restart_requested = True

    async def run(self) -> bool:
        while True:
            try:
                await self.scheduler.sleep(self.interval_ms)
            except SchedulerInterrupt:
                return False

            if self.restart_requested:
                self._log.info("Restart requested")
                return True

            try:
                count = await asyncio.to_thread(self.count_displays)
            except Exception as exc:
                self._log.warning("Display enumeration failed: %s", exc)
                continue
            if count != self.expected_count:
                self._log.info("Display count changed from %d to %d", self.expected_count, count)
                return True

"""Process-wide lifecycle: start, restart and exit of the display rotation.

The orchestrator moves through ``idle -> running -> idle``. A run launches one
render session per (non-ignored) display, spawns a rotation loop for each of
them plus one topology watch, and ends once every session has disconnected.
When the watch detects a change of the display topology, or a restart was
requested, the run is torn down and a fresh one is started with the same
settings inside the same ``start`` call.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Set, Union

from .display.enumerator import Geometry
from .display.models import Display
from .errors import AlreadyRunningError, LitfassError
from .events import EventBus, LitfassEvent
from .render.protocols import LaunchOptions, RenderLauncher
from .rotation.loop import DisplayRotation
from .rotation.outcome import attempt
from .rotation.topology import WATCH_INTERVAL_MS, TopologyWatch
from .scheduling.scheduler import Scheduler
from .settings.loader import normalize_settings
from .settings.models import Settings

IDLE = "idle"
STARTING = "starting"
RUNNING = "running"


class Enumerator(Protocol):
    def list(self) -> List[Geometry]: ...


class Orchestrator:
    """Owns the resolved settings, the live scheduler and the active displays."""

    def __init__(
        self,
        launcher: RenderLauncher,
        enumerator: Enumerator,
        events: Optional[EventBus] = None,
        scheduler_factory: Callable[[], Scheduler] = Scheduler,
        watch_interval_ms: int = WATCH_INTERVAL_MS,
    ) -> None:
        self._log = logging.getLogger("orchestrator")
        self.launcher = launcher
        self.enumerator = enumerator
        self.events = events or EventBus()
        self.scheduler_factory = scheduler_factory
        self.watch_interval_ms = watch_interval_ms

        self.state = IDLE
        self.settings: Optional[Settings] = None
        self.scheduler: Optional[Scheduler] = None
        self.displays: List[Display] = []
        self.watch: Optional[TopologyWatch] = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.runs = 0
        self._restart_requested = False
        self._background: Set["asyncio.Future[Any]"] = set()

    @property
    def running(self) -> bool:
        return self.state != IDLE

    async def start(self, settings: Union[Settings, Mapping[str, Any]]) -> None:
        """Run the rotation until every display has been closed.

        Raises:
            AlreadyRunningError: If a run is already active
            ConfigurationError: If the settings are invalid; nothing is launched
        """
        if self.state != IDLE:
            raise AlreadyRunningError("Litfass is already running")
        resolved = settings if isinstance(settings, Settings) else normalize_settings(settings)

        self.state = STARTING
        self.settings = resolved
        self.loop = asyncio.get_running_loop()
        try:
            while await self._run(resolved):
                self._log.info("Restarting display rotation")
                self.events.notify(LitfassEvent(LitfassEvent.Type.RESTARTING))
        finally:
            self.state = IDLE
            self.displays = []
            self.scheduler = None
            self.watch = None
            self._restart_requested = False
            self.events.notify(LitfassEvent(LitfassEvent.Type.STOPPED))
            self._log.info("Display rotation stopped")

    async def restart(self) -> None:
        """Tear the current run down and start over with the recorded settings.

        While running, the new run continues inside the first ``start``
        call, whose caller therefore keeps waiting. When idle, this starts a
        run with the last settings and waits for it like ``start`` does.
        """
        if self.state == IDLE:
            if self.settings is None:
                raise LitfassError("Litfass was never started, nothing to restart")
            await self.start(self.settings)
            return
        self._restart_requested = True
        await self.exit()

    def request_restart(self) -> None:
        """Ask for a restart without interrupting the shared scheduler.

        The topology watch notices the flag on its next wake. Without a watch
        the run is exited right away.
        """
        if self.watch is not None:
            self.watch.request_restart()
            return
        self._restart_requested = True
        if self.state == RUNNING:
            self._spawn(self.exit(), "Exit for restart")

    async def exit(self) -> None:
        """Close every render session; their disconnect handlers do the rest."""
        displays = list(self.displays)
        sessions = [d.session for d in displays if d.session is not None and d.session.is_connected()]
        self._log.info("Closing %d render sessions", len(sessions))
        results = await asyncio.gather(*(session.close() for session in sessions), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                self._log.warning("Closing a render session failed: %s", result)
        if not any(not d.closed for d in displays) and self.scheduler is not None:
            # No display left to drive the teardown
            self.scheduler.close()

    async def snapshot(self) -> Dict[str, Any]:
        scheduler = self.scheduler
        return {
            "state": self.state,
            "runs": self.runs,
            "displays": [display.status() for display in self.displays],
            "scheduler": {
                "slots": scheduler.slot_count if scheduler else 0,
                "pending": scheduler.pending_count if scheduler else 0,
            },
        }

    # Internals

    def _spawn(self, coro: Awaitable[Any], what: str) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(lambda done: self._reap(done, what))

    def _reap(self, task: "asyncio.Future[Any]", what: str) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._log.warning("%s failed: %s", what, exc)

    async def _run(self, settings: Settings) -> bool:
        """One run from launch to teardown. Returns True if a restart is due.

        Raises:
            DisplayEnumerationError: If the displays cannot be listed
        """
        # screeninfo queries the display server synchronously
        geometries = await asyncio.to_thread(self.enumerator.list)
        scheduler = self.scheduler_factory()
        displays = [
            Display(index=index, geometry=geometry, config=settings.display_config(index), on_air=settings.launch_page)
            for index, geometry in enumerate(geometries)
        ]
        displays = [display for display in displays if not display.ignore]
        self._log.info("Found %d displays, %d in rotation", len(geometries), len(displays))

        def _close_display(display: Display) -> None:
            if display.session is not None and display.session.is_connected():
                # A single window was closed; take the whole display down with it
                self._spawn(display.session.close(), f"Closing display {display.index}")
                return
            display.closed = True
            if all(d.closed for d in displays):
                scheduler.close()

        results = await asyncio.gather(
            *(self._launch(display, settings, _close_display) for display in displays),
            return_exceptions=True,
        )
        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            self._log.error("Launching render sessions failed: %s", failures[0])
            await asyncio.gather(
                *(d.session.close() for d in displays if d.session is not None and d.session.is_connected()),
                return_exceptions=True,
            )
            scheduler.close()
            raise failures[0]

        self.scheduler = scheduler
        self.displays = displays
        self.state = RUNNING
        self.runs += 1
        self.events.notify(LitfassEvent(LitfassEvent.Type.SESSIONS_LAUNCHED))

        loops = [
            asyncio.ensure_future(self._rotate(DisplayRotation(display, settings, scheduler, self.events.notify)))
            for display in displays
        ]
        watch_result: "Optional[asyncio.Future[bool]]" = None
        if settings.watch_displays:
            self.watch = TopologyWatch(
                scheduler,
                lambda: len(self.enumerator.list()),
                expected_count=len(geometries),
                interval_ms=self.watch_interval_ms,
            )
            watch_result = asyncio.ensure_future(self._supervise(self.watch))
        elif not displays:
            scheduler.close()

        await asyncio.gather(*loops)
        topology_changed = await watch_result if watch_result is not None else False

        scheduler.close()
        self.watch = None
        restart = topology_changed or self._restart_requested
        self._restart_requested = False
        return restart

    async def _launch(self, display: Display, settings: Settings, on_close: Callable[[Display], None]) -> None:
        session = await self.launcher.launch(LaunchOptions(display.geometry, display.config.browser_options))
        display.session = session
        session.on_disconnect(lambda: on_close(display))

        # the session starts with its first window open
        surfaces = await session.list_surfaces()
        first = surfaces[0] if surfaces else await session.create_surface()
        outcome = await attempt(
            lambda: first.navigate(settings.launch_url),
            f"Display {display.index}: loading launch page {settings.launch_url}",
            self._log,
        )
        if not outcome.ok:
            self._log.warning("Display %d starts without its launch page", display.index)

        extra = [await session.create_surface() for _ in range(settings.surface_count - 1)]
        if extra:
            # jump back to the launch screen
            await first.bring_to_front()

        display.surfaces = [first, *extra]
        for surface in display.surfaces:
            surface.on_close(lambda: on_close(display))
        self._log.info("Display %d: session ready with %d surfaces", display.index, len(display.surfaces))

    async def _rotate(self, rotation: DisplayRotation) -> None:
        # a crashing loop must not take the other displays down
        try:
            await rotation.run()
        except Exception:
            self._log.exception("Rotation for display %d failed", rotation.display.index)

    async def _supervise(self, watch: TopologyWatch) -> bool:
        restart = await watch.run()
        if restart:
            await self.exit()
        return restart

"""Per-display page rotation.

Each iteration preloads the next page on a spare surface shortly before its
air time and then swaps surfaces through the shared scheduler, so that every
display switching at the same second does so in the same loop turn.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Set

from ..display.models import Display
from ..display.transitions import TransitionAnimation
from ..errors import SchedulerInterrupt
from ..events import LitfassEvent
from ..render.protocols import WAIT_DOM_CONTENT_LOADED, RenderSurface
from ..scheduling.scheduler import Scheduler
from ..settings.models import Page, Settings
from .outcome import SUCCESS, Outcome, attempt

BLANK_URL = "about:blank"


class DisplayRotation:
    """Rotation state machine for one display.

    Launch -> Showing(0) -> Showing(1) -> ... until the display's render
    session disconnects or the scheduler is closed.
    """

    def __init__(
        self,
        display: Display,
        settings: Settings,
        scheduler: Scheduler,
        notify: Optional[Callable[[LitfassEvent], None]] = None,
    ) -> None:
        self.display = display
        self.settings = settings
        self.scheduler = scheduler
        self._notify = notify
        self._log = logging.getLogger("rotation")
        self._preloads: Set["asyncio.Future[Outcome]"] = set()
        self.transitions = 0

    @property
    def transition(self) -> TransitionAnimation:
        return self.display.config.transition

    def _emit(self, type_: LitfassEvent.Type, url: Optional[str] = None) -> None:
        if self._notify is not None:
            self._notify(LitfassEvent(type_, display_index=self.display.index, url=url))

    async def run(self) -> None:
        """Rotate until the display goes away. Scheduler interrupts end the loop quietly."""
        self._log.info("Display %d: rotation started", self.display.index)
        try:
            while self.display.is_active():
                await self.step()
        except SchedulerInterrupt:
            self._log.debug("Display %d: scheduler closed", self.display.index)
        finally:
            for preload in list(self._preloads):
                preload.cancel()
            self._log.info("Display %d: rotation stopped after %d transitions", self.display.index, self.transitions)

    async def step(self) -> None:
        """Run one iteration: preload, wait for air time, swap, advance."""
        display = self.display
        current_page = display.on_air
        next_page = display.next_page()
        tab = display.current_surface()
        next_tab = display.next_surface()

        preload: Optional["asyncio.Future[Outcome]"] = None
        if self.settings.should_preload:
            # May be zero or negative if the preparation time exceeds the air time
            wait_ms = current_page.air_time_ms - self.settings.preparation_time_ms
            preload = asyncio.ensure_future(self._preload(next_tab, next_page, wait_ms))
            self._preloads.add(preload)
            preload.add_done_callback(self._preloads.discard)

        async def _on_air() -> None:
            await self._go_on_air(tab, next_tab, next_page, preload)

        # The offset lands the midpoint of the transition on the air time
        await self.scheduler.schedule_in(current_page.air_time_ms, _on_air, -self.transition.half_duration_ms)

        display.advance()
        self.transitions += 1

    async def _preload(self, surface: RenderSurface, page: Page, wait_ms: int) -> Outcome:
        async def _load() -> None:
            if wait_ms > 0:
                await self.scheduler.sleep(wait_ms)
            await surface.navigate(page.url, WAIT_DOM_CONTENT_LOADED)
            if self.transition.after_style:
                await surface.apply_style(self.transition.after_style)

        outcome = await attempt(_load, f"Display {self.display.index}: preloading {page.url}", self._log)
        if outcome.ok:
            self._emit(LitfassEvent.Type.CONTENT_LOADED, page.url)
        return outcome

    async def _load_next(self, surface: RenderSurface, page: Page) -> Outcome:
        """Navigate ``surface`` during the transition itself."""
        return await self._preload(surface, page, 0)

    async def _go_on_air(
        self,
        tab: RenderSurface,
        next_tab: RenderSurface,
        next_page: Page,
        preload: Optional["asyncio.Future[Outcome]"],
    ) -> None:
        transition = self.transition
        fade_out: Optional["asyncio.Future[Outcome]"] = None
        if transition.out_style:
            # Not awaited: the second half of the transition runs on its own clock
            fade_out = asyncio.ensure_future(
                attempt(lambda: tab.apply_style(transition.out_style), "Applying out style", self._log)
            )
        # The schedule offset already consumed the first half
        await self.scheduler.sleep(transition.half_duration_ms)

        in_front = asyncio.Event()
        steps = [self._reveal(next_tab, next_page, preload, in_front)]
        if self.settings.should_preload and tab is not next_tab:
            steps.append(self._blank(tab, in_front))
        await asyncio.gather(*steps)
        if fade_out is not None:
            await fade_out

    async def _reveal(
        self,
        next_tab: RenderSurface,
        next_page: Page,
        preload: Optional["asyncio.Future[Outcome]"],
        in_front: asyncio.Event,
    ) -> Outcome:
        try:
            if preload is not None and not preload.done():
                # Its after style has to land before the in style
                await asyncio.wait([preload])
            if preload is None or _failed(preload):
                outcome = await self._load_next(next_tab, next_page)
                if outcome.interrupted:
                    return outcome

            if len(self.display.surfaces) > 1:
                outcome = await attempt(next_tab.bring_to_front, "Bringing surface to front", self._log)
                if outcome.interrupted:
                    return outcome
        finally:
            in_front.set()

        if self.transition.in_style:
            in_style = self.transition.in_style
            await attempt(lambda: next_tab.apply_style(in_style), "Applying in style", self._log)

        self._emit(LitfassEvent.Type.CONTENT_SHOWN, next_page.url)
        return SUCCESS

    async def _blank(self, tab: RenderSurface, in_front: asyncio.Event) -> Outcome:
        # Only once it is covered, or the blank page would flash on screen
        await in_front.wait()
        return await attempt(lambda: tab.navigate(BLANK_URL, WAIT_DOM_CONTENT_LOADED), "Blanking surface", self._log)


def _failed(preload: "asyncio.Future[Outcome]") -> bool:
    return preload.cancelled() or not preload.result().ok

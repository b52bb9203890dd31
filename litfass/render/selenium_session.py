"""Chrome render sessions driven through Selenium.

Every surface of a display is its own Chrome window with its own WebDriver,
stacked at the display's geometry. A WebDriver only addresses the window it
has switched to, and switching raises it, so tabs of one browser cannot be
loaded behind the visible one. Separate windows can: loading a page into a
window neither raises it nor blocks the other windows, and going on air is an
explicit ``Page.bringToFront``.

WebDriver calls are blocking; each runs in a worker thread while holding the
lock of the window it addresses, so only that window waits on a slow load.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, TypeVar

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support.ui import WebDriverWait

from ..errors import RenderError
from .protocols import WAIT_LOAD, DisconnectCallback, LaunchOptions

T = TypeVar("T")

DriverFactory = Callable[[ChromeOptions], WebDriver]

MONITOR_INTERVAL_SECONDS = 1.0
DEFAULT_LOAD_TIMEOUT_SECONDS = 30.0

_INJECT_STYLE_JS = (
    "const style = document.createElement('style');"
    "style.textContent = arguments[0];"
    "(document.head || document.documentElement).appendChild(style);"
)


def _fire(callbacks: List[DisconnectCallback], log: logging.Logger) -> None:
    for callback in list(callbacks):
        try:
            callback()
        except Exception:
            log.exception("Disconnect callback failed")


class SeleniumSurface:
    """One Chrome window."""

    def __init__(self, session: "SeleniumSession", driver: WebDriver) -> None:
        self.session = session
        self.driver = driver
        self.closed = False
        self._lock = asyncio.Lock()
        self._close_callbacks: List[DisconnectCallback] = []

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        if self.closed or not self.session.is_connected():
            raise RenderError("Render surface is closed")
        async with self._lock:
            try:
                return await asyncio.to_thread(fn, self.driver, *args)
            except WebDriverException as exc:
                raise RenderError(str(exc.msg or exc)) from exc

    async def navigate(self, url: str, wait_until: str = "domcontentloaded") -> None:
        await self._run(self._navigate_sync, url, wait_until)

    def _navigate_sync(self, driver: WebDriver, url: str, wait_until: str) -> None:
        driver.get(url)
        if wait_until == WAIT_LOAD:
            WebDriverWait(driver, self.session.load_timeout).until(
                lambda d: d.execute_script("return document.readyState") == "complete"
            )

    async def apply_style(self, css: str) -> None:
        await self._run(lambda driver: driver.execute_script(_INJECT_STYLE_JS, css))

    async def bring_to_front(self) -> None:
        await self._run(lambda driver: driver.execute_cdp_cmd("Page.bringToFront", {}))

    def is_open(self) -> bool:
        return not self.closed and self.session.is_connected()

    def on_close(self, callback: DisconnectCallback) -> None:
        self._close_callbacks.append(callback)

    def _mark_closed(self) -> None:
        if self.closed:
            return
        self.closed = True
        _fire(self._close_callbacks, self.session._log)


class SeleniumSession:
    """The Chrome windows bound to one display."""

    def __init__(
        self,
        open_driver: Callable[[], WebDriver],
        first_driver: WebDriver,
        load_timeout: float = DEFAULT_LOAD_TIMEOUT_SECONDS,
    ) -> None:
        self._open_driver = open_driver
        self._log = logging.getLogger("render")
        self._connected = True
        self._disconnect_callbacks: List[DisconnectCallback] = []
        self._monitor: Optional["asyncio.Task[None]"] = None
        self.load_timeout = load_timeout
        self.surfaces: List[SeleniumSurface] = [SeleniumSurface(self, first_driver)]

    async def list_surfaces(self) -> List[SeleniumSurface]:
        return [surface for surface in self.surfaces if not surface.closed]

    async def create_surface(self) -> SeleniumSurface:
        if not self._connected:
            raise RenderError("Render session is disconnected")
        try:
            driver = await asyncio.to_thread(self._open_driver)
        except WebDriverException as exc:
            raise RenderError(f"Failed to open browser window: {exc.msg or exc}") from exc
        surface = SeleniumSurface(self, driver)
        self.surfaces.append(surface)
        return surface

    def is_connected(self) -> bool:
        return self._connected

    def on_disconnect(self, callback: DisconnectCallback) -> None:
        self._disconnect_callbacks.append(callback)

    async def close(self) -> None:
        if self._connected:
            await asyncio.gather(*(self._quit(surface) for surface in self.surfaces))
        self._mark_disconnected()

    async def _quit(self, surface: SeleniumSurface) -> None:
        try:
            await asyncio.to_thread(surface.driver.quit)
        except Exception as exc:
            # a crashed chromedriver fails with connection errors here
            self._log.info("Browser quit failed: %s", exc)

    def _mark_disconnected(self) -> None:
        if not self._connected:
            return
        self._connected = False
        if self._monitor is not None and self._monitor is not asyncio.current_task():
            self._monitor.cancel()
        for surface in self.surfaces:
            surface.closed = True
        _fire(self._disconnect_callbacks, self._log)

    def start_monitor(self) -> None:
        if self._monitor is None:
            self._monitor = asyncio.ensure_future(self._monitor_loop())

    async def _monitor_loop(self) -> None:
        while self._connected:
            await asyncio.sleep(MONITOR_INTERVAL_SECONDS)
            for surface in list(self.surfaces):
                if surface.closed or surface.busy:
                    # A command in flight proves the window is alive
                    continue
                try:
                    handles = await asyncio.to_thread(lambda: list(surface.driver.window_handles))
                except Exception as exc:
                    self._log.info("Browser went away: %s", exc)
                    self._mark_disconnected()
                    return
                if not handles:
                    surface._mark_closed()


class SeleniumLauncher:
    """Launches the Chrome windows of one display."""

    def __init__(self, driver_factory: Optional[DriverFactory] = None) -> None:
        self._driver_factory = driver_factory or (lambda options: webdriver.Chrome(options=options))
        self._log = logging.getLogger("render")

    def build_options(self, options: LaunchOptions) -> ChromeOptions:
        browser_options = options.browser_options
        geometry = options.geometry
        chrome = ChromeOptions()
        chrome.add_argument(f"--window-position={geometry.left},{geometry.top}")
        chrome.add_argument(f"--window-size={geometry.width},{geometry.height}")
        chrome.add_experimental_option("excludeSwitches", ["enable-automation"])
        # DOMContentLoaded is enough for a page to be swapped in
        chrome.page_load_strategy = "eager"
        if browser_options.get("kiosk"):
            chrome.add_argument("--kiosk")
        if browser_options.get("headless"):
            chrome.add_argument("--headless=new")
        for argument in browser_options.get("arguments") or []:
            chrome.add_argument(str(argument))
        if browser_options.get("binary_location"):
            chrome.binary_location = str(browser_options["binary_location"])
        return chrome

    async def launch(self, options: LaunchOptions) -> SeleniumSession:
        load_timeout = float(options.browser_options.get("page_load_timeout") or DEFAULT_LOAD_TIMEOUT_SECONDS)

        def _open_driver() -> WebDriver:
            driver = self._driver_factory(self.build_options(options))
            try:
                driver.set_page_load_timeout(load_timeout)
            except WebDriverException as exc:
                self._log.debug("Page load timeout not applied: %s", exc.msg or exc)
            return driver

        self._log.info(
            "Launching browser at %d,%d (%dx%d)",
            options.geometry.left, options.geometry.top, options.geometry.width, options.geometry.height,
        )
        try:
            driver = await asyncio.to_thread(_open_driver)
        except WebDriverException as exc:
            raise RenderError(f"Failed to launch browser: {exc.msg or exc}") from exc

        session = SeleniumSession(_open_driver, driver, load_timeout=load_timeout)
        session.start_monitor()
        return session

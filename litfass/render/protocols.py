"""Render capabilities consumed by the rotation engine.

The engine never touches a browser directly; it drives these contracts. The
production backend is :mod:`litfass.render.selenium_session`, the tests use
in-memory fakes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Protocol

from ..display.enumerator import Geometry

DisconnectCallback = Callable[[], None]

WAIT_DOM_CONTENT_LOADED = "domcontentloaded"
WAIT_LOAD = "load"


@dataclass(frozen=True)
class LaunchOptions:
    geometry: Geometry
    browser_options: Dict[str, Any] = field(default_factory=dict)


class RenderSurface(Protocol):
    async def navigate(self, url: str, wait_until: str = WAIT_DOM_CONTENT_LOADED) -> None: ...

    async def apply_style(self, css: str) -> None: ...

    async def bring_to_front(self) -> None: ...

    def is_open(self) -> bool: ...

    def on_close(self, callback: DisconnectCallback) -> None: ...


class RenderSession(Protocol):
    async def list_surfaces(self) -> List[RenderSurface]: ...

    async def create_surface(self) -> RenderSurface: ...

    def is_connected(self) -> bool: ...

    async def close(self) -> None: ...

    def on_disconnect(self, callback: DisconnectCallback) -> None: ...


class RenderLauncher(Protocol):
    async def launch(self, options: LaunchOptions) -> RenderSession: ...

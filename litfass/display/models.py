from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..render.protocols import RenderSession, RenderSurface
from ..settings.models import DisplayConfig, Page
from .enumerator import Geometry


@dataclass
class Display:
    """Runtime state of one physical display.

    ``current_page_index`` is the rotation cursor: the page at that index goes
    on air with the next transition. ``on_air`` is the page currently shown,
    which is the launch page until the first transition. Both indices are kept
    modulo their list lengths.
    """

    index: int
    geometry: Geometry
    config: DisplayConfig
    on_air: Page
    session: Optional[RenderSession] = None
    surfaces: List[RenderSurface] = field(default_factory=list)
    current_page_index: int = 0
    current_surface_index: int = 0
    closed: bool = False
    launching: bool = True

    @property
    def ignore(self) -> bool:
        return self.config.ignore

    def is_active(self) -> bool:
        """True while the rotation for this display should keep running."""
        if self.ignore or self.closed or self.session is None:
            return False
        return self.session.is_connected()

    def next_page(self) -> Page:
        return self.config.pages[self.current_page_index % len(self.config.pages)]

    def current_surface(self) -> RenderSurface:
        return self.surfaces[self.current_surface_index % len(self.surfaces)]

    def next_surface(self) -> RenderSurface:
        return self.surfaces[(self.current_surface_index + 1) % len(self.surfaces)]

    def advance(self) -> None:
        """Record that the next page went on air and move both cursors."""
        self.on_air = self.next_page()
        self.launching = False
        self.current_page_index = (self.current_page_index + 1) % len(self.config.pages)
        self.current_surface_index = (self.current_surface_index + 1) % max(len(self.surfaces), 1)

    def status(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "geometry": {
                "left": self.geometry.left,
                "top": self.geometry.top,
                "width": self.geometry.width,
                "height": self.geometry.height,
            },
            "ignore": self.ignore,
            "closed": self.closed,
            "launching": self.launching,
            "on_air": self.on_air.url,
            "current_page_index": self.current_page_index,
            "current_surface_index": self.current_surface_index,
            "surfaces": len(self.surfaces),
            "transition": self.config.transition.name,
        }

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from ..display.transitions import TransitionAnimation


@dataclass(frozen=True)
class Page:
    url: str
    air_time_ms: int


@dataclass(frozen=True)
class DisplayConfig:
    pages: Tuple[Page, ...]
    transition: TransitionAnimation
    ignore: bool = False
    browser_options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Settings:
    """Resolved settings. Produced by :func:`normalize_settings`."""

    launch_timeout_ms: int
    prepare_pages: int
    preparation_time_ms: int
    watch_displays: bool
    launch_url: str
    browser_options: Dict[str, Any]
    displays: Tuple[DisplayConfig, ...]

    @property
    def should_preload(self) -> bool:
        return self.prepare_pages > 0

    @property
    def surface_count(self) -> int:
        return max(self.prepare_pages + 1, 1)

    @property
    def launch_page(self) -> Page:
        """Artificial page shown once while the rotation starts up."""
        return Page(url=self.launch_url, air_time_ms=self.launch_timeout_ms)

    def display_config(self, index: int) -> DisplayConfig:
        """Config for physical display ``index``; extra displays reuse the first."""
        if index < len(self.displays):
            return self.displays[index]
        return self.displays[0]

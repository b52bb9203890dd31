"""Physical display enumeration."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from screeninfo import ScreenInfoError, get_monitors

from ..errors import DisplayEnumerationError


@dataclass(frozen=True)
class Geometry:
    left: int
    top: int
    width: int
    height: int


def sort_geometries(geometries: List[Geometry]) -> List[Geometry]:
    """Order displays top-to-bottom, then left-to-right.

    Keeps the display-index-to-config mapping stable across restarts no matter
    in which order the platform reports its monitors.
    """
    return sorted(geometries, key=lambda g: (g.top, g.left))


class DisplayEnumerator:
    """Lists the attached monitors via screeninfo."""

    def __init__(self) -> None:
        self._log = logging.getLogger("displays")

    def list(self) -> List[Geometry]:
        """List the attached displays.

        Raises:
            DisplayEnumerationError: If no monitor backend answered. An empty
                list always means that no display is attached.
        """
        try:
            monitors = get_monitors()
        except ScreenInfoError as exc:
            raise DisplayEnumerationError(f"Display enumeration failed: {exc}") from exc
        self._log.debug("Found %d monitors", len(monitors))
        return sort_geometries([Geometry(m.x, m.y, m.width, m.height) for m in monitors])

"""Transition animation resolver.

Expands a named transition and its duration into the CSS fragments applied to
the leaving surface (``out``), to a surface being primed off-screen
(``after``) and to the entering surface (``in``).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from ..errors import ConfigurationError

NONE = "none"
FADE = "fade"
SLIDE_UP = "slideUp"
SLIDE_LEFT = "slideLeft"

DEFAULT_TRANSITION_NAME = FADE
DEFAULT_TRANSITION_DURATION_MS = 400

# @duration is replaced by the half duration in milliseconds
TRANSITION_TEMPLATES: Dict[str, Optional[Dict[str, str]]] = {
    NONE: None,
    FADE: {
        "out": "opacity: 0; transition: opacity @durationms ease-in;",
        "after": "opacity: 0;",
        "in": "opacity: 1; transition: opacity @durationms ease-out;",
    },
    SLIDE_UP: {
        "out": "transform: translateY(-100%); transition: transform @durationms ease-in;",
        "after": "transform: translateY(100%);",
        "in": "transform: translateY(0); transition: transform @durationms ease-out;",
    },
    SLIDE_LEFT: {
        "out": "transform: translateX(-100%); transition: transform @durationms ease-in;",
        "after": "transform: translateX(100%);",
        "in": "transform: translateX(0); transition: transform @durationms ease-out;",
    },
}


@dataclass(frozen=True)
class TransitionAnimation:
    name: str
    duration_ms: int
    half_duration_ms: int
    out_style: Optional[str] = None
    after_style: Optional[str] = None
    in_style: Optional[str] = None

    @property
    def animated(self) -> bool:
        return self.name != NONE


def resolve_transition(name: str, duration_ms: int) -> TransitionAnimation:
    """Build the normalized transition for ``name``.

    Args:
        name: One of ``none``, ``fade``, ``slideUp``, ``slideLeft`` (case-sensitive)
        duration_ms: Full transition duration in milliseconds

    Returns:
        TransitionAnimation with ``half_duration_ms = duration_ms // 2``

    Raises:
        ConfigurationError: If the name is unknown
    """
    if name not in TRANSITION_TEMPLATES:
        raise ConfigurationError(f"Unknown transition animation '{name}'")

    templates = TRANSITION_TEMPLATES[name]
    if templates is None:
        # no animation takes no time to animate
        return TransitionAnimation(name=name, duration_ms=int(duration_ms), half_duration_ms=0)

    half = int(duration_ms) // 2

    def _render(key: str) -> str:
        return "html { %s }" % templates[key].replace("@duration", str(half))

    return TransitionAnimation(
        name=name,
        duration_ms=int(duration_ms),
        half_duration_ms=half,
        out_style=_render("out"),
        after_style=_render("after"),
        in_style=_render("in"),
    )

"""Render session contracts and backends."""
from .protocols import (
    WAIT_DOM_CONTENT_LOADED,
    WAIT_LOAD,
    LaunchOptions,
    RenderLauncher,
    RenderSession,
    RenderSurface,
)

__all__ = [
    "LaunchOptions",
    "RenderLauncher",
    "RenderSession",
    "RenderSurface",
    "WAIT_DOM_CONTENT_LOADED",
    "WAIT_LOAD",
]

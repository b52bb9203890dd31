"""Observer side channel for lifecycle and rotation notifications.

Subscribers are for telemetry and tests only; nothing in the rotation logic
depends on them.
"""
from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Callable, List, Optional


class LitfassEvent:
    class Type(Enum):
        SESSIONS_LAUNCHED = auto()  # all render sessions of a run are up
        CONTENT_LOADED = auto()     # a surface finished preloading
        CONTENT_SHOWN = auto()      # a surface went on air
        RESTARTING = auto()
        STOPPED = auto()

    def __init__(self, type_: "LitfassEvent.Type", display_index: Optional[int] = None, url: Optional[str] = None) -> None:
        self.type = type_
        self.display_index = display_index
        self.url = url

    def __repr__(self) -> str:
        return f"LitfassEvent({self.type.name}, display={self.display_index}, url={self.url!r})"


Subscriber = Callable[[LitfassEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []
        self._log = logging.getLogger("events")

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber``; returns a function removing it again."""
        self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return _unsubscribe

    def notify(self, event: LitfassEvent) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                self._log.exception("Event subscriber failed for %r", event)

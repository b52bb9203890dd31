"""Best-effort operations.

Preloading and style application may fail at any time (navigation errors,
closed windows) without affecting the rotation. They run through :func:`attempt`,
which never raises and hands back an :class:`Outcome` the caller either
inspects or discards explicitly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..errors import SchedulerInterrupt


@dataclass(frozen=True)
class Outcome:
    ok: bool
    error: Optional[BaseException] = None

    @property
    def interrupted(self) -> bool:
        return isinstance(self.error, SchedulerInterrupt)


SUCCESS = Outcome(ok=True)


async def attempt(action: Callable[[], Awaitable[None]], what: str, log: logging.Logger) -> Outcome:
    try:
        await action()
    except SchedulerInterrupt as exc:
        return Outcome(ok=False, error=exc)
    except Exception as exc:
        log.info("%s failed: %s", what, exc)
        return Outcome(ok=False, error=exc)
    return SUCCESS

"""Exception taxonomy for litfass."""
from __future__ import annotations


class LitfassError(Exception):
    """Base class for failures that are reported to the caller."""


class ConfigurationError(LitfassError):
    """Settings are missing or invalid. Raised before anything is shown."""


class AlreadyRunningError(LitfassError):
    """``start`` was called while displays are still active."""


class RenderError(LitfassError):
    """A render backend operation failed (navigation, style injection, ...)."""


class DisplayEnumerationError(LitfassError):
    """The attached displays could not be listed."""


class SchedulerInterrupt(Exception):
    """Raised into pending sleeps when the scheduler is closed.

    This is a stop signal, not a failure, and therefore does not derive from
    :class:`LitfassError`.
    """

    def __init__(self, message: str = "Sleep interrupt. The scheduler was closed and all pending timeouts have been cancelled.") -> None:
        super().__init__(message)

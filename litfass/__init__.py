"""Litfass: synchronized web page rotation across multiple displays."""
from .errors import AlreadyRunningError, ConfigurationError, DisplayEnumerationError, RenderError, SchedulerInterrupt
from .events import EventBus, LitfassEvent
from .orchestrator import Orchestrator
from .scheduling.scheduler import Scheduler
from .settings.models import Settings

__version__ = "1.0.0"

__all__ = [
    "AlreadyRunningError",
    "ConfigurationError",
    "DisplayEnumerationError",
    "EventBus",
    "LitfassEvent",
    "Orchestrator",
    "RenderError",
    "Scheduler",
    "SchedulerInterrupt",
    "Settings",
]

"""Coalescing timer scheduler shared by all display loops."""
from .scheduler import ScheduleSlot, Scheduler

__all__ = ["ScheduleSlot", "Scheduler"]

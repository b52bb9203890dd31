"""Per-display rotation and display topology supervision."""
from .loop import DisplayRotation
from .outcome import Outcome, attempt
from .topology import WATCH_INTERVAL_MS, TopologyWatch

__all__ = ["DisplayRotation", "Outcome", "TopologyWatch", "WATCH_INTERVAL_MS", "attempt"]

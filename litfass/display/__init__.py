"""Display geometry, runtime display state and transition animations."""
from .enumerator import DisplayEnumerator, Geometry, sort_geometries
from .transitions import TransitionAnimation, resolve_transition
from .models import Display

__all__ = [
    "Display",
    "DisplayEnumerator",
    "Geometry",
    "TransitionAnimation",
    "resolve_transition",
    "sort_geometries",
]

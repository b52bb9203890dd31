"""Settings models and YAML loading."""
from .loader import deep_merge, load_settings, load_settings_data, normalize_settings
from .models import DisplayConfig, Page, Settings

__all__ = [
    "DisplayConfig",
    "Page",
    "Settings",
    "deep_merge",
    "load_settings",
    "load_settings_data",
    "normalize_settings",
]

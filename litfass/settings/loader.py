"""Settings loading and normalization.

Settings are read from YAML files, deep-merged in order and normalized into an
immutable :class:`Settings` record. Normalization is where all configuration
errors surface, before any display is touched.
"""
from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml

from ..display.transitions import (
    DEFAULT_TRANSITION_DURATION_MS,
    DEFAULT_TRANSITION_NAME,
    resolve_transition,
)
from ..errors import ConfigurationError
from .models import DisplayConfig, Page, Settings

SETTINGS_SECTION = "litfass"

DEFAULT_LAUNCH_TIMEOUT_S = 10
DEFAULT_PREPARE_PAGES = 1
DEFAULT_PREPARATION_TIME_S = 5
DEFAULT_AIR_TIME_S = 5
DEFAULT_LAUNCH_URL = "about:blank"


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any], concat_lists: bool = False) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    Mappings merge recursively. Lists are concatenated when ``concat_lists``
    is set, otherwise they are replaced like any other value.
    """
    merged: Dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value, concat_lists)
        elif concat_lists and isinstance(current, list) and isinstance(value, list):
            merged[key] = current + copy.deepcopy(value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_settings_data(paths: Iterable[Path]) -> Dict[str, Any]:
    """Read and merge the raw settings from the existing files among ``paths``.

    Raises:
        ConfigurationError: If a file is not valid YAML or not a mapping
    """
    log = logging.getLogger("settings")
    data: Dict[str, Any] = {}
    for path in paths:
        path = Path(path)
        if not path.exists():
            continue
        try:
            with path.open("r", encoding="utf-8") as fh:
                loaded = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Failed to parse {path}: {exc}") from exc
        if not isinstance(loaded, Mapping):
            raise ConfigurationError(f"Settings file {path} must contain a mapping")
        section = loaded.get(SETTINGS_SECTION, loaded)
        if not isinstance(section, Mapping):
            raise ConfigurationError(f"'{SETTINGS_SECTION}' in {path} must be a mapping")
        data = deep_merge(data, section)
        log.info("Loaded settings from %s", path)
    return data


def load_settings(paths: Iterable[Path], overrides: Optional[Mapping[str, Any]] = None) -> Settings:
    data = load_settings_data(paths)
    if overrides:
        data = deep_merge(data, overrides)
    return normalize_settings(data)


def _positive_ms(value: Any, default_s: float) -> int:
    """Seconds to milliseconds; missing, invalid or non-positive values use the default."""
    try:
        seconds = float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        seconds = 0.0
    if seconds <= 0:
        seconds = default_s
    return int(seconds * 1000)


def _int_or(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _normalize_pages(index: int, raw: Mapping[str, Any]) -> List[Page]:
    urls = raw.get("pages")
    if not isinstance(urls, list):
        raise ConfigurationError(f"Display configuration {index} needs a 'pages' array")
    if not urls:
        raise ConfigurationError(f"Display configuration {index} needs at least one page to display")

    rotation_speed = raw.get("rotationSpeed")
    pages: List[Page] = []
    for page_index, url in enumerate(urls):
        if not isinstance(url, str) or not url:
            raise ConfigurationError(f"Display configuration {index} has an invalid page URL at {page_index}")
        if isinstance(rotation_speed, list):
            speed = rotation_speed[page_index] if page_index < len(rotation_speed) else None
        else:
            speed = rotation_speed
        pages.append(Page(url=url, air_time_ms=_positive_ms(speed, DEFAULT_AIR_TIME_S)))
    return pages


def _normalize_display(index: int, raw: Any, browser_options: Mapping[str, Any]) -> DisplayConfig:
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Display configuration {index} must be a mapping")
    pages = _normalize_pages(index, raw)

    animation = raw.get("transitionAnimation")
    if not isinstance(animation, Mapping):
        animation = {"name": animation}
    name = animation.get("name") or DEFAULT_TRANSITION_NAME
    duration = _int_or(animation.get("duration"), 0)
    if duration <= 0:
        duration = DEFAULT_TRANSITION_DURATION_MS
    try:
        transition = resolve_transition(str(name), duration)
    except ConfigurationError as exc:
        raise ConfigurationError(f"Display {index}: {exc}") from exc

    display_options = raw.get("browserOptions") or {}
    if not isinstance(display_options, Mapping):
        raise ConfigurationError(f"Display configuration {index} has invalid 'browserOptions'")

    return DisplayConfig(
        pages=tuple(pages),
        transition=transition,
        ignore=bool(raw.get("ignore", False)),
        browser_options=deep_merge(browser_options, display_options, concat_lists=True),
    )


def normalize_settings(raw: Mapping[str, Any]) -> Settings:
    """Validate raw settings and apply defaults.

    Raises:
        ConfigurationError: If the display list or any page list is missing or
            empty, or a transition animation is unknown
    """
    browser_options = raw.get("browserOptions") or {}
    if not isinstance(browser_options, Mapping):
        raise ConfigurationError("Litfass configuration has invalid 'browserOptions'")

    displays = raw.get("displays")
    if not isinstance(displays, list):
        raise ConfigurationError("Litfass configuration needs a 'displays' array")
    if not displays:
        raise ConfigurationError("Litfass configuration needs at least one display")

    prepare_pages = max(_int_or(raw.get("preparePages"), DEFAULT_PREPARE_PAGES), 0)

    preparation_time = raw.get("preparationTime")
    try:
        preparation_s = float(preparation_time) if preparation_time is not None else DEFAULT_PREPARATION_TIME_S
    except (TypeError, ValueError):
        preparation_s = DEFAULT_PREPARATION_TIME_S

    return Settings(
        launch_timeout_ms=_positive_ms(raw.get("launchTimeout"), DEFAULT_LAUNCH_TIMEOUT_S),
        prepare_pages=prepare_pages,
        preparation_time_ms=int(max(preparation_s, 0) * 1000),
        watch_displays=bool(raw.get("watchDisplays", True)),
        launch_url=str(raw.get("launchUrl") or DEFAULT_LAUNCH_URL),
        browser_options=dict(browser_options),
        displays=tuple(_normalize_display(i, d, browser_options) for i, d in enumerate(displays)),
    )

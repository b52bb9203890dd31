from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List

from .config import AppConfig

LOG_FILE_NAME = "litfass.log"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_installed: List[logging.Handler] = []


def setup_logging(config: AppConfig, verbose: bool = False) -> None:
    """Configure console logging plus a rotating log file.

    Writes to ``<logs_dir>/litfass.log`` when the directory can be created,
    otherwise logs to stderr only. Calling it again replaces the handlers
    installed by the previous call.
    """
    level = logging.DEBUG if verbose else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    while _installed:
        handler = _installed.pop()
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def _attach(handler: logging.Handler) -> None:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
        _installed.append(handler)

    # Console first so early failures are visible
    _attach(logging.StreamHandler())

    # Selenium and urllib3 are chatty at DEBUG
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    log_file: Path = config.logs_dir / LOG_FILE_NAME
    try:
        config.ensure_logs_dir()
        _attach(RotatingFileHandler(str(log_file), maxBytes=2_000_000, backupCount=3))
    except OSError as exc:
        logging.getLogger(__name__).warning("File logging unavailable (%s); using console only", exc)
        return
    logging.getLogger(__name__).debug("File logging enabled at %s", log_file)

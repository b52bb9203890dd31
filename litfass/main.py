from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config import AppConfig
from .display.enumerator import DisplayEnumerator
from .errors import ConfigurationError, DisplayEnumerationError, RenderError
from .logging_setup import setup_logging
from .orchestrator import Orchestrator
from .render.selenium_session import SeleniumLauncher
from .settings.loader import load_settings
from .settings.models import Settings
from .web.admin import start_admin_server


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="litfass", description="Rotate web pages across all attached displays.")
    parser.add_argument("--config-dir", type=Path, default=None, help="directory holding default.yaml / local.yaml")
    parser.add_argument("--env", default=None, help="additional <env>.yaml to merge between default and local")
    parser.add_argument("--launch-url", default=None, help="page shown while the rotation starts")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


async def serve(config: AppConfig, settings: Settings) -> None:
    orchestrator = Orchestrator(SeleniumLauncher(), DisplayEnumerator())

    # Handle SIGTERM for graceful shutdown (systemd stop)
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, lambda: asyncio.ensure_future(orchestrator.exit()))
    except NotImplementedError:
        # not supported by the Windows event loop
        pass

    if config.enable_web_admin:
        start_admin_server(orchestrator, config)

    await orchestrator.start(settings)


def run(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = AppConfig(config_dir=args.config_dir, env=args.env)
    setup_logging(config, verbose=args.verbose)
    log = logging.getLogger("litfass")

    overrides = {"launchUrl": args.launch_url} if args.launch_url else None
    try:
        settings = load_settings(config.settings_files(), overrides)
    except ConfigurationError as exc:
        log.error("Invalid configuration: %s", exc)
        return 2

    log.info("Starting litfass with %d display configurations", len(settings.displays))
    try:
        asyncio.run(serve(config, settings))
    except RenderError as exc:
        log.error("Render backend failed: %s", exc)
        return 1
    except DisplayEnumerationError as exc:
        log.error("%s", exc)
        return 1
    return 0


def main() -> None:
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


class AppConfig:
    """Centralized runtime configuration.

    Values may be overridden by environment variables to simplify dev/testing.
    Display settings themselves live in the YAML files under ``config_dir``.
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        env: Optional[str] = None,
    ) -> None:
        # Root of the repository (one level up from the package)
        self.repo_root = Path(__file__).resolve().parents[1]

        default_config_dir = config_dir or Path(os.getenv("LITFASS_CONFIG_DIR", str(self.repo_root / "config")))
        self.config_dir = Path(default_config_dir).resolve()
        self.env = env if env is not None else (os.getenv("LITFASS_ENV") or None)

        self.logs_dir = Path(os.getenv("LITFASS_LOG_DIR", str(self.repo_root / "logs"))).resolve()

        # Optional modules/features
        self.enable_web_admin = os.getenv("LITFASS_ENABLE_WEB_ADMIN", "1") != "0"
        self.admin_host = os.getenv("LITFASS_ADMIN_HOST", "127.0.0.1")
        self.admin_port = self._parse_port(os.getenv("LITFASS_ADMIN_PORT", "8080"))
        self.admin_token = os.getenv("LITFASS_ADMIN_TOKEN") or None

    def _parse_port(self, value: str) -> int:
        try:
            return int(value)
        except ValueError:
            return 8080

    def settings_files(self) -> list[Path]:
        """Settings files in merge order; later files override earlier ones."""
        names = ["default.yaml"]
        if self.env:
            names.append(f"{self.env}.yaml")
        names.append("local.yaml")
        return [self.config_dir / name for name in names]

    def ensure_logs_dir(self) -> None:
        """Create the log directory if possible.

        Raises OSError when it cannot be created; logging setup falls back to
        console-only output in that case.
        """
        self.logs_dir.mkdir(parents=True, exist_ok=True)
